"""Per-run temporary storage with a single guaranteed release."""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path
from types import TracebackType

from scribe.exceptions import CleanupError

logger = logging.getLogger(__name__)


class RunWorkspace:
    """Owns every temporary artifact of one pipeline run.

    Files live in a private temp directory. Other resources (chunk files,
    remote uploads) are released through callbacks registered with
    ``register``. ``release`` runs them once, newest first, then removes
    the directory. Cleanup failures are logged and never raised.
    """

    def __init__(self, base_dir: Path | None = None, prefix: str = "scribe_") -> None:
        self._dir = Path(tempfile.mkdtemp(prefix=prefix, dir=base_dir))
        self._callbacks: list[tuple[str, Callable[[], None]]] = []
        self._lock = threading.Lock()
        self._released = False
        self.cleanup_failures = 0

    @property
    def directory(self) -> Path:
        return self._dir

    @property
    def released(self) -> bool:
        return self._released

    def path_for(self, name: str) -> Path:
        if self._released:
            raise RuntimeError("Workspace already released")
        return self._dir / Path(name).name

    def write_bytes(self, name: str, data: bytes) -> Path:
        path = self.path_for(name)
        path.write_bytes(data)
        return path

    def register(self, label: str, callback: Callable[[], None]) -> None:
        with self._lock:
            if self._released:
                raise RuntimeError("Workspace already released")
            self._callbacks.append((label, callback))

    def release(self) -> None:
        """Release all resources. Safe to call multiple times."""
        with self._lock:
            if self._released:
                return
            self._released = True
            callbacks = list(reversed(self._callbacks))
            self._callbacks.clear()

        for label, callback in callbacks:
            try:
                callback()
            except Exception as e:
                self.cleanup_failures += 1
                logger.warning(
                    "Cleanup step %r failed: %s", label,
                    CleanupError(f"{type(e).__name__}: {e}"),
                )

        try:
            shutil.rmtree(self._dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.cleanup_failures += 1
            logger.warning("Failed to remove workspace %s: %s", self._dir, e)
        else:
            logger.debug("Released workspace %s", self._dir)

    def __enter__(self) -> RunWorkspace:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
