"""Blocking wait for an async job to reach a terminal state."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from scribe.exceptions import JobFailedError, PollTimeoutError
from scribe.jobs.store import JobStatus, JobStore, normalize_job_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollSettings:
    interval_seconds: float = 5.0
    max_attempts: int = 360

    @property
    def budget_seconds(self) -> float:
        return self.interval_seconds * self.max_attempts


def poll_job(
    store: JobStore,
    job_id: str,
    settings: PollSettings | None = None,
    cancel_event: threading.Event | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> dict[str, Any]:
    """Poll ``store`` until the job completes and return its payload.

    Raises JobFailedError if the job fails and PollTimeoutError when the
    attempt budget runs out or ``cancel_event`` is set.
    """
    settings = settings or PollSettings()
    cancel = cancel_event or threading.Event()
    key = normalize_job_id(job_id)
    started = clock()

    for attempt in range(1, settings.max_attempts + 1):
        entry = store.get(key)
        if entry is not None and entry.status is JobStatus.COMPLETED:
            logger.info("Job %s ready after %d attempts", key, attempt)
            return dict(entry.result or {})
        if entry is not None and entry.status is JobStatus.FAILED:
            raise JobFailedError(f"Job {key} failed: {entry.error or 'unknown error'}")
        if attempt % 12 == 0:
            logger.debug("Still waiting for job %s (attempt %d)", key, attempt)
        if cancel.wait(settings.interval_seconds):
            logger.info("Stopped polling job %s after %d attempts", key, attempt)
            raise PollTimeoutError(key, attempt, clock() - started)

    raise PollTimeoutError(key, settings.max_attempts, clock() - started)
