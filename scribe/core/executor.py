"""Run the per-chunk transcription task under a concurrency policy."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum

from scribe.data_models import AudioArtifact, ChunkResult
from scribe.exceptions import ChunkTranscriptionError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 3

ChunkTask = Callable[[AudioArtifact, threading.Event], ChunkResult]


class ExecutionMode(Enum):
    SEQUENTIAL = "sequential"
    BOUNDED = "bounded"
    PARALLEL = "parallel"


@dataclass(frozen=True)
class ConcurrencyPolicy:
    mode: ExecutionMode
    limit: int | None = None


def policy_from_limit(max_concurrent: int) -> ConcurrencyPolicy:
    """Map the configured limit: 0 or 1 sequential, -1 unbounded, N bounded."""
    if max_concurrent in (0, 1):
        return ConcurrencyPolicy(ExecutionMode.SEQUENTIAL, 1)
    if max_concurrent == -1:
        return ConcurrencyPolicy(ExecutionMode.PARALLEL)
    if max_concurrent < -1:
        raise ValueError(f"Invalid max_concurrent value: {max_concurrent}")
    return ConcurrencyPolicy(ExecutionMode.BOUNDED, max_concurrent)


def _run_one(
    artifact: AudioArtifact, task: ChunkTask, cancel: threading.Event,
) -> ChunkResult:
    spec = artifact.spec
    if cancel.is_set():
        raise ChunkTranscriptionError(
            spec.index, spec.total, spec.start_time, spec.end_time, "cancelled",
        )
    try:
        return task(artifact, cancel)
    except ChunkTranscriptionError:
        raise
    except Exception as e:
        raise ChunkTranscriptionError(
            spec.index, spec.total, spec.start_time, spec.end_time,
            str(e) or type(e).__name__,
        ) from e


def _run_pool(
    artifacts: Sequence[AudioArtifact],
    task: ChunkTask,
    limit: int,
    cancel: threading.Event,
) -> list[ChunkResult]:
    results: list[ChunkResult] = []
    cursor = 0
    active: set[Future[ChunkResult]] = set()
    with ThreadPoolExecutor(max_workers=limit, thread_name_prefix="chunk") as pool:
        try:
            while cursor < len(artifacts) or active:
                while len(active) < limit and cursor < len(artifacts):
                    active.add(pool.submit(_run_one, artifacts[cursor], task, cancel))
                    cursor += 1
                done, active = wait(active, return_when=FIRST_COMPLETED)
                for future in done:
                    results.append(future.result())
        except BaseException:
            # In-flight chunks see the event and stop polling; queued ones never start.
            cancel.set()
            for future in active:
                future.cancel()
            raise
    return results


def execute_chunks(
    artifacts: Sequence[AudioArtifact],
    task: ChunkTask,
    max_concurrent: int = DEFAULT_MAX_CONCURRENT,
    cancel_event: threading.Event | None = None,
) -> list[ChunkResult]:
    """Transcribe every chunk and return the results ordered by chunk index.

    The first failing chunk fails the whole call with a
    ChunkTranscriptionError; remaining work is cancelled.
    """
    if not artifacts:
        return []
    policy = policy_from_limit(max_concurrent)
    cancel = cancel_event or threading.Event()
    logger.info(
        "Processing %d chunks (%s%s)",
        len(artifacts),
        policy.mode.value,
        f", limit {policy.limit}" if policy.mode is ExecutionMode.BOUNDED else "",
    )

    if policy.mode is ExecutionMode.SEQUENTIAL:
        results = []
        for artifact in artifacts:
            try:
                results.append(_run_one(artifact, task, cancel))
            except BaseException:
                cancel.set()
                raise
    else:
        limit = policy.limit or len(artifacts)
        results = _run_pool(artifacts, task, limit, cancel)

    return sorted(results, key=lambda r: r.index)
