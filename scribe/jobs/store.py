"""In-memory store for asynchronous transcription jobs.

Entries are written by the webhook receiver and read by polling backends.
The store is shared across runs; one lock guards every access and readers
always get copies.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 300.0


class JobStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


_TERMINAL = (JobStatus.COMPLETED, JobStatus.FAILED)


def normalize_job_id(job_id: str) -> str:
    return job_id.strip().lower()


@dataclass(frozen=True)
class JobEntry:
    job_id: str
    status: JobStatus
    created_at: float
    result: dict[str, Any] | None = None
    error: str | None = None
    completed_at: float | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in _TERMINAL


class JobStore:
    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._entries: dict[str, JobEntry] = {}
        self._lock = threading.Lock()
        self._ttl = ttl_seconds
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None

    def create(self, job_id: str) -> JobEntry:
        key = normalize_job_id(job_id)
        entry = JobEntry(key, JobStatus.PENDING, self._clock())
        with self._lock:
            existing = self._entries.get(key)
            # A webhook may deliver before the submitter registers the job.
            if existing is not None and existing.is_terminal:
                return existing
            self._entries[key] = entry
        return entry

    def mark_processing(self, job_id: str) -> None:
        key = normalize_job_id(job_id)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and not entry.is_terminal:
                self._entries[key] = replace(entry, status=JobStatus.PROCESSING)

    def complete(self, job_id: str, result: dict[str, Any]) -> None:
        key = normalize_job_id(job_id)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key) or JobEntry(key, JobStatus.PENDING, now)
            self._entries[key] = replace(
                entry, status=JobStatus.COMPLETED, result=result, completed_at=now,
            )
        logger.info("Job %s completed", key)

    def fail(self, job_id: str, error: str) -> None:
        key = normalize_job_id(job_id)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key) or JobEntry(key, JobStatus.PENDING, now)
            self._entries[key] = replace(
                entry, status=JobStatus.FAILED, error=error, completed_at=now,
            )
        logger.warning("Job %s failed: %s", key, error)

    def get(self, job_id: str) -> JobEntry | None:
        with self._lock:
            return self._entries.get(normalize_job_id(job_id))

    def is_terminal(self, job_id: str) -> bool:
        entry = self.get(job_id)
        return entry is not None and entry.is_terminal

    def delete(self, job_id: str) -> None:
        with self._lock:
            self._entries.pop(normalize_job_id(job_id), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def evict_expired(self, now: float | None = None) -> int:
        """Drop entries older than the TTL. Returns the number removed."""
        now = self._clock() if now is None else now
        with self._lock:
            expired = [
                key for key, entry in self._entries.items()
                if now - entry.created_at > self._ttl
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info("Evicted %d stale job entries", len(expired))
        return len(expired)

    def start_sweeper(self) -> None:
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop, name="job-store-sweeper", daemon=True,
        )
        self._sweeper.start()

    def stop_sweeper(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout)
            self._sweeper = None

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self._sweep_interval):
            try:
                self.evict_expired()
            except Exception:
                logger.exception("Job store sweep failed")
