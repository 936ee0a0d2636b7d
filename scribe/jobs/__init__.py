"""Shared state for asynchronous (webhook-delivered) transcription jobs."""

from scribe.jobs.polling import PollSettings, poll_job
from scribe.jobs.store import JobEntry, JobStatus, JobStore, normalize_job_id

__all__ = [
    "JobEntry",
    "JobStatus",
    "JobStore",
    "PollSettings",
    "normalize_job_id",
    "poll_job",
]
