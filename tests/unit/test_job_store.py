"""Tests for scribe.jobs.store."""

from __future__ import annotations

import time

from scribe.jobs.store import JobStatus, JobStore, normalize_job_id


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestNormalizeJobId:
    def test_lowercases_and_strips(self) -> None:
        assert normalize_job_id("  AbC-123 ") == "abc-123"


class TestJobLifecycle:
    def test_create_pending(self) -> None:
        store = JobStore()
        entry = store.create("JOB1")
        assert entry.job_id == "job1"
        assert entry.status is JobStatus.PENDING
        assert store.get("job1") == entry
        assert len(store) == 1

    def test_mark_processing_then_complete(self) -> None:
        store = JobStore()
        store.create("job1")
        store.mark_processing("job1")
        assert store.get("job1").status is JobStatus.PROCESSING
        store.complete("JOB1", {"transcription": {"text": "hi"}})
        entry = store.get("job1")
        assert entry.status is JobStatus.COMPLETED
        assert entry.result == {"transcription": {"text": "hi"}}
        assert entry.completed_at is not None
        assert store.is_terminal("job1") is True

    def test_fail(self) -> None:
        store = JobStore()
        store.create("job1")
        store.fail("job1", "quota exceeded")
        entry = store.get("job1")
        assert entry.status is JobStatus.FAILED
        assert entry.error == "quota exceeded"

    def test_webhook_before_submitter(self) -> None:
        store = JobStore()
        store.complete("job1", {"transcription": {"text": "early"}})
        entry = store.create("job1")
        assert entry.status is JobStatus.COMPLETED
        assert store.get("job1").result == {"transcription": {"text": "early"}}

    def test_mark_processing_ignores_terminal(self) -> None:
        store = JobStore()
        store.fail("job1", "x")
        store.mark_processing("job1")
        assert store.get("job1").status is JobStatus.FAILED

    def test_delete(self) -> None:
        store = JobStore()
        store.create("job1")
        store.delete("JOB1")
        assert store.get("job1") is None
        assert store.is_terminal("job1") is False

    def test_entries_are_immutable_snapshots(self) -> None:
        store = JobStore()
        before = store.create("job1")
        store.complete("job1", {"ok": True})
        assert before.status is JobStatus.PENDING


class TestEviction:
    def test_evicts_only_expired(self) -> None:
        clock = FakeClock()
        store = JobStore(ttl_seconds=3600, clock=clock)
        store.create("old")
        clock.now += 3000
        store.create("new")
        clock.now += 700
        assert store.evict_expired() == 1
        assert store.get("old") is None
        assert store.get("new") is not None

    def test_explicit_now(self) -> None:
        store = JobStore(ttl_seconds=10, clock=FakeClock(0.0))
        store.create("a")
        assert store.evict_expired(now=5.0) == 0
        assert store.evict_expired(now=11.0) == 1

    def test_sweeper_runs_in_background(self) -> None:
        clock = FakeClock(0.0)
        store = JobStore(ttl_seconds=10, sweep_interval_seconds=0.01, clock=clock)
        store.create("a")
        clock.now = 100.0
        store.start_sweeper()
        try:
            deadline = time.monotonic() + 2.0
            while len(store) and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            store.stop_sweeper()
        assert len(store) == 0
