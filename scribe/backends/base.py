"""Capability-described interface implemented by every transcription backend."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar

from scribe.data_models import BackendResult, TranscriptionInput
from scribe.exceptions import InputTooLargeError, UnsupportedMediaTypeError
from scribe.jobs.polling import PollSettings, poll_job
from scribe.jobs.store import JobStore

logger = logging.getLogger(__name__)

MAX_KEYTERMS = 100


class BackendType(StrEnum):
    ELEVENLABS = "elevenlabs"
    ELEVENLABS_ASYNC = "elevenlabs-async"
    GEMINI = "google-gemini"
    OPENAI = "openai"
    LOCAL_WHISPER = "local-whisper"


@dataclass(frozen=True)
class Capabilities:
    accepted_mime_types: frozenset[str]
    max_input_bytes: int
    speaker_identification: bool
    translation: bool

    def accepts(self, mime_type: str) -> bool:
        return mime_type.split(";")[0].strip().lower() in self.accepted_mime_types


@dataclass(frozen=True)
class TranscribeOptions:
    language: str | None = None
    speaker_identification: bool = True
    timestamps: bool = True
    duration_seconds: float | None = None
    custom_instructions: str | None = None
    keyterms: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if len(self.keyterms) > MAX_KEYTERMS:
            raise ValueError(
                f"At most {MAX_KEYTERMS} keyterms are supported, got {len(self.keyterms)}"
            )


class TranscriptionBackend(ABC):
    backend_type: ClassVar[BackendType]
    capabilities: ClassVar[Capabilities]

    @property
    @abstractmethod
    def default_model(self) -> str: ...

    def is_configured(self) -> bool:
        return True

    def validate(self, data: TranscriptionInput) -> None:
        """Reject inputs this backend cannot take, before any network call."""
        caps = self.capabilities
        if not caps.accepts(data.mime_type):
            raise UnsupportedMediaTypeError(
                f"{self.backend_type} does not accept {data.mime_type} "
                f"({data.file_name})"
            )
        if data.size > caps.max_input_bytes:
            raise InputTooLargeError(
                f"{data.file_name} is {data.size / 1024 ** 2:.1f} MB; "
                f"{self.backend_type} accepts at most "
                f"{caps.max_input_bytes / 1024 ** 2:.0f} MB"
            )

    @abstractmethod
    def transcribe(
        self,
        data: TranscriptionInput,
        options: TranscribeOptions,
        cancel_event: threading.Event | None = None,
    ) -> BackendResult: ...


class AsyncJobBackend(TranscriptionBackend):
    """Submit a job, then poll the shared job store for its delivery."""

    def __init__(self, store: JobStore, poll: PollSettings | None = None) -> None:
        self._store = store
        self._poll = poll or PollSettings()

    @abstractmethod
    def submit(self, data: TranscriptionInput, options: TranscribeOptions) -> str:
        """Start the job and return its normalized id."""

    @abstractmethod
    def parse_payload(
        self, payload: dict[str, Any], options: TranscribeOptions,
    ) -> BackendResult: ...

    def transcribe(
        self,
        data: TranscriptionInput,
        options: TranscribeOptions,
        cancel_event: threading.Event | None = None,
    ) -> BackendResult:
        job_id = self.submit(data, options)
        logger.info("Submitted %s as job %s", data.file_name, job_id)
        try:
            payload = poll_job(self._store, job_id, self._poll, cancel_event)
            return self.parse_payload(payload, options)
        finally:
            self._store.delete(job_id)
