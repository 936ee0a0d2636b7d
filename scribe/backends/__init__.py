"""Transcription backends behind one capability interface."""

from scribe.backends.base import (
    AsyncJobBackend,
    BackendType,
    Capabilities,
    TranscribeOptions,
    TranscriptionBackend,
)

__all__ = [
    "AsyncJobBackend",
    "BackendType",
    "Capabilities",
    "TranscribeOptions",
    "TranscriptionBackend",
]
