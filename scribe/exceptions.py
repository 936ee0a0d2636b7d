"""Custom exceptions for the transcription pipeline."""

from __future__ import annotations


class ScribeError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(ScribeError):
    """Raised when configuration values are invalid."""


class SourceError(ScribeError):
    """Raised when the source media cannot be read or fetched."""


class ToolUnavailableError(ScribeError):
    """Raised when ffmpeg/ffprobe is missing or exits with an error."""


class InputValidationError(ScribeError):
    """Raised when a backend rejects an input before any network call."""


class UnsupportedMediaTypeError(InputValidationError):
    """Raised when a backend does not accept the input MIME type."""


class InputTooLargeError(InputValidationError):
    """Raised when the input exceeds the backend size limit."""


class BackendError(ScribeError):
    """Raised when a transcription backend call fails."""


class BackendNotConfiguredError(BackendError):
    """Raised when a backend is used without credentials."""


class JobFailedError(BackendError):
    """Raised when an async job reaches the failed state."""


class PollTimeoutError(BackendError):
    """Raised when an async job does not finish within the polling budget."""

    def __init__(self, job_id: str, attempts: int, elapsed_seconds: float) -> None:
        self.job_id = job_id
        self.attempts = attempts
        self.elapsed_seconds = elapsed_seconds
        super().__init__(
            f"Job {job_id} did not complete after {attempts} attempts "
            f"({elapsed_seconds:.1f}s)"
        )


class ChunkTranscriptionError(ScribeError):
    """Raised when one chunk fails; fatal for the whole run."""

    def __init__(
        self,
        index: int,
        total: int,
        start_time: float,
        end_time: float,
        reason: str,
    ) -> None:
        self.index = index
        self.total = total
        self.start_time = start_time
        self.end_time = end_time
        self.reason = reason
        super().__init__(
            f"Failed to transcribe chunk {index + 1}/{total} "
            f"({start_time:.1f}s-{end_time:.1f}s): {reason}"
        )


class CorrectionError(ScribeError):
    """Raised when a correction call fails. Recovered by the caller."""


class OptimizationError(ScribeError):
    """Raised when audio optimization fails. Recovered by the caller."""


class TimestampParseError(ScribeError):
    """Raised when an inline timestamp cannot be parsed."""


class CleanupError(ScribeError):
    """Raised when a temporary artifact cannot be released."""
