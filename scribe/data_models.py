"""Data models shared by the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from pathlib import Path


def count_words(text: str) -> int:
    return len(text.split())


@dataclass(frozen=True)
class ChunkSpec:
    """One overlapping time window of the source audio, in seconds."""

    index: int
    total: int
    start_time: float
    end_time: float
    duration: float
    has_overlap_before: bool
    has_overlap_after: bool

    def __post_init__(self) -> None:
        if self.end_time <= self.start_time:
            raise ValueError(
                f"end_time ({self.end_time}) must be greater than "
                f"start_time ({self.start_time})"
            )


@dataclass(frozen=True)
class TranscriptionInput:
    data: bytes
    mime_type: str
    file_name: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class AudioArtifact:
    """A materialized chunk file. Owned by the run that created it."""

    spec: ChunkSpec
    path: Path
    mime_type: str
    released: bool = False

    def read_input(self) -> TranscriptionInput:
        return TranscriptionInput(
            data=self.path.read_bytes(),
            mime_type=self.mime_type,
            file_name=f"chunk_{self.spec.index}_{self.spec.total}{self.path.suffix}",
        )

    def release(self) -> bool:
        """Delete the chunk file. Returns False if deletion failed."""
        if self.released:
            return True
        try:
            self.path.unlink(missing_ok=True)
        except OSError:
            return False
        self.released = True
        return True


@dataclass(frozen=True)
class StructuredSegment:
    speaker_id: str | None
    start_time: float
    end_time: float
    text: str

    def __post_init__(self) -> None:
        if self.start_time > self.end_time:
            raise ValueError(
                f"start_time ({self.start_time}) must not be greater than "
                f"end_time ({self.end_time})"
            )

    def shifted(self, offset: float) -> StructuredSegment:
        return replace(
            self,
            start_time=self.start_time + offset,
            end_time=self.end_time + offset,
        )


@dataclass
class BackendResult:
    """What a transcription backend returns for one input."""

    text: str
    model: str
    segments: list[StructuredSegment] | None = None
    raw_payload: dict | None = None
    was_truncated: bool = False


@dataclass(frozen=True)
class ChunkResult:
    index: int
    text: str
    start_time: float
    end_time: float
    has_overlap_before: bool
    has_overlap_after: bool
    model: str | None = None
    was_truncated: bool = False
    segments: tuple[StructuredSegment, ...] | None = None
    keyterms: tuple[str, ...] | None = None
    keyterms_failed: bool = False
    correction_count: int | None = None
    correction_time_seconds: float | None = None

    @classmethod
    def from_backend(
        cls,
        spec: ChunkSpec,
        result: BackendResult,
        **extra: object,
    ) -> ChunkResult:
        return cls(
            index=spec.index,
            text=result.text,
            start_time=spec.start_time,
            end_time=spec.end_time,
            has_overlap_before=spec.has_overlap_before,
            has_overlap_after=spec.has_overlap_after,
            model=result.model,
            was_truncated=result.was_truncated,
            segments=tuple(result.segments) if result.segments else None,
            **extra,  # type: ignore[arg-type]
        )


@dataclass
class PipelineMetadata:
    provider: str
    model: str | None = None
    chunk_models: list[str | None] = field(default_factory=list)
    audio_duration_seconds: float = 0.0
    processing_time_seconds: float = 0.0
    chunked: bool = False
    chunk_count: int = 1
    chunk_duration_seconds: float | None = None
    overlap_seconds: float | None = None
    keyterms: list[str] = field(default_factory=list)
    keyterm_failures: int = 0
    correction_count: int = 0
    correction_time_seconds: float = 0.0
    correction_failed_windows: int = 0
    optimization_failed: bool = False
    word_count: int = 0
    was_truncated: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class PipelineResult:
    text: str
    file_name: str
    metadata: PipelineMetadata
    segments: list[StructuredSegment] | None = None
