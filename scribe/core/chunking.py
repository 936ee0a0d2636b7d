"""Chunk planning: when to split audio and where the windows fall."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from scribe.data_models import ChunkSpec
from scribe.exceptions import ConfigError

logger = logging.getLogger(__name__)

# (files shorter than N minutes, use M-minute chunks); longer files use
# DEFAULT_MAX_CHUNK_MINUTES.
DEFAULT_CHUNK_STEPS: tuple[tuple[float, float], ...] = (
    (15.0, 5.0),
    (60.0, 10.0),
    (120.0, 15.0),
    (180.0, 20.0),
)
DEFAULT_MAX_CHUNK_MINUTES = 30.0


@dataclass(frozen=True)
class ChunkingPolicy:
    threshold_seconds: float = 600.0
    safety_buffer_seconds: float = 5.0
    overlap_seconds: float = 20.0
    steps: tuple[tuple[float, float], ...] = DEFAULT_CHUNK_STEPS
    max_chunk_minutes: float = DEFAULT_MAX_CHUNK_MINUTES

    def __post_init__(self) -> None:
        validate_steps(self.steps, self.max_chunk_minutes)
        if self.overlap_seconds < 0:
            raise ConfigError("overlap_seconds must not be negative")


def validate_steps(
    steps: Sequence[tuple[float, float]], max_chunk_minutes: float,
) -> None:
    """Check that the step table is a monotonic step function."""
    previous_limit = 0.0
    previous_chunk = 0.0
    for limit, chunk in steps:
        if limit <= previous_limit:
            raise ConfigError(
                f"Chunk step limits must increase: {limit} after {previous_limit}"
            )
        if chunk <= 0 or chunk < previous_chunk:
            raise ConfigError(
                f"Chunk durations must be positive and non-decreasing: {chunk}"
            )
        previous_limit, previous_chunk = limit, chunk
    if max_chunk_minutes < previous_chunk:
        raise ConfigError(
            f"max_chunk_minutes ({max_chunk_minutes}) is below the last step "
            f"({previous_chunk})"
        )


def should_chunk(
    duration_seconds: float,
    threshold_seconds: float,
    safety_buffer_seconds: float = 0.0,
) -> bool:
    return duration_seconds >= threshold_seconds + safety_buffer_seconds


def optimal_chunk_duration(
    duration_seconds: float,
    steps: Sequence[tuple[float, float]] = DEFAULT_CHUNK_STEPS,
    max_chunk_minutes: float = DEFAULT_MAX_CHUNK_MINUTES,
) -> float:
    """Return the chunk length in seconds for a file of the given duration."""
    duration_minutes = duration_seconds / 60
    for limit, chunk in steps:
        if duration_minutes < limit:
            return chunk * 60
    return max_chunk_minutes * 60


def plan_chunks(
    duration_seconds: float,
    chunk_duration_seconds: float,
    overlap_seconds: float,
) -> list[ChunkSpec]:
    """Walk the timeline in strides and widen each window by the overlap.

    The first window does not extend backwards and no window extends past
    the end of the audio. Overlap flags are only set when a neighbour exists
    and the overlap is non-zero.
    """
    if duration_seconds <= 0:
        raise ValueError(f"duration must be positive, got {duration_seconds}")
    if chunk_duration_seconds <= 0:
        raise ValueError(
            f"chunk duration must be positive, got {chunk_duration_seconds}"
        )
    if overlap_seconds < 0:
        raise ValueError(f"overlap must not be negative, got {overlap_seconds}")

    windows: list[tuple[float, float]] = []
    current = 0.0
    while current < duration_seconds:
        start = 0.0 if not windows else max(0.0, current - overlap_seconds)
        end = min(current + chunk_duration_seconds + overlap_seconds, duration_seconds)
        windows.append((start, end))
        current += chunk_duration_seconds

    total = len(windows)
    seams = overlap_seconds > 0
    specs = [
        ChunkSpec(
            index=i,
            total=total,
            start_time=start,
            end_time=end,
            duration=end - start,
            has_overlap_before=seams and i > 0,
            has_overlap_after=seams and i < total - 1,
        )
        for i, (start, end) in enumerate(windows)
    ]
    logger.debug(
        "Planned %d chunks for %.1fs (%.0fs stride, %.0fs overlap)",
        total, duration_seconds, chunk_duration_seconds, overlap_seconds,
    )
    return specs


def plan_for_duration(
    duration_seconds: float, policy: ChunkingPolicy,
) -> tuple[list[ChunkSpec], float]:
    """Plan chunks using the adaptive chunk length. Returns (specs, chunk length)."""
    chunk_seconds = optimal_chunk_duration(
        duration_seconds, policy.steps, policy.max_chunk_minutes,
    )
    return (
        plan_chunks(duration_seconds, chunk_seconds, policy.overlap_seconds),
        chunk_seconds,
    )
