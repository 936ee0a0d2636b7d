"""Shift chunk-relative timestamps onto the global timeline."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable
from dataclasses import replace

from scribe.data_models import ChunkResult, StructuredSegment
from scribe.exceptions import TimestampParseError

logger = logging.getLogger(__name__)

# Deliberately loose; parse_timestamp rejects malformed tokens so they can
# be left untouched and reported.
_INLINE_TIMESTAMP = re.compile(r"\[(\d{1,3}(?::\d{1,3}){1,2})\]")


def parse_timestamp(token: str) -> int:
    """Parse ``MM:SS`` or ``H:MM:SS`` (no brackets) into whole seconds."""
    parts = token.split(":")
    if len(parts) not in (2, 3) or any(not p.isdigit() for p in parts):
        raise TimestampParseError(f"Unrecognized timestamp {token!r}")
    if any(len(p) != 2 for p in parts[1:]):
        raise TimestampParseError(f"Expected two-digit fields in {token!r}")
    values = [int(p) for p in parts]
    if values[-1] >= 60:
        raise TimestampParseError(f"Seconds out of range in {token!r}")
    if len(values) == 3:
        hours, minutes, seconds = values
        if minutes >= 60:
            raise TimestampParseError(f"Minutes out of range in {token!r}")
        return hours * 3600 + minutes * 60 + seconds
    minutes, seconds = values
    return minutes * 60 + seconds


def format_timestamp(total_seconds: float) -> str:
    """Render ``[M:SS]``, or ``[H:MM:SS]`` once the hour component is non-zero."""
    total = int(total_seconds)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours > 0:
        return f"[{hours}:{minutes:02d}:{seconds:02d}]"
    return f"[{minutes}:{seconds:02d}]"


def round_offset(offset_seconds: float) -> int:
    return math.floor(offset_seconds + 0.5)


def renormalize_text(text: str, offset_seconds: float) -> str:
    """Add the offset to every bracketed inline timestamp in ``text``."""
    offset = round_offset(offset_seconds)
    if offset == 0:
        return text

    def _shift(match: re.Match[str]) -> str:
        try:
            seconds = parse_timestamp(match.group(1))
        except TimestampParseError as e:
            logger.warning("Leaving timestamp unchanged: %s", e)
            return match.group(0)
        return format_timestamp(seconds + offset)

    return _INLINE_TIMESTAMP.sub(_shift, text)


def renormalize_segments(
    segments: Iterable[StructuredSegment], offset_seconds: float,
) -> tuple[StructuredSegment, ...]:
    offset = round_offset(offset_seconds)
    return tuple(segment.shifted(offset) for segment in segments)


def renormalize(chunk: ChunkResult, offset_seconds: float | None = None) -> ChunkResult:
    """Return a copy of ``chunk`` with text and segment times made global."""
    offset = chunk.start_time if offset_seconds is None else offset_seconds
    return replace(
        chunk,
        text=renormalize_text(chunk.text, offset),
        segments=(
            renormalize_segments(chunk.segments, offset)
            if chunk.segments is not None
            else None
        ),
    )
