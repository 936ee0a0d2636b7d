"""Remove duplicated seam content between chunks and join the transcripts."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from scribe.data_models import ChunkResult, StructuredSegment

logger = logging.getLogger(__name__)

_WORD = re.compile(r"\S+")
PARAGRAPH_BREAK = "\n\n"


@dataclass(frozen=True)
class DedupSettings:
    """Word-window sizes used when matching seam content.

    These are empirically chosen defaults; changing them changes which
    words get dropped at each seam.
    """

    search_words: int = 200
    left_match_words: int = 50
    right_match_words: int = 100
    max_match_words: int = 15
    min_match_words: int = 4
    fallback_skip_words: int = 5


DEFAULT_DEDUP = DedupSettings()


def _word_spans(text: str) -> list[re.Match[str]]:
    return list(_WORD.finditer(text))


def _longest_match_end(
    left_words: Sequence[str],
    right_words: Sequence[str],
    settings: DedupSettings,
) -> int | None:
    """Index (exclusive) in ``right_words`` just past the best seam match.

    Every start position in the right window is tried with decreasing
    lengths; the longest match wins and ties go to the earliest position.
    """
    lengths = range(settings.max_match_words, settings.min_match_words - 1, -1)
    left_ngrams: set[tuple[str, ...]] = set()
    for n in lengths:
        for i in range(len(left_words) - n + 1):
            left_ngrams.add(tuple(left_words[i:i + n]))

    best_length = 0
    best_end: int | None = None
    for i in range(len(right_words) - settings.min_match_words + 1):
        for n in lengths:
            if i + n > len(right_words):
                continue
            if tuple(right_words[i:i + n]) in left_ngrams:
                if n > best_length:
                    best_length, best_end = n, i + n
                break
    return best_end


def find_split_point(
    left_text: str,
    right_text: str,
    settings: DedupSettings = DEFAULT_DEDUP,
) -> tuple[int, bool]:
    """Return (character offset into ``right_text``, matched).

    Content before the offset duplicates the end of ``left_text``. When no
    match of at least ``min_match_words`` exists, only the first
    ``fallback_skip_words`` words are skipped, and never the last word.
    An empty ``left_text`` has nothing to duplicate, so nothing is skipped.
    """
    right_spans = _word_spans(right_text)
    if not right_spans:
        return 0, False

    left_words = left_text.split()[-settings.search_words:]
    left_window = left_words[-settings.left_match_words:]
    right_window = [
        m.group(0)
        for m in right_spans[:min(settings.search_words, settings.right_match_words)]
    ]

    if not left_window:
        return 0, False
    end = _longest_match_end(left_window, right_window, settings)
    if end is not None:
        return right_spans[end - 1].end(), True

    # At least one word of the right chunk always survives.
    skip = min(settings.fallback_skip_words, len(right_spans) - 1)
    if skip <= 0:
        return 0, False
    return right_spans[skip - 1].end(), False


def stitch(
    chunks: Sequence[ChunkResult],
    settings: DedupSettings = DEFAULT_DEDUP,
) -> str:
    """Join chunk texts, deduplicating at every declared seam."""
    if not chunks:
        return ""

    parts = [chunks[0].text]
    removed_total = 0
    for i in range(1, len(chunks)):
        left, right = chunks[i - 1], chunks[i]
        if not (left.has_overlap_after and right.has_overlap_before):
            parts.append(right.text)
            continue

        offset, matched = find_split_point(left.text, right.text, settings)
        removed = len(right.text[:offset].split())
        remainder = right.text[offset:].lstrip()
        removed_total += removed
        if not matched and removed:
            logger.warning(
                "No seam match between chunks %d and %d; skipped %d words",
                left.index + 1, right.index + 1, removed,
            )
        logger.debug(
            "Chunk %d: removed %d overlapping words, kept %d",
            right.index + 1, removed, len(remainder.split()),
        )
        if remainder:
            parts.append(remainder)

    logger.info("Stitched %d chunks, removed %d overlap words", len(chunks), removed_total)
    return PARAGRAPH_BREAK.join(part for part in parts if part)


def merge_segments(chunks: Sequence[ChunkResult]) -> list[StructuredSegment] | None:
    """Merge renormalized segments, keeping each seam's audio once.

    At a declared seam the cut is the midpoint of the overlap region: the
    left chunk keeps segments starting before it, the right chunk keeps the
    rest.
    """
    if not any(chunk.segments for chunk in chunks):
        return None

    merged: list[StructuredSegment] = []
    for i, chunk in enumerate(chunks):
        lower = float("-inf")
        upper = float("inf")
        if i > 0 and chunk.has_overlap_before and chunks[i - 1].has_overlap_after:
            lower = (chunk.start_time + chunks[i - 1].end_time) / 2
        if (
            i < len(chunks) - 1
            and chunk.has_overlap_after
            and chunks[i + 1].has_overlap_before
        ):
            upper = (chunks[i + 1].start_time + chunk.end_time) / 2
        for segment in chunk.segments or ():
            if lower <= segment.start_time < upper:
                merged.append(segment)
    return merged
