"""Window a stitched transcript for the correction model and reassemble it."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from scribe.refine.corrector import Corrector

logger = logging.getLogger(__name__)

_WORD = re.compile(r"\S+")


@dataclass(frozen=True)
class CorrectionSettings:
    max_words: int = 5000
    overlap_words: int = 100
    context_words: int = 150

    def __post_init__(self) -> None:
        if self.max_words <= self.overlap_words:
            raise ValueError("max_words must be greater than overlap_words")
        if self.overlap_words < 0 or self.context_words < 0:
            raise ValueError("overlap_words and context_words must not be negative")


@dataclass(frozen=True)
class CorrectionWindow:
    index: int
    start_word: int
    end_word: int
    text: str
    previous_context: str | None
    next_context: str | None


@dataclass
class CorrectionOutcome:
    text: str
    correction_count: int = 0
    correction_time_seconds: float = 0.0
    windows: int = 0
    failed_windows: int = 0


def _slice(text: str, spans: list[re.Match[str]], start: int, end: int) -> str:
    if start >= end:
        return ""
    return text[spans[start].start():spans[end - 1].end()]


def plan_correction_windows(
    text: str, settings: CorrectionSettings | None = None,
) -> list[CorrectionWindow]:
    """Split text into overlapping word-bounded windows.

    Window text keeps the original whitespace. Each window carries up to
    ``context_words`` of neighbouring text on either side as hints.
    """
    settings = settings or CorrectionSettings()
    spans = list(_WORD.finditer(text))
    total = len(spans)
    if total <= settings.max_words:
        return [CorrectionWindow(0, 0, total, text, None, None)]

    windows: list[CorrectionWindow] = []
    start = 0
    while start < total:
        end = min(start + settings.max_words, total)
        before = max(0, start - settings.context_words)
        after = min(total, end + settings.context_words)
        windows.append(
            CorrectionWindow(
                index=len(windows),
                start_word=start,
                end_word=end,
                text=_slice(text, spans, start, end),
                previous_context=_slice(text, spans, before, start) or None,
                next_context=_slice(text, spans, end, after) or None,
            )
        )
        if end >= total:
            break
        start = end - settings.overlap_words
    return windows


def _strip_leading_words(text: str, count: int) -> str:
    if count <= 0:
        return text
    spans = list(_WORD.finditer(text))
    if len(spans) <= count:
        return ""
    return text[spans[count].start():]


def correct_transcript(
    text: str,
    corrector: Corrector,
    settings: CorrectionSettings | None = None,
) -> CorrectionOutcome:
    """Correct a transcript window by window.

    A failing window keeps its uncorrected text. Every window after the
    first drops its leading ``overlap_words`` words before being appended.
    """
    settings = settings or CorrectionSettings()
    windows = plan_correction_windows(text, settings)
    if len(windows) > 1:
        logger.info(
            "Correcting %d words in %d windows", windows[-1].end_word, len(windows),
        )

    outcome = CorrectionOutcome(text="", windows=len(windows))
    pieces: list[str] = []
    for window in windows:
        t0 = time.monotonic()
        try:
            result = corrector.correct(
                window.text,
                previous_context=window.previous_context,
                next_context=window.next_context,
            )
        except Exception as e:
            outcome.failed_windows += 1
            logger.warning(
                "Correction failed for window %d/%d, keeping original text: %s",
                window.index + 1, len(windows), e,
            )
            corrected = window.text
        else:
            corrected = result.corrected_text
            outcome.correction_count += result.correction_count
        outcome.correction_time_seconds += time.monotonic() - t0

        if window.index == 0:
            pieces.append(corrected)
        else:
            pieces.append(_strip_leading_words(corrected, settings.overlap_words))

    outcome.text = " ".join(piece for piece in pieces if piece)
    logger.info(
        "Correction finished: %d corrections in %.1fs (%d failed windows)",
        outcome.correction_count, outcome.correction_time_seconds,
        outcome.failed_windows,
    )
    return outcome
