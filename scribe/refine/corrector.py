"""Correction model adapter."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from scribe.backends import gemini
from scribe.data_models import TranscriptionInput
from scribe.exceptions import CorrectionError
from scribe.refine.prompts import build_correction_prompt

logger = logging.getLogger(__name__)

DEFAULT_CORRECTION_MODEL = "gemini-2.5-pro"


@dataclass(frozen=True)
class CorrectionResult:
    corrected_text: str
    correction_count: int = 0


class Corrector(Protocol):
    def correct(
        self,
        text: str,
        previous_context: str | None = None,
        next_context: str | None = None,
        audio: TranscriptionInput | None = None,
    ) -> CorrectionResult: ...


def parse_correction_response(text: str, original: str) -> CorrectionResult:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        truncated = not text.strip().endswith("}")
        raise CorrectionError(
            f"Invalid JSON from correction model{' (truncated)' if truncated else ''}: {e}"
        ) from e
    if not isinstance(data, dict):
        raise CorrectionError("Correction model returned a non-object")
    corrected = data.get("corrected_text") or original
    try:
        count = int(data.get("correction_count") or 0)
    except (TypeError, ValueError):
        count = 0
    return CorrectionResult(corrected_text=corrected, correction_count=count)


class GeminiCorrector:
    def __init__(
        self,
        api_key: str | None,
        language: str | None = None,
        model: str = DEFAULT_CORRECTION_MODEL,
    ) -> None:
        self._api_key = api_key
        self._language = language
        self._model = model

    def correct(
        self,
        text: str,
        previous_context: str | None = None,
        next_context: str | None = None,
        audio: TranscriptionInput | None = None,
    ) -> CorrectionResult:
        prompt = build_correction_prompt(
            text,
            self._language,
            previous_context=previous_context,
            next_context=next_context,
            with_audio=audio is not None,
        )
        uploaded: Any = None
        try:
            gemini.configure(self._api_key)
            contents: list[Any] = [prompt]
            if audio is not None:
                uploaded = gemini.upload_input(audio)
                contents.insert(0, uploaded)
            response = gemini.generate(
                self._model, contents, json_response=True, max_output_tokens=32768,
            )
        except Exception as e:
            raise CorrectionError(f"Correction request failed: {e}") from e
        finally:
            if uploaded is not None:
                gemini.delete_upload(uploaded)

        result = parse_correction_response(response, text)
        logger.info("Correction model made %d corrections", result.correction_count)
        return result
