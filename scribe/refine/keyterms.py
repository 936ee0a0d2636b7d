"""Extract hard-to-transcribe terms from audio to hint the backend."""

from __future__ import annotations

import json
import logging
import re
import threading
import time
from typing import Protocol

from scribe.backends import gemini
from scribe.data_models import TranscriptionInput
from scribe.refine.prompts import build_keyterm_prompt

logger = logging.getLogger(__name__)

MAX_KEYTERMS = 100
MAX_KEYTERMS_PER_CHUNK = 50
MIN_TERM_LENGTH = 2
MAX_TERM_LENGTH = 50
DEFAULT_KEYTERM_MODEL = "gemini-2.5-flash"

_KEYTERM_ARRAY = re.compile(r'"keyterms"\s*:\s*\[([\s\S]*?)(?:\]|$)')
_QUOTED = re.compile(r'"([^"]+)"')


class KeytermExtractor(Protocol):
    def extract(
        self,
        data: TranscriptionInput,
        max_keyterms: int = MAX_KEYTERMS,
        cancel_event: threading.Event | None = None,
    ) -> list[str]: ...


def filter_keyterms(terms: list[object], max_keyterms: int) -> list[str]:
    """Keep string terms of acceptable length, deduplicated, in order."""
    seen: set[str] = set()
    result: list[str] = []
    for term in terms:
        if not isinstance(term, str):
            continue
        term = term.strip()
        if not MIN_TERM_LENGTH <= len(term) <= MAX_TERM_LENGTH or term in seen:
            continue
        seen.add(term)
        result.append(term)
        if len(result) >= max_keyterms:
            break
    return result


def salvage_keyterms(text: str) -> list[str]:
    """Recover complete quoted terms from a truncated JSON response."""
    match = _KEYTERM_ARRAY.search(text)
    if not match:
        return []
    return _QUOTED.findall(match.group(1))


def parse_keyterm_response(text: str, max_keyterms: int) -> list[str]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        stripped = text.strip()
        if not stripped.endswith(("}", "]")):
            logger.warning("Keyterm response appears truncated (%d chars)", len(text))
        terms: list[object] = list(salvage_keyterms(text))
        if terms:
            logger.info("Salvaged %d keyterms from partial JSON", len(terms))
    else:
        raw = data.get("keyterms") if isinstance(data, dict) else None
        terms = raw if isinstance(raw, list) else []
    return filter_keyterms(terms, max_keyterms)


class GeminiKeytermExtractor:
    """Never raises: any failure yields an empty list."""

    def __init__(
        self,
        api_key: str | None,
        language: str | None = None,
        model: str = DEFAULT_KEYTERM_MODEL,
    ) -> None:
        self._api_key = api_key
        self._language = language
        self._model = model

    def extract(
        self,
        data: TranscriptionInput,
        max_keyterms: int = MAX_KEYTERMS,
        cancel_event: threading.Event | None = None,
    ) -> list[str]:
        t0 = time.monotonic()
        try:
            gemini.configure(self._api_key)
            uploaded = gemini.upload_input(data, cancel_event=cancel_event)
            try:
                text = gemini.generate(
                    self._model,
                    [uploaded, build_keyterm_prompt(self._language, max_keyterms)],
                    json_response=True,
                    max_output_tokens=8192,
                )
            finally:
                gemini.delete_upload(uploaded)
        except Exception as e:
            logger.warning("Keyterm extraction failed for %s: %s", data.file_name, e)
            return []

        terms = parse_keyterm_response(text, max_keyterms)
        logger.info(
            "Extracted %d keyterms from %s in %.1fs%s",
            len(terms), data.file_name, time.monotonic() - t0,
            f": {', '.join(terms[:10])}" if terms else "",
        )
        return terms
