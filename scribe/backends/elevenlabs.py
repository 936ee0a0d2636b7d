"""ElevenLabs Scribe backends: blocking request and webhook-delivered job."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

import requests

from scribe.backends.base import (
    AsyncJobBackend,
    BackendType,
    Capabilities,
    TranscribeOptions,
    TranscriptionBackend,
)
from scribe.core.timestamps import format_timestamp
from scribe.data_models import BackendResult, StructuredSegment, TranscriptionInput
from scribe.exceptions import BackendError, BackendNotConfiguredError
from scribe.jobs.polling import PollSettings
from scribe.jobs.store import JobStore, normalize_job_id

logger = logging.getLogger(__name__)

API_URL = "https://api.elevenlabs.io/v1/speech-to-text"
DEFAULT_ELEVENLABS_MODEL = "scribe_v2"
REQUEST_TIMEOUT_SECONDS = 1800.0

ELEVENLABS_CAPABILITIES = Capabilities(
    accepted_mime_types=frozenset({
        "audio/mpeg", "audio/mp3", "audio/wav", "audio/wave", "audio/x-wav",
        "audio/mp4", "audio/m4a", "audio/aac", "audio/flac", "audio/ogg",
        "audio/webm", "video/mp4", "video/mpeg", "video/webm",
    }),
    max_input_bytes=2 * 1024 ** 3,
    speaker_identification=True,
    translation=False,
)


def _speaker_label(speaker_id: Any) -> str | None:
    """Map ``speaker_0`` (or a bare integer) to ``Speaker 1``."""
    if speaker_id is None:
        return None
    raw = str(speaker_id).rsplit("_", 1)[-1]
    if raw.isdigit():
        return f"Speaker {int(raw) + 1}"
    return str(speaker_id)


def words_to_segments(words: list[dict[str, Any]]) -> list[StructuredSegment]:
    """Group word timings into one segment per uninterrupted speaker turn."""
    segments: list[StructuredSegment] = []
    current: list[str] = []
    speaker: str | None = None
    start = end = 0.0

    def flush() -> None:
        if current:
            segments.append(
                StructuredSegment(speaker, start, max(start, end), " ".join(current))
            )

    for word in words:
        if word.get("type", "word") != "word":
            continue
        text = (word.get("text") or "").strip()
        if not text:
            continue
        label = _speaker_label(word.get("speaker_id"))
        if not current or (label is not None and label != speaker):
            flush()
            current = []
            speaker = label if label is not None else speaker
            start = float(word.get("start") or 0.0)
        current.append(text)
        end = float(word.get("end") or word.get("start") or start)
    flush()
    return segments


def render_segments(segments: list[StructuredSegment]) -> str:
    blocks = []
    for seg in segments:
        label = f"{seg.speaker_id}: " if seg.speaker_id else ""
        blocks.append(f"{format_timestamp(seg.start_time)} {label}{seg.text}")
    return "\n\n".join(blocks)


def _form_fields(
    model: str, options: TranscribeOptions, webhook: bool = False,
) -> list[tuple[str, str]]:
    fields = [("model_id", model)]
    if options.language:
        fields.append(("language_code", options.language))
    if options.speaker_identification:
        fields.append(("diarize", "true"))
    fields.append(
        ("timestamps_granularity", "word" if options.timestamps else "none")
    )
    for term in options.keyterms:
        fields.append(("keyterms", term))
    if webhook:
        fields.append(("webhook", "true"))
    return fields


def _post(
    api_key: str,
    data: TranscriptionInput,
    fields: list[tuple[str, str]],
    timeout: float,
) -> dict[str, Any]:
    try:
        response = requests.post(
            API_URL,
            headers={"xi-api-key": api_key},
            data=fields,
            files={"file": (data.file_name, data.data, data.mime_type)},
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise BackendError(f"ElevenLabs request failed: {e}") from e
    if not response.ok:
        raise BackendError(
            f"ElevenLabs API error ({response.status_code}): {response.text[:500]}"
        )
    return response.json()


def parse_transcription(
    result: dict[str, Any], options: TranscribeOptions, model: str,
) -> BackendResult:
    text = result.get("text") or ""
    segments = None
    words = result.get("words") or []
    if words:
        segments = words_to_segments(words)
        if options.speaker_identification and segments:
            text = render_segments(segments)
    return BackendResult(
        text=text, model=model, segments=segments, raw_payload=result,
    )


class ElevenLabsBackend(TranscriptionBackend):
    backend_type = BackendType.ELEVENLABS
    capabilities = ELEVENLABS_CAPABILITIES

    def __init__(
        self,
        api_key: str | None,
        model: str | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self._api_key = api_key
        self._model = model or DEFAULT_ELEVENLABS_MODEL
        self._timeout = timeout

    @property
    def default_model(self) -> str:
        return self._model

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def transcribe(
        self,
        data: TranscriptionInput,
        options: TranscribeOptions,
        cancel_event: threading.Event | None = None,
    ) -> BackendResult:
        if not self._api_key:
            raise BackendNotConfiguredError("ELEVENLABS_API_KEY is not set")
        t0 = time.monotonic()
        result = _post(
            self._api_key, data, _form_fields(self._model, options), self._timeout,
        )
        parsed = parse_transcription(result, options, self._model)
        logger.info(
            "ElevenLabs transcribed %s in %.1fs", data.file_name, time.monotonic() - t0,
        )
        return parsed


class ElevenLabsAsyncBackend(AsyncJobBackend):
    """Submits with ``webhook=true``; the result arrives through the webhook."""

    backend_type = BackendType.ELEVENLABS_ASYNC
    capabilities = ELEVENLABS_CAPABILITIES

    def __init__(
        self,
        api_key: str | None,
        store: JobStore,
        poll: PollSettings | None = None,
        model: str | None = None,
        timeout: float = 300.0,
    ) -> None:
        super().__init__(store, poll)
        self._api_key = api_key
        self._model = model or DEFAULT_ELEVENLABS_MODEL
        self._timeout = timeout

    @property
    def default_model(self) -> str:
        return self._model

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def submit(self, data: TranscriptionInput, options: TranscribeOptions) -> str:
        if not self._api_key:
            raise BackendNotConfiguredError("ELEVENLABS_API_KEY is not set")
        result = _post(
            self._api_key,
            data,
            _form_fields(self._model, options, webhook=True),
            self._timeout,
        )
        request_id = result.get("request_id") or result.get("transcription_id")
        if not request_id:
            raise BackendError(f"ElevenLabs did not return a request id: {result}")
        job_id = normalize_job_id(str(request_id))
        self._store.create(job_id)
        return job_id

    def parse_payload(
        self, payload: dict[str, Any], options: TranscribeOptions,
    ) -> BackendResult:
        transcription = payload.get("transcription", payload)
        if not isinstance(transcription, dict):
            raise BackendError("Webhook payload has no transcription object")
        return parse_transcription(transcription, options, self._model)
