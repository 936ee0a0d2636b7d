"""Google Gemini backend and the file-upload helpers shared with refine/."""

from __future__ import annotations

import io
import logging
import threading
import time
from typing import Any

import google.generativeai as genai

from scribe.backends.base import (
    BackendType,
    Capabilities,
    TranscribeOptions,
    TranscriptionBackend,
)
from scribe.data_models import BackendResult, TranscriptionInput
from scribe.exceptions import BackendError, BackendNotConfiguredError
from scribe.refine.prompts import build_transcription_prompt

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-2.5-pro"
UPLOAD_POLL_INTERVAL_SECONDS = 2.0
UPLOAD_MAX_WAIT_SECONDS = 600.0


def configure(api_key: str | None) -> None:
    if not api_key:
        raise BackendNotConfiguredError("GEMINI_API_KEY is not set")
    genai.configure(api_key=api_key)


def upload_input(
    data: TranscriptionInput,
    poll_interval: float = UPLOAD_POLL_INTERVAL_SECONDS,
    max_wait: float = UPLOAD_MAX_WAIT_SECONDS,
    cancel_event: threading.Event | None = None,
) -> Any:
    """Upload bytes to the Files API and wait until they are ACTIVE."""
    uploaded = genai.upload_file(
        io.BytesIO(data.data),
        mime_type=data.mime_type,
        display_name=data.file_name,
    )
    logger.debug("Uploaded %s as %s", data.file_name, uploaded.name)
    deadline = time.monotonic() + max_wait
    waiter = cancel_event or threading.Event()
    try:
        while uploaded.state.name == "PROCESSING":
            if time.monotonic() > deadline:
                raise BackendError(f"Gemini file {uploaded.name} still processing")
            if waiter.wait(poll_interval):
                raise BackendError("Cancelled while waiting for Gemini upload")
            uploaded = genai.get_file(uploaded.name)
        if uploaded.state.name == "FAILED":
            raise BackendError(f"Gemini file processing failed for {data.file_name}")
    except BaseException:
        delete_upload(uploaded)
        raise
    return uploaded


def delete_upload(uploaded: Any) -> None:
    try:
        genai.delete_file(uploaded.name)
    except Exception as e:
        logger.warning("Failed to delete Gemini upload %s: %s", uploaded.name, e)


def generate_response(
    model_name: str,
    contents: list[Any],
    json_response: bool = False,
    max_output_tokens: int | None = None,
) -> Any:
    generation_config: dict[str, Any] = {}
    if json_response:
        generation_config["response_mime_type"] = "application/json"
    if max_output_tokens:
        generation_config["max_output_tokens"] = max_output_tokens
    model = genai.GenerativeModel(model_name)
    return model.generate_content(
        contents, generation_config=generation_config or None,
    )


def generate(
    model_name: str,
    contents: list[Any],
    json_response: bool = False,
    max_output_tokens: int | None = None,
) -> str:
    response = generate_response(model_name, contents, json_response, max_output_tokens)
    return response.text or ""


def hit_token_limit(response: Any) -> bool:
    """True when generation stopped at the output token limit."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return False
    reason = candidates[0].finish_reason
    return getattr(reason, "name", reason) == "MAX_TOKENS"


class GeminiBackend(TranscriptionBackend):
    backend_type = BackendType.GEMINI
    capabilities = Capabilities(
        accepted_mime_types=frozenset({
            "audio/mpeg", "audio/mp3", "audio/wav", "audio/aac", "audio/ogg",
            "audio/flac", "audio/mp4", "audio/webm", "video/mp4",
            "video/webm", "video/quicktime",
        }),
        max_input_bytes=2 * 1024 ** 3,
        speaker_identification=True,
        translation=True,
    )

    def __init__(self, api_key: str | None, model: str | None = None) -> None:
        self._api_key = api_key
        self._model = model or DEFAULT_GEMINI_MODEL

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
        configure(self._api_key)
        prompt = build_transcription_prompt(
            options.language,
            speaker_identification=options.speaker_identification,
            timestamps=options.timestamps,
            duration_seconds=options.duration_seconds,
            custom_instructions=options.custom_instructions,
            keyterms=options.keyterms,
        )
        uploaded = upload_input(data, cancel_event=cancel_event)
        t0 = time.monotonic()
        try:
            response = generate_response(self._model, [uploaded, prompt])
            text = response.text or ""
        except Exception as e:
            raise BackendError(f"Gemini transcription failed: {e}") from e
        finally:
            delete_upload(uploaded)
        truncated = hit_token_limit(response)
        if truncated:
            logger.warning("Gemini output for %s hit the token limit", data.file_name)
        logger.info(
            "Gemini transcribed %s in %.1fs (%d chars)",
            data.file_name, time.monotonic() - t0, len(text),
        )
        return BackendResult(
            text=text.strip(), model=self._model, was_truncated=truncated,
        )
