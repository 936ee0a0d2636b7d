"""OpenAI Whisper API backend with an optional chat post-pass."""

from __future__ import annotations

import io
import logging
import threading
import time
from typing import Any

from openai import OpenAI, OpenAIError

from scribe.backends.base import (
    BackendType,
    Capabilities,
    TranscribeOptions,
    TranscriptionBackend,
)
from scribe.core.timestamps import format_timestamp
from scribe.data_models import BackendResult, StructuredSegment, TranscriptionInput
from scribe.exceptions import BackendError, BackendNotConfiguredError
from scribe.refine.prompts import build_transcription_prompt

logger = logging.getLogger(__name__)

DEFAULT_WHISPER_MODEL = "whisper-1"
DEFAULT_CHAT_MODEL = "gpt-4o"


def _response_dict(response: Any) -> dict[str, Any]:
    if isinstance(response, dict):
        return response
    if hasattr(response, "model_dump"):
        return response.model_dump()
    return {"text": getattr(response, "text", str(response))}


class OpenAIBackend(TranscriptionBackend):
    backend_type = BackendType.OPENAI
    capabilities = Capabilities(
        accepted_mime_types=frozenset({
            "audio/mpeg", "audio/mp3", "audio/mp4", "audio/wav", "audio/webm",
            "audio/m4a", "audio/flac", "audio/ogg",
        }),
        max_input_bytes=25 * 1024 ** 2,
        speaker_identification=False,
        translation=True,
    )

    def __init__(
        self,
        api_key: str | None,
        model: str | None = None,
        chat_model: str | None = None,
        client: OpenAI | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model or DEFAULT_WHISPER_MODEL
        self._chat_model = chat_model or DEFAULT_CHAT_MODEL
        self._client = client

    @property
    def default_model(self) -> str:
        return self._model

    def is_configured(self) -> bool:
        return bool(self._api_key) or self._client is not None

    def _get_client(self) -> OpenAI:
        if self._client is None:
            if not self._api_key:
                raise BackendNotConfiguredError("OPENAI_API_KEY is not set")
            self._client = OpenAI(api_key=self._api_key)
        return self._client

    def _needs_post_pass(self, options: TranscribeOptions) -> bool:
        language = (options.language or "en").lower()
        return language not in ("en", "english") or bool(options.custom_instructions)

    def transcribe(
        self,
        data: TranscriptionInput,
        options: TranscribeOptions,
        cancel_event: threading.Event | None = None,
    ) -> BackendResult:
        client = self._get_client()
        audio = io.BytesIO(data.data)
        audio.name = data.file_name
        kwargs: dict[str, Any] = {"model": self._model, "file": audio}
        if options.timestamps:
            kwargs["response_format"] = "verbose_json"
            kwargs["timestamp_granularities"] = ["segment"]
        if options.keyterms:
            kwargs["prompt"] = ", ".join(options.keyterms)

        t0 = time.monotonic()
        try:
            payload = _response_dict(client.audio.transcriptions.create(**kwargs))
        except OpenAIError as e:
            raise BackendError(f"OpenAI transcription failed: {e}") from e

        segments: list[StructuredSegment] | None = None
        raw_segments = payload.get("segments") or []
        if raw_segments:
            segments = [
                StructuredSegment(
                    None,
                    float(seg["start"]),
                    max(float(seg["start"]), float(seg["end"])),
                    str(seg["text"]).strip(),
                )
                for seg in raw_segments
            ]
            text = "\n".join(
                f"{format_timestamp(seg.start_time)} {seg.text}" for seg in segments
            )
        else:
            text = str(payload.get("text") or "").strip()

        model = self._model
        truncated = False
        if text and self._needs_post_pass(options):
            text, truncated = self._post_process(client, text, options)
            model = f"{self._model} + {self._chat_model}"

        logger.info(
            "OpenAI transcribed %s in %.1fs", data.file_name, time.monotonic() - t0,
        )
        return BackendResult(
            text=text,
            model=model,
            segments=segments,
            raw_payload=payload,
            was_truncated=truncated,
        )

    def _post_process(
        self, client: OpenAI, text: str, options: TranscribeOptions,
    ) -> tuple[str, bool]:
        prompt = build_transcription_prompt(
            options.language,
            speaker_identification=False,
            timestamps=options.timestamps,
            duration_seconds=options.duration_seconds,
            custom_instructions=options.custom_instructions,
        )
        try:
            completion = client.chat.completions.create(
                model=self._chat_model,
                messages=[
                    {"role": "system", "content": prompt},
                    {
                        "role": "user",
                        "content": f"Here is the transcription to process:\n\n{text}",
                    },
                ],
            )
        except OpenAIError as e:
            raise BackendError(f"OpenAI post-processing failed: {e}") from e
        if not completion.choices:
            return text, False
        choice = completion.choices[0]
        truncated = choice.finish_reason == "length"
        if truncated:
            logger.warning("OpenAI post-pass stopped at the token limit")
        return (choice.message.content or text).strip(), truncated
