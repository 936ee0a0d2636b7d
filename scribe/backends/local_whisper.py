"""Offline backend running faster-whisper on the local machine."""

from __future__ import annotations

import gc
import io
import logging
import threading
import time
from pathlib import Path
from typing import Any

import torch
from faster_whisper import WhisperModel

from scribe.backends.base import (
    BackendType,
    Capabilities,
    TranscribeOptions,
    TranscriptionBackend,
)
from scribe.core.timestamps import format_timestamp
from scribe.data_models import BackendResult, StructuredSegment, TranscriptionInput
from scribe.exceptions import BackendError

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_MODEL = "large-v3"


def resolve_device(device: str) -> tuple[str, str]:
    """Return (device, compute_type); ``auto`` picks CUDA when available."""
    if device == "auto":
        device = "cuda" if torch.cuda.is_available() else "cpu"
    if device == "cuda" and not torch.cuda.is_available():
        raise BackendError("CUDA is not available")
    return device, "float16" if device == "cuda" else "int8"


class LocalWhisperBackend(TranscriptionBackend):
    backend_type = BackendType.LOCAL_WHISPER
    capabilities = Capabilities(
        accepted_mime_types=frozenset({
            "audio/mpeg", "audio/mp3", "audio/wav", "audio/mp4", "audio/m4a",
            "audio/aac", "audio/flac", "audio/ogg", "audio/webm",
            "video/mp4", "video/webm", "video/quicktime", "video/x-matroska",
        }),
        max_input_bytes=4 * 1024 ** 3,
        speaker_identification=False,
        translation=False,
    )

    def __init__(
        self,
        model: str | None = None,
        device: str = "auto",
        model_dir: str | None = None,
        vad_filter: bool = True,
    ) -> None:
        self._model_size = model or DEFAULT_LOCAL_MODEL
        self._device = device
        self._model_dir = model_dir
        self._vad_filter = vad_filter
        self._model: WhisperModel | None = None
        # One model instance is shared by every chunk of a run.
        self._lock = threading.Lock()

    @property
    def default_model(self) -> str:
        return self._model_size

    def _load(self) -> WhisperModel:
        if self._model is None:
            device, compute_type = resolve_device(self._device)
            kwargs: dict[str, Any] = {"device": device, "compute_type": compute_type}
            if self._model_dir is not None:
                kwargs["download_root"] = str(Path(self._model_dir).expanduser().resolve())
            logger.info("Loading whisper %s on %s (%s)", self._model_size, device, compute_type)
            try:
                self._model = WhisperModel(self._model_size, **kwargs)
            except Exception as e:
                raise BackendError(f"Failed to load model: {e}") from e
        return self._model

    def unload(self) -> None:
        with self._lock:
            self._model = None
        gc.collect()
        if torch.cuda.is_available():
            torch.cuda.empty_cache()

    def transcribe(
        self,
        data: TranscriptionInput,
        options: TranscribeOptions,
        cancel_event: threading.Event | None = None,
    ) -> BackendResult:
        t0 = time.monotonic()
        with self._lock:
            model = self._load()
            try:
                segments_iter, _info = model.transcribe(
                    io.BytesIO(data.data),
                    language=options.language,
                    vad_filter=self._vad_filter,
                    vad_parameters={"min_silence_duration_ms": 500},
                    initial_prompt=", ".join(options.keyterms) or None,
                    condition_on_previous_text=False,
                )
                segments = []
                for seg in segments_iter:
                    if cancel_event is not None and cancel_event.is_set():
                        raise BackendError("Cancelled")
                    segments.append(
                        StructuredSegment(None, seg.start, max(seg.start, seg.end), seg.text.strip())
                    )
            except torch.cuda.OutOfMemoryError as e:
                raise BackendError(f"CUDA OOM during transcription: {e}") from e
            except RuntimeError as e:
                raise BackendError(f"Transcription failed: {e}") from e

        if options.timestamps:
            text = "\n".join(
                f"{format_timestamp(seg.start_time)} {seg.text}" for seg in segments
            )
        else:
            text = " ".join(seg.text for seg in segments)
        logger.info(
            "Transcribed %s locally in %.1fs (%d segments)",
            data.file_name, time.monotonic() - t0, len(segments),
        )
        return BackendResult(text=text, model=self._model_size, segments=segments)
