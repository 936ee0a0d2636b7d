"""Construct backends by type."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from scribe.backends.base import BackendType, TranscriptionBackend
from scribe.exceptions import BackendNotConfiguredError, ConfigError
from scribe.jobs.polling import PollSettings
from scribe.jobs.store import JobStore

logger = logging.getLogger(__name__)

PREFERENCE_ORDER: tuple[BackendType, ...] = (
    BackendType.ELEVENLABS,
    BackendType.GEMINI,
    BackendType.OPENAI,
    BackendType.LOCAL_WHISPER,
)


@dataclass
class BackendSettings:
    elevenlabs_api_key: str | None = None
    gemini_api_key: str | None = None
    openai_api_key: str | None = None
    model: str | None = None
    local_device: str = "auto"
    local_model_dir: str | None = None
    poll: PollSettings = field(default_factory=PollSettings)
    job_store: JobStore | None = None


def _elevenlabs(settings: BackendSettings) -> TranscriptionBackend:
    from scribe.backends.elevenlabs import ElevenLabsBackend

    return ElevenLabsBackend(settings.elevenlabs_api_key, model=settings.model)


def _elevenlabs_async(settings: BackendSettings) -> TranscriptionBackend:
    from scribe.backends.elevenlabs import ElevenLabsAsyncBackend

    if settings.job_store is None:
        raise ConfigError("elevenlabs-async needs a job store fed by the webhook receiver")
    return ElevenLabsAsyncBackend(
        settings.elevenlabs_api_key,
        settings.job_store,
        poll=settings.poll,
        model=settings.model,
    )


def _gemini(settings: BackendSettings) -> TranscriptionBackend:
    from scribe.backends.gemini import GeminiBackend

    return GeminiBackend(settings.gemini_api_key, model=settings.model)


def _openai(settings: BackendSettings) -> TranscriptionBackend:
    from scribe.backends.openai_backend import OpenAIBackend

    return OpenAIBackend(settings.openai_api_key, model=settings.model)


def _local_whisper(settings: BackendSettings) -> TranscriptionBackend:
    from scribe.backends.local_whisper import LocalWhisperBackend

    return LocalWhisperBackend(
        model=settings.model,
        device=settings.local_device,
        model_dir=settings.local_model_dir,
    )


_FACTORIES: dict[BackendType, Callable[[BackendSettings], TranscriptionBackend]] = {
    BackendType.ELEVENLABS: _elevenlabs,
    BackendType.ELEVENLABS_ASYNC: _elevenlabs_async,
    BackendType.GEMINI: _gemini,
    BackendType.OPENAI: _openai,
    BackendType.LOCAL_WHISPER: _local_whisper,
}


def parse_backend_type(name: str) -> BackendType:
    try:
        return BackendType(name.strip().lower())
    except ValueError:
        valid = ", ".join(t.value for t in BackendType)
        raise ConfigError(f"Unknown provider {name!r}. Valid: {valid}") from None


def create_backend(
    backend_type: BackendType | str, settings: BackendSettings,
) -> TranscriptionBackend:
    if isinstance(backend_type, str):
        backend_type = parse_backend_type(backend_type)
    return _FACTORIES[backend_type](settings)


def _is_configured(backend_type: BackendType, settings: BackendSettings) -> bool:
    if backend_type in (BackendType.ELEVENLABS, BackendType.ELEVENLABS_ASYNC):
        configured = bool(settings.elevenlabs_api_key)
        if backend_type is BackendType.ELEVENLABS_ASYNC:
            configured = configured and settings.job_store is not None
        return configured
    if backend_type is BackendType.GEMINI:
        return bool(settings.gemini_api_key)
    if backend_type is BackendType.OPENAI:
        return bool(settings.openai_api_key)
    return True


def available_backends(settings: BackendSettings) -> dict[BackendType, bool]:
    """Every backend type and whether it has what it needs to run."""
    return {t: _is_configured(t, settings) for t in BackendType}


def default_backend(
    settings: BackendSettings, preferred: str | None = None,
) -> TranscriptionBackend:
    """Pick ``preferred`` if given, else the first configured backend."""
    if preferred:
        backend_type = parse_backend_type(preferred)
        if not _is_configured(backend_type, settings):
            raise BackendNotConfiguredError(f"Provider {backend_type} is not configured")
        return create_backend(backend_type, settings)
    for backend_type in PREFERENCE_ORDER:
        if _is_configured(backend_type, settings):
            logger.info("Using %s backend", backend_type)
            return create_backend(backend_type, settings)
    raise BackendNotConfiguredError("No transcription backend is configured")
