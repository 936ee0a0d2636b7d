"""Configuration loading and management."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from dotenv import load_dotenv

from scribe.core.chunking import (
    DEFAULT_CHUNK_STEPS,
    DEFAULT_MAX_CHUNK_MINUTES,
    ChunkingPolicy,
    validate_steps,
)
from scribe.exceptions import ConfigError

if TYPE_CHECKING:
    from scribe.backends.registry import BackendSettings
    from scribe.core.audio import MediaTools
    from scribe.core.pipeline import PipelineConfig
    from scribe.jobs.store import JobStore

load_dotenv()


@dataclass
class ScribeConfig:
    provider: str | None = None
    model: str | None = None
    language: str | None = None
    speaker_identification: bool = True
    timestamps: bool = True
    custom_instructions: str | None = None
    enable_keyterms: bool = False
    enable_correction: bool = False
    enable_audio_correction: bool = False
    enable_chunking: bool | None = None
    optimize_audio: bool = True
    chunk_threshold_seconds: float = 600.0
    chunk_safety_buffer_seconds: float = 5.0
    chunk_overlap_seconds: float = 20.0
    chunk_steps: tuple[tuple[float, float], ...] = DEFAULT_CHUNK_STEPS
    max_chunk_minutes: float = DEFAULT_MAX_CHUNK_MINUTES
    max_concurrent_chunks: int = 3
    correction_max_words: int = 5000
    correction_overlap_words: int = 100
    correction_context_words: int = 150
    poll_interval_seconds: float = 5.0
    poll_max_attempts: int = 360
    job_ttl_seconds: float = 3600.0
    job_sweep_interval_seconds: float = 300.0
    webhook_host: str = "127.0.0.1"
    webhook_port: int = 8000
    webhook_secret: str | None = None
    output_dir: str = "."
    format: str = "json"
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    local_device: str = "auto"
    model_dir: str | None = None
    elevenlabs_api_key: str | None = None
    gemini_api_key: str | None = None
    openai_api_key: str | None = None

    def with_overrides(self, **kwargs: Any) -> ScribeConfig:
        return replace(self, **kwargs)


def parse_tristate(value: str) -> bool | None:
    """Parse ``true``/``false``/``auto`` (``auto`` means decide per file)."""
    normalized = value.strip().lower()
    if normalized in ("1", "true", "yes", "on"):
        return True
    if normalized in ("0", "false", "no", "off"):
        return False
    if normalized in ("", "auto"):
        return None
    raise ConfigError(f"Expected true, false or auto, got {value!r}")


def _parse_steps(raw: Any) -> tuple[tuple[float, float], ...]:
    try:
        return tuple((float(limit), float(chunk)) for limit, chunk in raw)
    except (TypeError, ValueError):
        raise ConfigError(
            "chunking.steps must be a list of [max_minutes, chunk_minutes] pairs"
        ) from None


_ENV_STRINGS = {
    "ELEVENLABS_API_KEY": "elevenlabs_api_key",
    "GEMINI_API_KEY": "gemini_api_key",
    "OPENAI_API_KEY": "openai_api_key",
    "ELEVENLABS_WEBHOOK_SECRET": "webhook_secret",
    "FFMPEG_PATH": "ffmpeg_path",
    "FFPROBE_PATH": "ffprobe_path",
    "SCRIBE_PROVIDER": "provider",
    "SCRIBE_MODEL_DIR": "model_dir",
}


def _apply_env_overrides(config: ScribeConfig) -> ScribeConfig:
    overrides: dict[str, Any] = {}
    for env_name, key in _ENV_STRINGS.items():
        value = os.environ.get(env_name)
        if value:
            overrides[key] = value
    if "gemini_api_key" not in overrides and os.environ.get("GOOGLE_API_KEY"):
        overrides["gemini_api_key"] = os.environ["GOOGLE_API_KEY"]
    max_concurrent = os.environ.get("MAX_CONCURRENT_CHUNKS")
    if max_concurrent:
        try:
            overrides["max_concurrent_chunks"] = int(max_concurrent)
        except ValueError:
            raise ConfigError(
                f"MAX_CONCURRENT_CHUNKS must be an integer, got {max_concurrent!r}"
            ) from None
    enable_chunking = os.environ.get("ENABLE_CHUNKING")
    if enable_chunking:
        overrides["enable_chunking"] = parse_tristate(enable_chunking)
    if overrides:
        return replace(config, **overrides)
    return config


_TOP_LEVEL_KEYS = (
    "provider",
    "model",
    "language",
    "speaker_identification",
    "timestamps",
    "custom_instructions",
    "enable_keyterms",
    "optimize_audio",
    "output_dir",
    "format",
    "ffmpeg_path",
    "ffprobe_path",
    "local_device",
    "model_dir",
)

_SECTION_KEYS: dict[str, dict[str, str]] = {
    "chunking": {
        "threshold_seconds": "chunk_threshold_seconds",
        "safety_buffer_seconds": "chunk_safety_buffer_seconds",
        "overlap_seconds": "chunk_overlap_seconds",
        "max_chunk_minutes": "max_chunk_minutes",
        "max_concurrent": "max_concurrent_chunks",
    },
    "correction": {
        "enabled": "enable_correction",
        "audio": "enable_audio_correction",
        "max_words": "correction_max_words",
        "overlap_words": "correction_overlap_words",
        "context_words": "correction_context_words",
    },
    "polling": {
        "interval_seconds": "poll_interval_seconds",
        "max_attempts": "poll_max_attempts",
    },
    "webhook": {
        "host": "webhook_host",
        "port": "webhook_port",
        "secret": "webhook_secret",
        "job_ttl_seconds": "job_ttl_seconds",
        "sweep_interval_seconds": "job_sweep_interval_seconds",
    },
    "keys": {
        "elevenlabs": "elevenlabs_api_key",
        "gemini": "gemini_api_key",
        "openai": "openai_api_key",
    },
}


def load_config(path: Path | None = None) -> ScribeConfig:
    if path is None:
        env_path = os.environ.get("SCRIBE_CONFIG")
        if env_path:
            path = Path(env_path)

    if path is None:
        cwd_config = Path("config.yaml")
        if cwd_config.exists():
            path = cwd_config

    if path is None or not path.exists():
        return _apply_env_overrides(ScribeConfig())

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")

    kwargs: dict[str, Any] = {}
    for key in _TOP_LEVEL_KEYS:
        if key in data:
            kwargs[key] = data[key]
    if "enable_chunking" in data:
        value = data["enable_chunking"]
        kwargs["enable_chunking"] = (
            value if isinstance(value, bool) or value is None
            else parse_tristate(str(value))
        )

    for section, mapping in _SECTION_KEYS.items():
        values = data.get(section)
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ConfigError(f"Section {section!r} must be a mapping")
        for yaml_key, field_name in mapping.items():
            if yaml_key in values:
                kwargs[field_name] = values[yaml_key]

    chunking = data.get("chunking") or {}
    if "steps" in chunking:
        kwargs["chunk_steps"] = _parse_steps(chunking["steps"])

    try:
        config = ScribeConfig(**kwargs)
    except TypeError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e
    validate_steps(config.chunk_steps, config.max_chunk_minutes)
    return _apply_env_overrides(config)


def resolve_config(
    config: ScribeConfig,
    *,
    provider: str | None = None,
    model: str | None = None,
    language: str | None = None,
    format: str | None = None,
    output_dir: str | None = None,
    max_concurrent_chunks: int | None = None,
    enable_chunking: bool | None = None,
    enable_keyterms: bool | None = None,
    enable_correction: bool | None = None,
    enable_audio_correction: bool | None = None,
    optimize_audio: bool | None = None,
    no_speakers: bool = False,
    no_timestamps: bool = False,
    custom_instructions: str | None = None,
) -> ScribeConfig:
    """Resolve config priority: CLI args > env > YAML > defaults."""
    candidates: dict[str, Any] = {
        "provider": provider,
        "model": model,
        "language": language,
        "format": format,
        "output_dir": output_dir,
        "max_concurrent_chunks": max_concurrent_chunks,
        "enable_chunking": enable_chunking,
        "enable_keyterms": enable_keyterms,
        "enable_correction": enable_correction,
        "enable_audio_correction": enable_audio_correction,
        "optimize_audio": optimize_audio,
        "custom_instructions": custom_instructions,
    }
    overrides = {k: v for k, v in candidates.items() if v is not None}
    if no_speakers:
        overrides["speaker_identification"] = False
    if no_timestamps:
        overrides["timestamps"] = False
    if overrides:
        return replace(config, **overrides)
    return config


def build_chunking_policy(config: ScribeConfig) -> ChunkingPolicy:
    return ChunkingPolicy(
        threshold_seconds=config.chunk_threshold_seconds,
        safety_buffer_seconds=config.chunk_safety_buffer_seconds,
        overlap_seconds=config.chunk_overlap_seconds,
        steps=config.chunk_steps,
        max_chunk_minutes=config.max_chunk_minutes,
    )


def build_pipeline_config(config: ScribeConfig, provider: str) -> PipelineConfig:
    """Convert ScribeConfig to PipelineConfig."""
    from scribe.core.correction import CorrectionSettings
    from scribe.core.pipeline import PipelineConfig

    try:
        correction = CorrectionSettings(
            max_words=config.correction_max_words,
            overlap_words=config.correction_overlap_words,
            context_words=config.correction_context_words,
        )
    except ValueError as e:
        raise ConfigError(str(e)) from e

    return PipelineConfig(
        provider=provider,
        language=config.language,
        speaker_identification=config.speaker_identification,
        timestamps=config.timestamps,
        custom_instructions=config.custom_instructions,
        enable_keyterms=config.enable_keyterms,
        enable_correction=config.enable_correction,
        enable_audio_correction=config.enable_audio_correction,
        enable_chunking=config.enable_chunking,
        optimize_audio=config.optimize_audio,
        chunking=build_chunking_policy(config),
        max_concurrent_chunks=config.max_concurrent_chunks,
        correction=correction,
    )


def build_backend_settings(
    config: ScribeConfig, job_store: JobStore | None = None,
) -> BackendSettings:
    from scribe.backends.registry import BackendSettings
    from scribe.jobs.polling import PollSettings

    return BackendSettings(
        elevenlabs_api_key=config.elevenlabs_api_key,
        gemini_api_key=config.gemini_api_key,
        openai_api_key=config.openai_api_key,
        model=config.model,
        local_device=config.local_device,
        local_model_dir=config.model_dir,
        poll=PollSettings(
            interval_seconds=config.poll_interval_seconds,
            max_attempts=config.poll_max_attempts,
        ),
        job_store=job_store,
    )


def build_media_tools(config: ScribeConfig) -> MediaTools:
    from scribe.core.audio import MediaTools

    return MediaTools(ffmpeg=config.ffmpeg_path, ffprobe=config.ffprobe_path)
