"""Tests for scribe.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from scribe.config import (
    ScribeConfig,
    build_backend_settings,
    build_chunking_policy,
    build_pipeline_config,
    load_config,
    parse_tristate,
    resolve_config,
)
from scribe.exceptions import ConfigError
from scribe.jobs.store import JobStore

_ENV_VARS = (
    "SCRIBE_CONFIG", "ELEVENLABS_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY",
    "OPENAI_API_KEY", "ELEVENLABS_WEBHOOK_SECRET", "FFMPEG_PATH", "FFPROBE_PATH",
    "SCRIBE_PROVIDER", "SCRIBE_MODEL_DIR", "MAX_CONCURRENT_CHUNKS", "ENABLE_CHUNKING",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class TestDefaults:
    def test_no_file(self) -> None:
        config = load_config()
        assert config == ScribeConfig()
        assert config.max_concurrent_chunks == 3
        assert config.enable_chunking is None
        assert config.correction_max_words == 5000
        assert config.job_ttl_seconds == 3600.0


class TestYaml:
    def test_sections(self, tmp_path: Path) -> None:
        path = tmp_path / "scribe.yaml"
        path.write_text(
            "provider: google-gemini\n"
            "language: de\n"
            "enable_chunking: auto\n"
            "chunking:\n"
            "  threshold_seconds: 900\n"
            "  overlap_seconds: 30\n"
            "  max_concurrent: 5\n"
            "  steps: [[20, 5], [90, 10]]\n"
            "correction:\n"
            "  enabled: true\n"
            "  max_words: 3000\n"
            "polling:\n"
            "  interval_seconds: 2\n"
            "webhook:\n"
            "  port: 9000\n"
        )
        config = load_config(path)
        assert config.provider == "google-gemini"
        assert config.language == "de"
        assert config.enable_chunking is None
        assert config.chunk_threshold_seconds == 900
        assert config.chunk_overlap_seconds == 30
        assert config.max_concurrent_chunks == 5
        assert config.chunk_steps == ((20.0, 5.0), (90.0, 10.0))
        assert config.enable_correction is True
        assert config.correction_max_words == 3000
        assert config.poll_interval_seconds == 2
        assert config.webhook_port == 9000

    def test_cwd_config(self, tmp_path: Path) -> None:
        (tmp_path / "config.yaml").write_text("format: txt\n")
        assert load_config().format == "txt"

    def test_env_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "elsewhere.yaml"
        path.write_text("output_dir: /tmp/out\n")
        monkeypatch.setenv("SCRIBE_CONFIG", str(path))
        assert load_config().output_dir == "/tmp/out"

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("provider: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_non_monotonic_steps(self, tmp_path: Path) -> None:
        path = tmp_path / "steps.yaml"
        path.write_text("chunking:\n  steps: [[60, 10], [30, 5]]\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_section_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("polling: 5\n")
        with pytest.raises(ConfigError):
            load_config(path)


class TestEnvOverrides:
    def test_keys_and_limits(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ELEVENLABS_API_KEY", "el")
        monkeypatch.setenv("GOOGLE_API_KEY", "goog")
        monkeypatch.setenv("MAX_CONCURRENT_CHUNKS", "-1")
        monkeypatch.setenv("ENABLE_CHUNKING", "false")
        monkeypatch.setenv("FFMPEG_PATH", "/opt/ffmpeg")
        config = load_config()
        assert config.elevenlabs_api_key == "el"
        assert config.gemini_api_key == "goog"
        assert config.max_concurrent_chunks == -1
        assert config.enable_chunking is False
        assert config.ffmpeg_path == "/opt/ffmpeg"

    def test_env_beats_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "c.yaml"
        path.write_text("provider: openai\n")
        monkeypatch.setenv("SCRIBE_PROVIDER", "local-whisper")
        assert load_config(path).provider == "local-whisper"

    def test_bad_concurrency(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAX_CONCURRENT_CHUNKS", "many")
        with pytest.raises(ConfigError):
            load_config()


class TestParseTristate:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("true", True), ("ON", True), ("0", False), ("no", False), ("auto", None), ("", None)],
    )
    def test_values(self, value: str, expected: bool | None) -> None:
        assert parse_tristate(value) is expected

    def test_invalid(self) -> None:
        with pytest.raises(ConfigError):
            parse_tristate("sometimes")


class TestResolveConfig:
    def test_cli_overrides(self) -> None:
        base = ScribeConfig(provider="openai", language="en", max_concurrent_chunks=3)
        config = resolve_config(
            base, provider="google-gemini", max_concurrent_chunks=1,
            enable_chunking=False, no_speakers=True,
        )
        assert config.provider == "google-gemini"
        assert config.language == "en"
        assert config.max_concurrent_chunks == 1
        assert config.enable_chunking is False
        assert config.speaker_identification is False
        assert config.timestamps is True

    def test_nothing_set_returns_same(self) -> None:
        base = ScribeConfig()
        assert resolve_config(base) is base


class TestBuilders:
    def test_pipeline_config(self) -> None:
        config = ScribeConfig(
            language="fr", chunk_overlap_seconds=10, correction_max_words=800,
            correction_overlap_words=50, enable_keyterms=True,
        )
        pipeline_config = build_pipeline_config(config, "google-gemini")
        assert pipeline_config.provider == "google-gemini"
        assert pipeline_config.language == "fr"
        assert pipeline_config.enable_keyterms is True
        assert pipeline_config.chunking.overlap_seconds == 10
        assert pipeline_config.correction.max_words == 800

    def test_invalid_correction_settings(self) -> None:
        config = ScribeConfig(correction_max_words=50, correction_overlap_words=100)
        with pytest.raises(ConfigError):
            build_pipeline_config(config, "openai")

    def test_chunking_policy(self) -> None:
        policy = build_chunking_policy(ScribeConfig(chunk_threshold_seconds=300))
        assert policy.threshold_seconds == 300

    def test_backend_settings(self) -> None:
        store = JobStore()
        settings = build_backend_settings(
            ScribeConfig(openai_api_key="o", poll_interval_seconds=1, poll_max_attempts=9),
            job_store=store,
        )
        assert settings.openai_api_key == "o"
        assert settings.poll.interval_seconds == 1
        assert settings.poll.max_attempts == 9
        assert settings.job_store is store
