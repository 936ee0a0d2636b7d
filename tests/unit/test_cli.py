"""Tests for the scribe CLI."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from scribe.cli.app import app
from scribe.config import ScribeConfig
from scribe.data_models import PipelineMetadata, PipelineResult
from scribe.exceptions import (
    BackendError,
    ChunkTranscriptionError,
    PollTimeoutError,
    SourceError,
    ToolUnavailableError,
)
from scribe.exit_codes import ExitCode

runner = CliRunner()


def _audio(tmp_path: Path) -> Path:
    audio = tmp_path / "talk.mp3"
    audio.write_bytes(b"\x00" * 100)
    return audio


def _result() -> PipelineResult:
    return PipelineResult(
        text="[0:00] hello",
        file_name="talk.mp3",
        metadata=PipelineMetadata(provider="openai"),
    )


class TestVersion:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "scribe 1.0.0" in result.output


class TestTranscribeArguments:
    def test_missing_file_exits_3(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["transcribe", str(tmp_path / "nonexistent.mp3")])
        assert result.exit_code == ExitCode.ERROR_FILE

    def test_no_input_exits_2(self) -> None:
        result = runner.invoke(app, ["transcribe"])
        assert result.exit_code == ExitCode.ERROR_ARGS

    def test_file_and_url_exits_2(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["transcribe", str(_audio(tmp_path)), "--url", "https://example.com/v"],
        )
        assert result.exit_code == ExitCode.ERROR_ARGS

    def test_bad_url_exits_2(self) -> None:
        result = runner.invoke(app, ["transcribe", "--url", "ftp://example.com/v"])
        assert result.exit_code == ExitCode.ERROR_ARGS

    @patch("scribe.cli.transcribe.load_config", return_value=ScribeConfig(openai_api_key="o"))
    def test_unknown_format_exits_7(self, mock_load: MagicMock, tmp_path: Path) -> None:
        result = runner.invoke(app, ["transcribe", str(_audio(tmp_path)), "-f", "docx"])
        assert result.exit_code == ExitCode.ERROR_CONFIG

    @patch("scribe.cli.transcribe.load_config", return_value=ScribeConfig())
    def test_unconfigured_provider_exits_7(self, mock_load: MagicMock, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["transcribe", str(_audio(tmp_path)), "--provider", "openai"],
        )
        assert result.exit_code == ExitCode.ERROR_CONFIG

    @patch("scribe.cli.transcribe.TranscriptionPipeline")
    @patch(
        "scribe.cli.transcribe.load_config",
        return_value=ScribeConfig(elevenlabs_api_key="k"),
    )
    def test_async_elevenlabs_rejected(
        self, mock_load: MagicMock, mock_pipeline: MagicMock, tmp_path: Path,
    ) -> None:
        result = runner.invoke(
            app, ["transcribe", str(_audio(tmp_path)), "--provider", "elevenlabs-async"],
        )
        assert result.exit_code == ExitCode.ERROR_CONFIG
        mock_pipeline.assert_not_called()


@patch("scribe.cli.transcribe.TranscriptionPipeline")
@patch("scribe.cli.transcribe.load_config")
class TestTranscribeRun:
    def test_writes_outputs(
        self, mock_load: MagicMock, mock_pipeline_cls: MagicMock, tmp_path: Path,
    ) -> None:
        mock_load.return_value = ScribeConfig(openai_api_key="o", language="en")
        mock_pipeline_cls.return_value.run.return_value = _result()
        out_dir = tmp_path / "out"

        result = runner.invoke(
            app,
            [
                "transcribe", str(_audio(tmp_path)),
                "-o", str(out_dir), "-f", "json,txt",
                "--concurrency=-1", "--no-chunking", "--no-optimize",
            ],
        )

        assert result.exit_code == 0, result.output
        assert (out_dir / "talk.json").exists()
        assert (out_dir / "talk.txt").read_text() == "[0:00] hello\n"
        config = mock_pipeline_cls.call_args[0][0]
        assert config.provider == "openai"
        assert config.language == "en"
        assert config.max_concurrent_chunks == -1
        assert config.enable_chunking is False
        assert config.optimize_audio is False

    def test_yaml_values_used_when_flags_absent(
        self, mock_load: MagicMock, mock_pipeline_cls: MagicMock, tmp_path: Path,
    ) -> None:
        mock_load.return_value = ScribeConfig(
            openai_api_key="o", max_concurrent_chunks=2, output_dir=str(tmp_path),
        )
        mock_pipeline_cls.return_value.run.return_value = _result()
        result = runner.invoke(app, ["transcribe", str(_audio(tmp_path))])
        assert result.exit_code == 0, result.output
        config = mock_pipeline_cls.call_args[0][0]
        assert config.max_concurrent_chunks == 2
        assert config.enable_chunking is None

    def test_poll_timeout_inside_chunk_exits_6(
        self, mock_load: MagicMock, mock_pipeline_cls: MagicMock, tmp_path: Path,
    ) -> None:
        mock_load.return_value = ScribeConfig(openai_api_key="o")
        error = ChunkTranscriptionError(1, 3, 580.0, 1220.0, "timed out")
        error.__cause__ = PollTimeoutError("job", 360, 1800.0)
        mock_pipeline_cls.return_value.run.side_effect = error
        result = runner.invoke(app, ["transcribe", str(_audio(tmp_path))])
        assert result.exit_code == ExitCode.ERROR_TIMEOUT

    def test_error_mapping(
        self, mock_load: MagicMock, mock_pipeline_cls: MagicMock, tmp_path: Path,
    ) -> None:
        mock_load.return_value = ScribeConfig(openai_api_key="o")
        cases = [
            (ToolUnavailableError("ffmpeg not found"), ExitCode.ERROR_TOOL),
            (SourceError("empty"), ExitCode.ERROR_FILE),
            (BackendError("HTTP 500"), ExitCode.ERROR_BACKEND),
            (ChunkTranscriptionError(0, 2, 0.0, 620.0, "cancelled"), ExitCode.ERROR_BACKEND),
            (RuntimeError("unexpected"), ExitCode.ERROR_GENERAL),
        ]
        audio = _audio(tmp_path)
        for error, expected in cases:
            mock_pipeline_cls.return_value.run.side_effect = error
            result = runner.invoke(app, ["transcribe", str(audio)])
            assert result.exit_code == expected, type(error).__name__


class TestPlanCommand:
    @patch("scribe.cli.plan.probe_duration", return_value=1500.0)
    @patch("scribe.cli.plan.load_config", return_value=ScribeConfig())
    def test_prints_windows(
        self, mock_load: MagicMock, mock_probe: MagicMock, tmp_path: Path,
    ) -> None:
        result = runner.invoke(app, ["plan", str(_audio(tmp_path))])
        assert result.exit_code == 0, result.output
        assert "chunked" in result.output
        assert "1/3 [0:00] - [10:20]" in result.output
        assert "3/3 [19:40] - [25:00]" in result.output

    @patch("scribe.cli.plan.probe_duration", side_effect=ToolUnavailableError("ffprobe not found"))
    @patch("scribe.cli.plan.load_config", return_value=ScribeConfig())
    def test_missing_ffprobe(
        self, mock_load: MagicMock, mock_probe: MagicMock, tmp_path: Path,
    ) -> None:
        result = runner.invoke(app, ["plan", str(_audio(tmp_path))])
        assert result.exit_code == ExitCode.ERROR_TOOL


class TestProvidersCommand:
    @patch("scribe.cli.providers.load_config", return_value=ScribeConfig(gemini_api_key="g"))
    def test_lists_backends(self, mock_load: MagicMock) -> None:
        result = runner.invoke(app, ["providers"])
        assert result.exit_code == 0
        assert "* google-gemini" in result.output
        assert "elevenlabs " in result.output
        assert "missing credentials" in result.output

    @patch(
        "scribe.cli.providers.load_config",
        return_value=ScribeConfig(elevenlabs_api_key="k"),
    )
    def test_async_elevenlabs_needs_receiver(self, mock_load: MagicMock) -> None:
        result = runner.invoke(app, ["providers"])
        assert result.exit_code == 0
        assert "* elevenlabs " in result.output
        assert "webhook only (scribe serve)" in result.output


class TestServeCommand:
    @patch("scribe.cli.serve.uvicorn.run")
    @patch("scribe.cli.serve.load_config", return_value=ScribeConfig(webhook_secret="s"))
    def test_runs_uvicorn(self, mock_load: MagicMock, mock_run: MagicMock) -> None:
        result = runner.invoke(app, ["serve", "--port", "9100"])
        assert result.exit_code == 0, result.output
        kwargs = mock_run.call_args[1]
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 9100
