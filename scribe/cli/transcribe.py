"""Transcribe command for the scribe CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from scribe.backends.base import BackendType
from scribe.backends.registry import default_backend, parse_backend_type
from scribe.config import (
    build_backend_settings,
    build_media_tools,
    build_pipeline_config,
    load_config,
    resolve_config,
)
from scribe.core.pipeline import TranscriptionPipeline
from scribe.core.sources import FileSource, RemoteSource, Source
from scribe.exceptions import (
    BackendError,
    ChunkTranscriptionError,
    ConfigError,
    InputValidationError,
    PollTimeoutError,
    SourceError,
    ToolUnavailableError,
)
from scribe.exit_codes import ExitCode
from scribe.exporters import export_transcript, parse_formats
from scribe.refine.corrector import GeminiCorrector
from scribe.refine.keyterms import GeminiKeytermExtractor


def _exit_code_for(error: Exception) -> ExitCode:
    if isinstance(error, ChunkTranscriptionError):
        error = error.__cause__ or error  # type: ignore[assignment]
    if isinstance(error, PollTimeoutError):
        return ExitCode.ERROR_TIMEOUT
    if isinstance(error, ToolUnavailableError):
        return ExitCode.ERROR_TOOL
    if isinstance(error, (SourceError, InputValidationError)):
        return ExitCode.ERROR_FILE
    if isinstance(error, ConfigError):
        return ExitCode.ERROR_CONFIG
    if isinstance(error, (BackendError, ChunkTranscriptionError)):
        return ExitCode.ERROR_BACKEND
    return ExitCode.ERROR_GENERAL


def transcribe_cmd(
    audio_file: Annotated[
        Path | None, typer.Argument(help="Path to the audio or video file."),
    ] = None,
    url: Annotated[
        str | None,
        typer.Option("--url", "-u", help="Fetch audio from a video page instead."),
    ] = None,
    provider: Annotated[
        str | None,
        typer.Option("--provider", "-p", help="Backend: elevenlabs, google-gemini, openai, local-whisper."),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Backend model override."),
    ] = None,
    language: Annotated[
        str | None,
        typer.Option("--language", "-l", help="Target language code."),
    ] = None,
    format: Annotated[
        str | None,
        typer.Option("--format", "-f", help="Output format(s): json,txt,srt."),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Output directory."),
    ] = None,
    chunking: Annotated[
        bool | None,
        typer.Option(
            "--chunking/--no-chunking",
            help="Force chunking on or off (default: decide from duration).",
        ),
    ] = None,
    concurrency: Annotated[
        int | None,
        typer.Option(
            "--concurrency", "-c",
            help="Chunks in flight: 1 sequential, N bounded, -1 unbounded.",
        ),
    ] = None,
    keyterms: Annotated[
        bool | None,
        typer.Option("--keyterms/--no-keyterms", help="Extract keyterm hints first."),
    ] = None,
    correct: Annotated[
        bool | None,
        typer.Option("--correct/--no-correct", help="Run the correction pass."),
    ] = None,
    audio_correction: Annotated[
        bool | None,
        typer.Option(
            "--audio-correction/--text-correction",
            help="Correct against the audio instead of text only.",
        ),
    ] = None,
    optimize: Annotated[
        bool | None,
        typer.Option("--optimize/--no-optimize", help="Denoise and normalize first."),
    ] = None,
    no_speakers: Annotated[
        bool,
        typer.Option("--no-speakers", help="Disable speaker identification."),
    ] = False,
    no_timestamps: Annotated[
        bool,
        typer.Option("--no-timestamps", help="Do not ask for timestamps."),
    ] = False,
    instructions: Annotated[
        str | None,
        typer.Option("--instructions", help="Extra instructions for the backend."),
    ] = None,
) -> None:
    """Transcribe a single file or URL."""
    if (audio_file is None) == (url is None):
        typer.echo("Error: pass exactly one of FILE or --url.", err=True)
        raise typer.Exit(code=ExitCode.ERROR_ARGS)

    try:
        config = resolve_config(
            load_config(),
            provider=provider,
            model=model,
            language=language,
            format=format,
            output_dir=str(output) if output is not None else None,
            max_concurrent_chunks=concurrency,
            enable_chunking=chunking,
            enable_keyterms=keyterms,
            enable_correction=correct,
            enable_audio_correction=audio_correction,
            optimize_audio=optimize,
            no_speakers=no_speakers,
            no_timestamps=no_timestamps,
            custom_instructions=instructions,
        )
        parse_formats(config.format)
    except (ConfigError, ValueError) as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=ExitCode.ERROR_CONFIG) from None

    source: Source
    if audio_file is not None:
        if not audio_file.is_file():
            typer.echo(f"Error: File not found: {audio_file}", err=True)
            raise typer.Exit(code=ExitCode.ERROR_FILE)
        source = FileSource(audio_file)
    else:
        try:
            source = RemoteSource(url or "")
        except SourceError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(code=ExitCode.ERROR_ARGS) from None

    settings = build_backend_settings(config)
    try:
        if (
            config.provider
            and parse_backend_type(config.provider) is BackendType.ELEVENLABS_ASYNC
        ):
            typer.echo(
                "Error: elevenlabs-async results arrive by webhook and this process "
                "has no receiver. Run the pipeline inside the `scribe serve` process, "
                "or use --provider elevenlabs.",
                err=True,
            )
            raise typer.Exit(code=ExitCode.ERROR_CONFIG)
        backend = default_backend(settings, config.provider)
        pipeline_config = build_pipeline_config(config, backend.backend_type.value)
    except (ConfigError, BackendError) as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=ExitCode.ERROR_CONFIG) from None

    extractor = None
    if config.enable_keyterms and config.gemini_api_key:
        extractor = GeminiKeytermExtractor(config.gemini_api_key, config.language)
    corrector = None
    if config.enable_correction and config.gemini_api_key:
        corrector = GeminiCorrector(config.gemini_api_key, config.language)
    if (config.enable_keyterms or config.enable_correction) and not config.gemini_api_key:
        typer.echo("Warning: GEMINI_API_KEY is not set; keyterms and correction are off.", err=True)

    pipeline = TranscriptionPipeline(
        pipeline_config,
        backend,
        keyterm_extractor=extractor,
        corrector=corrector,
        tools=build_media_tools(config),
    )
    try:
        result = pipeline.run(source)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=_exit_code_for(e)) from None

    written = export_transcript(result, config.format, Path(config.output_dir))
    for path in written:
        typer.echo(f"Wrote {path}")
