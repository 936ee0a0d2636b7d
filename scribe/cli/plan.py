"""Plan command: show how a file would be chunked."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from scribe.config import build_chunking_policy, build_media_tools, load_config
from scribe.core.audio import probe_duration
from scribe.core.chunking import plan_for_duration, should_chunk
from scribe.core.timestamps import format_timestamp
from scribe.exceptions import ConfigError, SourceError, ToolUnavailableError
from scribe.exit_codes import ExitCode


def plan_cmd(
    audio_file: Annotated[Path, typer.Argument(help="Path to the audio file.")],
    overlap: Annotated[
        float | None,
        typer.Option("--overlap", help="Overlap in seconds between chunks."),
    ] = None,
) -> None:
    """Probe the duration and print the chunk windows."""
    if not audio_file.is_file():
        typer.echo(f"Error: File not found: {audio_file}", err=True)
        raise typer.Exit(code=ExitCode.ERROR_FILE)
    try:
        config = load_config()
        if overlap is not None:
            config = config.with_overrides(chunk_overlap_seconds=overlap)
        policy = build_chunking_policy(config)
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=ExitCode.ERROR_CONFIG) from None

    try:
        duration = probe_duration(audio_file, build_media_tools(config))
    except ToolUnavailableError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=ExitCode.ERROR_TOOL) from None
    except SourceError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=ExitCode.ERROR_FILE) from None

    chunked = should_chunk(
        duration, policy.threshold_seconds, policy.safety_buffer_seconds,
    )
    typer.echo(
        f"{audio_file.name}: {duration:.1f}s, "
        f"{'chunked' if chunked else 'single call'} "
        f"(threshold {policy.threshold_seconds:.0f}s)"
    )
    specs, chunk_seconds = plan_for_duration(duration, policy)
    typer.echo(f"Chunk length {chunk_seconds:.0f}s, overlap {policy.overlap_seconds:.0f}s")
    for spec in specs:
        typer.echo(
            f"  {spec.index + 1:>3}/{spec.total} "
            f"{format_timestamp(spec.start_time)} - {format_timestamp(spec.end_time)} "
            f"({spec.start_time:.1f}s-{spec.end_time:.1f}s)"
        )
