"""Main CLI application."""

from __future__ import annotations

import logging

import typer

from scribe import __version__
from scribe.cli.plan import plan_cmd
from scribe.cli.providers import providers_cmd
from scribe.cli.serve import serve_cmd
from scribe.cli.transcribe import transcribe_cmd

app = typer.Typer(
    name="scribe",
    help="Transcribe long recordings through pluggable speech-to-text backends.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"scribe {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging.",
    ),
) -> None:
    """Transcribe long recordings through pluggable speech-to-text backends."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


app.command("transcribe")(transcribe_cmd)
app.command("plan")(plan_cmd)
app.command("serve")(serve_cmd)
app.command("providers")(providers_cmd)
