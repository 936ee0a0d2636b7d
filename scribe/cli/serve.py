"""Serve command: run the webhook receiver."""

from __future__ import annotations

from typing import Annotated

import typer
import uvicorn

from scribe.config import load_config
from scribe.jobs.store import JobStore
from scribe.webhooks.app import create_app


def serve_cmd(
    host: Annotated[
        str | None, typer.Option("--host", help="Interface to bind."),
    ] = None,
    port: Annotated[
        int | None, typer.Option("--port", help="Port to listen on."),
    ] = None,
) -> None:
    """Receive async transcription results over HTTP."""
    config = load_config()
    if not config.webhook_secret:
        typer.echo("Warning: ELEVENLABS_WEBHOOK_SECRET is not set; deliveries will be rejected.", err=True)
    store = JobStore(
        ttl_seconds=config.job_ttl_seconds,
        sweep_interval_seconds=config.job_sweep_interval_seconds,
    )
    store.start_sweeper()
    try:
        uvicorn.run(
            create_app(store, config.webhook_secret),
            host=host or config.webhook_host,
            port=port or config.webhook_port,
        )
    finally:
        store.stop_sweeper()
