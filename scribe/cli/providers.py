"""Providers command: list backends and whether they can run."""

from __future__ import annotations

import typer

from scribe.backends.base import BackendType
from scribe.backends.registry import PREFERENCE_ORDER, available_backends
from scribe.config import build_backend_settings, load_config


def providers_cmd() -> None:
    """List transcription backends."""
    config = load_config()
    status = available_backends(build_backend_settings(config))
    default = next((t for t in PREFERENCE_ORDER if status[t]), None)
    for backend_type, configured in status.items():
        marker = "*" if backend_type == default else " "
        if configured:
            state = "configured"
        elif backend_type is BackendType.ELEVENLABS_ASYNC and config.elevenlabs_api_key:
            state = "webhook only (scribe serve)"
        else:
            state = "missing credentials"
        typer.echo(f"{marker} {backend_type.value:<18} {state}")
