"""TXT exporter for pipeline results."""

from __future__ import annotations

from typing import IO

from scribe.data_models import PipelineResult


def export_txt(result: PipelineResult, output: IO[str]) -> None:
    output.write(result.text.rstrip("\n") + "\n")
