"""Export dispatch for transcription results."""

from __future__ import annotations

import logging
from collections.abc import Callable
from io import StringIO
from pathlib import Path

from scribe.data_models import PipelineResult
from scribe.exporters.json_export import export_json
from scribe.exporters.srt_export import export_srt
from scribe.exporters.txt_export import export_txt

logger = logging.getLogger(__name__)

_EXPORTERS: dict[str, Callable[..., None]] = {
    "json": export_json,
    "txt": export_txt,
    "srt": export_srt,
}


def parse_formats(formats: str) -> list[str]:
    format_list = [f.strip().lower() for f in formats.split(",") if f.strip()]
    for fmt in format_list:
        if fmt not in _EXPORTERS:
            raise ValueError(f"Unknown export format: {fmt!r}")
    return format_list


def export_transcript(
    result: PipelineResult,
    formats: str,
    output_dir: Path | None = None,
) -> str | list[Path]:
    """Export a pipeline result.

    Without ``output_dir`` a single ``json`` format is rendered and returned
    as a string. Otherwise one file per format is written and the paths are
    returned; ``srt`` is skipped when the result has no structured segments.
    """
    format_list = parse_formats(formats)

    if output_dir is None:
        if format_list != ["json"]:
            raise ValueError("An output directory is required for non-JSON formats")
        buf = StringIO()
        export_json(result, buf)
        return buf.getvalue()

    output_dir.mkdir(parents=True, exist_ok=True)
    stem = Path(result.file_name).stem
    written: list[Path] = []
    for fmt in format_list:
        if fmt == "srt" and not result.segments:
            logger.warning("Skipping srt export: %s has no timed segments", result.file_name)
            continue
        out_path = output_dir / f"{stem}.{fmt}"
        with open(out_path, "w", encoding="utf-8") as f:
            _EXPORTERS[fmt](result, f)
        written.append(out_path)
    return written
