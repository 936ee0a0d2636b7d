"""SRT exporter for pipeline results."""

from __future__ import annotations

from typing import IO

from scribe.data_models import PipelineResult


def _format_srt_timestamp(seconds: float) -> str:
    """Format seconds as HH:MM:SS,mmm for SRT."""
    whole, ms = divmod(round(seconds * 1000), 1000)
    minutes, secs = divmod(whole, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{ms:03d}"


def export_srt(result: PipelineResult, output: IO[str]) -> None:
    """Write structured segments as SRT cues."""
    if not result.segments:
        raise ValueError("SRT export needs structured segments")
    entries = []
    for i, seg in enumerate(result.segments, start=1):
        start_ts = _format_srt_timestamp(seg.start_time)
        end_ts = _format_srt_timestamp(seg.end_time)
        text = f"[{seg.speaker_id}] {seg.text}" if seg.speaker_id else seg.text
        entries.append(f"{i}\n{start_ts} --> {end_ts}\n{text}")
    output.write("\n\n".join(entries) + "\n")
