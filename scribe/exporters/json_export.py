"""JSON exporter for pipeline results."""

from __future__ import annotations

import json
from typing import IO

from scribe.data_models import PipelineResult


def export_json(result: PipelineResult, output: IO[str]) -> None:
    """Write the transcript, its metadata and any segments as JSON."""
    meta = result.metadata
    metadata_dict = {
        "file_name": result.file_name,
        "provider": meta.provider,
        "model": meta.model,
        "chunk_models": meta.chunk_models,
        "audio_duration_seconds": meta.audio_duration_seconds,
        "processing_time_seconds": meta.processing_time_seconds,
        "chunked": meta.chunked,
        "chunk_count": meta.chunk_count,
        "chunk_duration_seconds": meta.chunk_duration_seconds,
        "overlap_seconds": meta.overlap_seconds,
        "keyterms": meta.keyterms,
        "keyterm_failures": meta.keyterm_failures,
        "correction_count": meta.correction_count,
        "correction_time_seconds": meta.correction_time_seconds,
        "correction_failed_windows": meta.correction_failed_windows,
        "optimization_failed": meta.optimization_failed,
        "word_count": meta.word_count,
        "was_truncated": meta.was_truncated,
        "created_at": meta.created_at.isoformat(),
    }

    segments_list = None
    if result.segments is not None:
        segments_list = []
        for seg in result.segments:
            seg_dict: dict[str, object] = {
                "start": seg.start_time,
                "end": seg.end_time,
                "text": seg.text,
            }
            if seg.speaker_id is not None:
                seg_dict["speaker"] = seg.speaker_id
            segments_list.append(seg_dict)

    data = {
        "metadata": metadata_dict,
        "text": result.text,
        "segments": segments_list,
    }

    json.dump(data, output, indent=2, ensure_ascii=False)
