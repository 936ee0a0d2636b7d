"""Transcription pipeline orchestrator: Preprocess -> Transcribe -> Postprocess."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

from scribe.backends.base import MAX_KEYTERMS, TranscribeOptions, TranscriptionBackend
from scribe.core.audio import (
    MediaTools,
    OptimizationSettings,
    optimize_audio,
    probe_duration,
    release_artifacts,
    split_audio,
)
from scribe.core.chunking import ChunkingPolicy, plan_for_duration, should_chunk
from scribe.core.correction import CorrectionSettings, correct_transcript
from scribe.core.executor import DEFAULT_MAX_CONCURRENT, ChunkTask, execute_chunks
from scribe.core.sources import AcquiredMedia, Source
from scribe.core.stitching import DEFAULT_DEDUP, DedupSettings, merge_segments, stitch
from scribe.core.timestamps import renormalize
from scribe.core.workspace import RunWorkspace
from scribe.data_models import (
    AudioArtifact,
    ChunkResult,
    PipelineMetadata,
    PipelineResult,
    StructuredSegment,
    TranscriptionInput,
    count_words,
)
from scribe.exceptions import CleanupError, OptimizationError, SourceError, ToolUnavailableError
from scribe.refine.corrector import Corrector
from scribe.refine.keyterms import MAX_KEYTERMS_PER_CHUNK, KeytermExtractor

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    PREPROCESS = "preprocess"
    TRANSCRIBE = "transcribe"
    POSTPROCESS = "postprocess"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineConfig:
    provider: str
    language: str | None = None
    speaker_identification: bool = True
    timestamps: bool = True
    custom_instructions: str | None = None
    enable_keyterms: bool = False
    enable_correction: bool = False
    enable_audio_correction: bool = False
    # None: decide from duration.
    enable_chunking: bool | None = None
    optimize_audio: bool = True
    chunking: ChunkingPolicy = field(default_factory=ChunkingPolicy)
    max_concurrent_chunks: int = DEFAULT_MAX_CONCURRENT
    correction: CorrectionSettings = field(default_factory=CorrectionSettings)
    dedup: DedupSettings = DEFAULT_DEDUP
    optimization: OptimizationSettings = field(default_factory=OptimizationSettings)
    duration_seconds: float | None = None


@dataclass
class _Run:
    config: PipelineConfig
    workspace: RunWorkspace
    metadata: PipelineMetadata
    audio_path: Path | None = None
    mime_type: str = "audio/mpeg"
    chunked: bool = False
    keyterms: list[str] = field(default_factory=list)
    text: str = ""
    segments: list[StructuredSegment] | None = None
    single_input: TranscriptionInput | None = None


def _release_chunks(artifacts: list[AudioArtifact]) -> None:
    failed = release_artifacts(artifacts)
    if failed:
        raise CleanupError(f"{failed} chunk files could not be deleted")


def _merge_keyterms(chunks: list[ChunkResult], limit: int = MAX_KEYTERMS) -> list[str]:
    seen: dict[str, None] = {}
    for chunk in chunks:
        for term in chunk.keyterms or ():
            seen.setdefault(term, None)
    return list(seen)[:limit]


def _extract_keyterms(
    extractor: KeytermExtractor,
    data: TranscriptionInput,
    limit: int,
    cancel: threading.Event,
) -> list[str] | None:
    """Return extracted keyterms, or None when extraction failed."""
    try:
        return extractor.extract(data, limit, cancel)
    except Exception as e:
        logger.warning(
            "Keyterm extraction failed for %s, continuing without: %s",
            data.file_name, e,
        )
        return None


class TranscriptionPipeline:
    def __init__(
        self,
        config: PipelineConfig,
        backend: TranscriptionBackend,
        keyterm_extractor: KeytermExtractor | None = None,
        corrector: Corrector | None = None,
        tools: MediaTools | None = None,
        workspace_dir: Path | None = None,
    ) -> None:
        self._config = config
        self._backend = backend
        self._keyterms = keyterm_extractor
        self._corrector = corrector
        self._tools = tools or MediaTools()
        self._workspace_dir = workspace_dir
        self._state = PipelineState.PREPROCESS
        self._cancel = threading.Event()

    @property
    def state(self) -> PipelineState:
        return self._state

    def _enter(self, state: PipelineState) -> None:
        logger.debug("Pipeline %s -> %s", self._state.value, state.value)
        self._state = state

    def cancel(self) -> None:
        self._cancel.set()

    def run(self, source: Source) -> PipelineResult:
        start_time = time.monotonic()
        self._cancel.clear()
        self._enter(PipelineState.PREPROCESS)
        workspace = RunWorkspace(self._workspace_dir)
        run = _Run(
            config=self._config,
            workspace=workspace,
            metadata=PipelineMetadata(provider=self._config.provider),
        )
        try:
            media = self._preprocess(source, run)
            self._enter(PipelineState.TRANSCRIBE)
            self._transcribe(run)
            self._enter(PipelineState.POSTPROCESS)
            self._postprocess(run)
            self._enter(PipelineState.DONE)
        except BaseException:
            logger.error("Pipeline failed during %s", self._state.value)
            self._enter(PipelineState.FAILED)
            raise
        finally:
            workspace.release()

        metadata = run.metadata
        metadata.processing_time_seconds = time.monotonic() - start_time
        metadata.word_count = count_words(run.text)
        logger.info(
            "Total pipeline: %.1fs (%d words, %d chunks)",
            metadata.processing_time_seconds, metadata.word_count, metadata.chunk_count,
        )
        return PipelineResult(
            text=run.text,
            file_name=media.file_name,
            metadata=metadata,
            segments=run.segments,
        )

    # Preprocess

    def _preprocess(self, source: Source, run: _Run) -> AcquiredMedia:
        config = run.config
        media = source.acquire(run.workspace, self._tools)
        run.audio_path = media.path
        run.mime_type = media.mime_type

        if config.optimize_audio:
            target = run.workspace.path_for(f"{Path(media.file_name).stem}_optimized.wav")
            try:
                run.audio_path = optimize_audio(
                    media.path, target, config.optimization, self._tools,
                )
                run.mime_type = "audio/wav"
            except OptimizationError as e:
                logger.warning("Optimization failed, using original audio: %s", e)
                run.metadata.optimization_failed = True

        # Optimization trims silence, so a reported duration only holds for the original.
        duration = media.duration_seconds if run.audio_path == media.path else None
        if duration is None:
            try:
                duration = probe_duration(run.audio_path, self._tools)
            except (SourceError, ToolUnavailableError) as e:
                if config.enable_chunking is not False:
                    raise
                logger.warning("Duration unknown, continuing without chunking: %s", e)
        run.config = replace(config, duration_seconds=duration)
        run.metadata.audio_duration_seconds = duration or 0.0

        if config.enable_chunking is None:
            policy = config.chunking
            run.chunked = duration is not None and should_chunk(
                duration, policy.threshold_seconds, policy.safety_buffer_seconds,
            )
        else:
            run.chunked = config.enable_chunking
        logger.info(
            "Duration %s, chunking %s",
            f"{duration:.1f}s" if duration else "unknown",
            "enabled" if run.chunked else "disabled",
        )

        if not run.chunked:
            run.single_input = TranscriptionInput(
                data=run.audio_path.read_bytes(),
                mime_type=run.mime_type,
                file_name=(
                    media.file_name if run.audio_path == media.path
                    else run.audio_path.name
                ),
            )
            if config.enable_keyterms and self._keyterms is not None:
                keyterms = _extract_keyterms(
                    self._keyterms, run.single_input, MAX_KEYTERMS, self._cancel,
                )
                if keyterms is None:
                    run.metadata.keyterm_failures += 1
                else:
                    run.keyterms = keyterms
        return media

    # Transcribe

    def _options(
        self,
        config: PipelineConfig,
        duration: float | None,
        keyterms: list[str],
    ) -> TranscribeOptions:
        return TranscribeOptions(
            language=config.language,
            speaker_identification=config.speaker_identification,
            timestamps=config.timestamps,
            duration_seconds=duration,
            custom_instructions=config.custom_instructions,
            keyterms=tuple(keyterms[:MAX_KEYTERMS]),
        )

    def _transcribe(self, run: _Run) -> None:
        if run.chunked:
            self._transcribe_chunked(run)
            return

        data = run.single_input
        if data is None:
            raise SourceError("No audio was prepared for transcription")
        self._backend.validate(data)
        options = self._options(run.config, run.config.duration_seconds, run.keyterms)
        result = self._backend.transcribe(data, options, self._cancel)
        run.text = result.text
        run.segments = list(result.segments) if result.segments else None
        run.metadata.model = result.model
        run.metadata.chunk_models = [result.model]
        run.metadata.was_truncated = result.was_truncated
        run.metadata.keyterms = list(run.keyterms)

    def _chunk_task(self, config: PipelineConfig) -> ChunkTask:
        audio_correction = (
            config.enable_correction
            and config.enable_audio_correction
            and self._corrector is not None
        )

        def task(artifact: AudioArtifact, cancel: threading.Event) -> ChunkResult:
            spec = artifact.spec
            data = artifact.read_input()
            self._backend.validate(data)
            keyterms: list[str] = []
            keyterms_failed = False
            if config.enable_keyterms and self._keyterms is not None:
                extracted = _extract_keyterms(
                    self._keyterms, data, MAX_KEYTERMS_PER_CHUNK, cancel,
                )
                keyterms_failed = extracted is None
                keyterms = extracted or []
            options = self._options(config, spec.duration, keyterms)
            result = self._backend.transcribe(data, options, cancel)

            extra: dict[str, object] = {
                "keyterms": tuple(keyterms) or None,
                "keyterms_failed": keyterms_failed,
            }
            if audio_correction:
                t0 = time.monotonic()
                try:
                    corrected = self._corrector.correct(result.text, audio=data)
                except Exception as e:
                    logger.warning(
                        "Audio correction failed for chunk %d/%d, keeping raw text: %s",
                        spec.index + 1, spec.total, e,
                    )
                    extra["correction_count"] = None
                else:
                    result = replace(result, text=corrected.corrected_text)
                    extra["correction_count"] = corrected.correction_count
                extra["correction_time_seconds"] = time.monotonic() - t0
            logger.info("Chunk %d/%d transcribed", spec.index + 1, spec.total)
            return ChunkResult.from_backend(spec, result, **extra)

        return task

    def _transcribe_chunked(self, run: _Run) -> None:
        config = run.config
        if config.duration_seconds is None:
            raise SourceError("Chunking requires a known duration")
        if run.audio_path is None:
            raise SourceError("No audio was prepared for splitting")

        specs, chunk_seconds = plan_for_duration(config.duration_seconds, config.chunking)
        logger.info(
            "Splitting %.1fs into %d chunks of %.0fs (+%.0fs overlap)",
            config.duration_seconds, len(specs), chunk_seconds,
            config.chunking.overlap_seconds,
        )
        chunk_dir = run.workspace.path_for("chunks")
        chunk_dir.mkdir()
        artifacts = split_audio(
            run.audio_path, specs, chunk_dir, run.mime_type, self._tools,
        )
        run.workspace.register("chunk files", lambda: _release_chunks(artifacts))

        results = execute_chunks(
            artifacts,
            self._chunk_task(config),
            config.max_concurrent_chunks,
            self._cancel,
        )
        release_artifacts(artifacts)

        renormalized = [renormalize(chunk) for chunk in results]
        run.text = stitch(renormalized, config.dedup)
        run.segments = merge_segments(renormalized)

        metadata = run.metadata
        metadata.chunked = True
        metadata.chunk_count = len(specs)
        metadata.chunk_duration_seconds = chunk_seconds
        metadata.overlap_seconds = config.chunking.overlap_seconds
        metadata.chunk_models = [chunk.model for chunk in results]
        metadata.model = next((m for m in metadata.chunk_models if m), None)
        metadata.was_truncated = any(chunk.was_truncated for chunk in results)
        metadata.keyterms = _merge_keyterms(results)
        metadata.keyterm_failures = sum(chunk.keyterms_failed for chunk in results)
        for chunk in results:
            if chunk.correction_time_seconds is None:
                continue
            metadata.correction_time_seconds += chunk.correction_time_seconds
            if chunk.correction_count is None:
                metadata.correction_failed_windows += 1
            else:
                metadata.correction_count += chunk.correction_count

    # Postprocess

    def _postprocess(self, run: _Run) -> None:
        config = run.config
        if not config.enable_correction or self._corrector is None:
            return
        if config.enable_audio_correction and run.chunked:
            logger.info(
                "Audio-aware correction already applied per chunk (%d corrections)",
                run.metadata.correction_count,
            )
            return

        metadata = run.metadata
        if config.enable_audio_correction and run.single_input is not None:
            t0 = time.monotonic()
            try:
                result = self._corrector.correct(run.text, audio=run.single_input)
            except Exception as e:
                logger.warning("Audio correction failed, keeping raw text: %s", e)
                metadata.correction_failed_windows += 1
            else:
                run.text = result.corrected_text
                metadata.correction_count += result.correction_count
            metadata.correction_time_seconds += time.monotonic() - t0
            return

        outcome = correct_transcript(run.text, self._corrector, config.correction)
        run.text = outcome.text
        metadata.correction_count += outcome.correction_count
        metadata.correction_time_seconds += outcome.correction_time_seconds
        metadata.correction_failed_windows += outcome.failed_windows
