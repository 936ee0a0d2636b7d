"""ffmpeg/ffprobe wrappers: duration probe, lossless splitting, optimization."""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from scribe.data_models import AudioArtifact, ChunkSpec
from scribe.exceptions import OptimizationError, SourceError, ToolUnavailableError

logger = logging.getLogger(__name__)

_INSTALL_HINT = (
    "Install FFmpeg (https://ffmpeg.org/download.html) or point "
    "FFMPEG_PATH / FFPROBE_PATH at the binaries."
)

MIME_BY_EXTENSION: dict[str, str] = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".m4a": "audio/mp4",
    ".aac": "audio/aac",
    ".flac": "audio/flac",
    ".ogg": "audio/ogg",
    ".opus": "audio/ogg",
    ".webm": "audio/webm",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".mkv": "video/x-matroska",
}

_EXTENSION_BY_MIME: dict[str, str] = {
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/wav": ".wav",
    "audio/ogg": ".ogg",
    "audio/webm": ".webm",
    "audio/mp4": ".m4a",
    "audio/aac": ".aac",
    "audio/flac": ".flac",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/quicktime": ".mov",
}


@dataclass(frozen=True)
class MediaTools:
    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    timeout: float = 600.0


@dataclass(frozen=True)
class OptimizationSettings:
    sample_rate: int = 16000
    loudness_lufs: float = -23.0
    noise_reduction: bool = True
    noise_reduction_strength: float = 0.21
    mono: bool = True

    def filter_chain(self) -> str:
        filters = []
        if self.noise_reduction:
            filters.append(f"afftdn=nr={self.noise_reduction_strength}")
        filters.append(f"loudnorm=I={self.loudness_lufs:g}")
        filters.append(
            "silenceremove=stop_periods=-1:stop_duration=1:stop_threshold=-50dB"
        )
        return ",".join(filters)


def guess_mime_type(file_name: str, default: str = "audio/mpeg") -> str:
    return MIME_BY_EXTENSION.get(Path(file_name).suffix.lower(), default)


def sanitize_file_name(file_name: str, mime_type: str | None = None) -> str:
    """Make a file name filesystem-safe, keeping or inferring the extension."""
    path = Path(file_name)
    stem, suffix = path.stem, path.suffix
    if not suffix:
        suffix = _EXTENSION_BY_MIME.get(mime_type or "", ".mp3")
    stem = re.sub(r"[^\w\s.-]", "_", stem)
    stem = re.sub(r"\s+", "_", stem)
    stem = re.sub(r"_{2,}", "_", stem)[:100]
    return f"{stem or 'audio'}{suffix}"


def _run_tool(cmd: Sequence[str], timeout: float) -> subprocess.CompletedProcess[bytes]:
    tool = Path(cmd[0]).name
    try:
        proc = subprocess.run(
            list(cmd),
            capture_output=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError:
        raise ToolUnavailableError(f"{tool} not found. {_INSTALL_HINT}") from None
    except subprocess.TimeoutExpired:
        raise ToolUnavailableError(f"{tool} timed out after {timeout:.0f}s") from None
    if proc.returncode != 0:
        stderr = proc.stderr.decode("utf-8", errors="replace").strip()
        raise ToolUnavailableError(
            f"{tool} failed (code {proc.returncode}): {stderr[-500:]}"
        )
    return proc


def probe_duration(path: Path, tools: MediaTools | None = None) -> float:
    """Return the media duration in seconds using ffprobe."""
    tools = tools or MediaTools()
    proc = _run_tool(
        [
            tools.ffprobe,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(path),
        ],
        tools.timeout,
    )
    raw = proc.stdout.decode("utf-8", errors="replace").strip()
    try:
        duration = float(raw)
    except ValueError:
        raise SourceError(f"Failed to detect duration of {path.name}: {raw!r}") from None
    if duration <= 0:
        raise SourceError(f"Failed to detect duration of {path.name}: {raw!r}")
    logger.info("Detected duration %.1fs for %s", duration, path.name)
    return duration


def split_audio(
    source: Path,
    specs: Sequence[ChunkSpec],
    output_dir: Path,
    mime_type: str,
    tools: MediaTools | None = None,
) -> list[AudioArtifact]:
    """Carve one file per chunk window without re-encoding.

    If any chunk fails, every artifact created by this call is released
    before the error propagates.
    """
    tools = tools or MediaTools()
    artifacts: list[AudioArtifact] = []
    try:
        for spec in specs:
            out_path = output_dir / f"chunk_{spec.index:03d}{source.suffix}"
            artifact = AudioArtifact(spec=spec, path=out_path, mime_type=mime_type)
            # Registered before ffmpeg runs so a partial file is removed too.
            artifacts.append(artifact)
            _run_tool(
                [
                    tools.ffmpeg,
                    "-y",
                    "-ss", f"{spec.start_time:.3f}",
                    "-t", f"{spec.duration:.3f}",
                    "-i", str(source),
                    "-c", "copy",
                    str(out_path),
                ],
                tools.timeout,
            )
            if not out_path.exists() or out_path.stat().st_size == 0:
                raise ToolUnavailableError(
                    f"ffmpeg produced no output for chunk {spec.index + 1}/{spec.total}"
                )
            logger.info(
                "Created chunk %d/%d: %.1fs-%.1fs",
                spec.index + 1, spec.total, spec.start_time, spec.end_time,
            )
    except BaseException:
        release_artifacts(artifacts)
        raise
    return artifacts


def release_artifacts(artifacts: Sequence[AudioArtifact]) -> int:
    """Release chunk files. Returns the number of failed deletions."""
    failed = sum(1 for artifact in artifacts if not artifact.release())
    if failed:
        logger.warning("Failed to delete %d/%d chunk files", failed, len(artifacts))
    elif artifacts:
        logger.debug("Deleted %d chunk files", len(artifacts))
    return failed


def optimize_audio(
    source: Path,
    output: Path,
    settings: OptimizationSettings | None = None,
    tools: MediaTools | None = None,
) -> Path:
    """Denoise, loudness-normalize, trim trailing silence, resample to WAV.

    Raises OptimizationError on any failure; callers fall back to the
    original input.
    """
    settings = settings or OptimizationSettings()
    tools = tools or MediaTools()
    cmd = [
        tools.ffmpeg,
        "-y",
        "-i", str(source),
        "-af", settings.filter_chain(),
        "-ar", str(settings.sample_rate),
    ]
    if settings.mono:
        cmd += ["-ac", "1"]
    cmd.append(str(output))

    logger.info("Optimizing %s (%s)", source.name, settings.filter_chain())
    try:
        _run_tool(cmd, tools.timeout)
    except ToolUnavailableError as e:
        output.unlink(missing_ok=True)
        raise OptimizationError(str(e)) from e
    if not output.exists() or output.stat().st_size == 0:
        output.unlink(missing_ok=True)
        raise OptimizationError(f"ffmpeg produced no optimized output for {source.name}")
    logger.info(
        "Optimized %s: %d -> %d bytes",
        source.name, source.stat().st_size, output.stat().st_size,
    )
    return output
