"""Where the audio for a run comes from: a local file, raw bytes or a URL."""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import yt_dlp
from yt_dlp.utils import DownloadError

from scribe.core.audio import MediaTools, guess_mime_type, sanitize_file_name
from scribe.core.workspace import RunWorkspace
from scribe.exceptions import SourceError

logger = logging.getLogger(__name__)

_URL = re.compile(r"^https?://", re.IGNORECASE)


@dataclass(frozen=True)
class AcquiredMedia:
    """Source media copied into the run workspace."""

    path: Path
    mime_type: str
    file_name: str
    duration_seconds: float | None = None


class Source(Protocol):
    def acquire(self, workspace: RunWorkspace, tools: MediaTools) -> AcquiredMedia: ...


@dataclass(frozen=True)
class FileSource:
    path: Path
    mime_type: str | None = None

    def acquire(self, workspace: RunWorkspace, tools: MediaTools) -> AcquiredMedia:
        if not self.path.exists():
            raise SourceError(f"File not found: {self.path}")
        if not self.path.is_file():
            raise SourceError(f"Not a file: {self.path}")
        if self.path.stat().st_size == 0:
            raise SourceError(f"File is empty: {self.path}")
        mime_type = self.mime_type or guess_mime_type(self.path.name)
        file_name = sanitize_file_name(self.path.name, mime_type)
        # Splitting and optimization write next to the input, so work on a copy.
        target = workspace.path_for(f"source_{file_name}")
        shutil.copyfile(self.path, target)
        return AcquiredMedia(target, mime_type, file_name)


@dataclass(frozen=True)
class BytesSource:
    data: bytes
    file_name: str
    mime_type: str | None = None

    def acquire(self, workspace: RunWorkspace, tools: MediaTools) -> AcquiredMedia:
        if not self.data:
            raise SourceError(f"No data for {self.file_name}")
        mime_type = self.mime_type or guess_mime_type(self.file_name)
        file_name = sanitize_file_name(self.file_name, mime_type)
        target = workspace.write_bytes(f"source_{file_name}", self.data)
        return AcquiredMedia(target, mime_type, file_name)


@dataclass(frozen=True)
class RemoteSource:
    """Audio track of a video page, fetched with yt-dlp."""

    url: str
    max_duration_seconds: float | None = None

    def __post_init__(self) -> None:
        if not _URL.match(self.url):
            raise SourceError(f"Not an http(s) URL: {self.url}")

    def _options(self, workspace: RunWorkspace, tools: MediaTools) -> dict[str, Any]:
        options: dict[str, Any] = {
            "format": "bestaudio/best",
            "outtmpl": str(workspace.directory / "remote.%(ext)s"),
            "quiet": True,
            "no_warnings": True,
            "noplaylist": True,
            "retries": 10,
            "fragment_retries": 10,
            "socket_timeout": 30,
            "postprocessors": [{
                "key": "FFmpegExtractAudio",
                "preferredcodec": "mp3",
                "preferredquality": "0",
            }],
        }
        ffmpeg_dir = shutil.which(tools.ffmpeg)
        if ffmpeg_dir:
            options["ffmpeg_location"] = str(Path(ffmpeg_dir).parent)
        return options

    def acquire(self, workspace: RunWorkspace, tools: MediaTools) -> AcquiredMedia:
        logger.info("Fetching audio from %s", self.url)
        try:
            with yt_dlp.YoutubeDL(self._options(workspace, tools)) as ydl:
                info = ydl.extract_info(self.url, download=False)
                duration = float(info.get("duration") or 0) or None
                if (
                    self.max_duration_seconds
                    and duration
                    and duration > self.max_duration_seconds
                ):
                    raise SourceError(
                        f"Video is {duration / 60:.0f} min; the limit is "
                        f"{self.max_duration_seconds / 60:.0f} min"
                    )
                ydl.download([self.url])
        except DownloadError as e:
            raise SourceError(f"Failed to fetch {self.url}: {e}") from e

        path = workspace.directory / "remote.mp3"
        if not path.exists() or path.stat().st_size == 0:
            raise SourceError(f"Download produced no audio for {self.url}")
        title = str(info.get("title") or "remote_audio")
        file_name = sanitize_file_name(f"{title}.mp3", "audio/mpeg")
        logger.info("Fetched %r (%s)", title, f"{duration:.0f}s" if duration else "unknown length")
        return AcquiredMedia(path, "audio/mpeg", file_name, duration)


def source_from_argument(value: str) -> Source:
    """Treat http(s) arguments as remote sources and anything else as a path."""
    if _URL.match(value):
        return RemoteSource(value)
    return FileSource(Path(value))
