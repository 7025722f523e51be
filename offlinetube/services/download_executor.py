"""
Server-side download executor.

Launches the yt-dlp command-line tool for one video at a time, tracks each
launched process in a registry keyed by output filename and reports whether
the file behind a download URL is pending, completed or failed.
"""

import asyncio
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import settings
from ..config.logging_config import get_logger
from ..config.settings import VideoQuality
from ..utils.constants import (
    AUDIO_EXTENSION, AUDIO_ONLY_QUALITY, VIDEO_EXTENSION, VIDEO_ID_PATTERN,
    YOUTUBE_WATCH_URL, YTDLP_AUDIO_FORMAT, YTDLP_PROGRESS_PATTERN
)
from ..utils.exceptions import DownloadError, NotFoundError, ValidationError

logger = get_logger(__name__)

# Kana, CJK and Hangul ranges are kept as-is
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af.\-\s]")
_WHITESPACE = re.compile(r"\s+")
_PROGRESS = re.compile(YTDLP_PROGRESS_PATTERN)
_VIDEO_ID = re.compile(VIDEO_ID_PATTERN)

SUPPORTED_QUALITIES = tuple(quality.value for quality in VideoQuality)


class JobState(str, Enum):
    """Executor-side state of a launched download."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class DownloadJob:
    """One yt-dlp invocation and what is known about it."""
    video_id: str
    title: str
    quality: str
    filename: str
    path: Path
    download_url: str
    state: JobState = JobState.PENDING
    progress: float = 0.0
    message: Optional[str] = None
    return_code: Optional[int] = None
    started_at: float = field(default_factory=time.time)
    completed_at: Optional[float] = None

    @property
    def duration(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return self.completed_at - self.started_at

    def to_status(self) -> Dict[str, Any]:
        return {
            "success": True,
            "filename": self.filename,
            "state": self.state.value,
            "progress": round(self.progress, 1),
            "message": self.message,
        }


def sanitize_filename(title: str) -> str:
    """Replace characters unsafe in file names; whitespace runs become ``_``."""
    return _WHITESPACE.sub("_", _UNSAFE_CHARS.sub("_", title))


def build_filename(title: str, quality: str, video_id: str) -> str:
    extension = AUDIO_EXTENSION if quality == AUDIO_ONLY_QUALITY else VIDEO_EXTENSION
    return f"{sanitize_filename(title)}_{quality}_{video_id}{extension}"


def build_command(binary: str, quality: str, output_path: Path, video_id: str) -> List[str]:
    """Argument vector for one yt-dlp run; no shell is involved."""
    command = [binary]
    if quality == AUDIO_ONLY_QUALITY:
        command += ["-f", YTDLP_AUDIO_FORMAT]
    else:
        height = quality.rstrip("p")
        command += ["-S", f"res:{height},ext:mp4:m4a", "--merge-output-format", "mp4"]
    command += ["--newline", "-o", str(output_path), YOUTUBE_WATCH_URL.format(video_id=video_id)]
    return command


def parse_progress(line: str) -> Optional[float]:
    """Percentage from a ``[download]  42.5% of ...`` line, if any."""
    match = _PROGRESS.search(line)
    if match is None:
        return None
    return float(match.group(1))


def is_safe_filename(filename: Any) -> bool:
    return (
        isinstance(filename, str)
        and bool(filename)
        and ".." not in filename
        and "/" not in filename
        and "\\" not in filename
    )


class DownloadExecutor:
    """Registry of yt-dlp processes writing into ``downloads_dir``."""

    def __init__(self, downloads_dir: Path, url_path: str = "/downloads/videos", binary: str = "yt-dlp"):
        self.downloads_dir = Path(downloads_dir)
        self.url_path = url_path.rstrip("/")
        self.binary = binary
        self._jobs: Dict[str, DownloadJob] = {}
        self._watchers: Dict[str, asyncio.Task] = {}
        self._processes: Dict[str, asyncio.subprocess.Process] = {}

    @classmethod
    def from_settings(cls, app_settings=None) -> "DownloadExecutor":
        app_settings = app_settings or settings
        return cls(
            downloads_dir=app_settings.DOWNLOADS_DIR,
            url_path=app_settings.DOWNLOADS_URL_PATH,
            binary=app_settings.YTDLP_BINARY,
        )

    @property
    def jobs(self) -> Dict[str, DownloadJob]:
        return dict(self._jobs)

    def download_url(self, filename: str) -> str:
        return f"{self.url_path}/{filename}"

    def _validate(self, video_id: Any, title: Any, quality: Any) -> None:
        missing = [
            name for name, value in (("videoId", video_id), ("videoTitle", title), ("quality", quality))
            if not value
        ]
        if missing:
            raise ValidationError(f"Missing required parameters: {', '.join(missing)}")
        if not isinstance(video_id, str) or not _VIDEO_ID.match(video_id):
            raise ValidationError("Invalid video id", field="videoId", value=video_id)
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Invalid video title", field="videoTitle", value=title)
        if quality not in SUPPORTED_QUALITIES:
            raise ValidationError(
                f"Unsupported quality '{quality}'. Expected one of: {', '.join(SUPPORTED_QUALITIES)}",
                field="quality",
                value=quality
            )

    async def start(self, video_id: str, title: str, quality: str) -> DownloadJob:
        """
        Launch yt-dlp for ``video_id`` unless the file is already there or
        already being produced.

        Raises:
            ValidationError: if an argument is missing or malformed
            DownloadError: if the yt-dlp process cannot be spawned
        """
        self._validate(video_id, title, quality)

        filename = build_filename(title, quality, video_id)
        existing = self._jobs.get(filename)
        if existing is not None and existing.state == JobState.PENDING:
            logger.info(f"Reusing pending download {filename}", extra={"video_id": video_id})
            return existing

        output_path = self.downloads_dir / filename
        job = DownloadJob(
            video_id=video_id,
            title=title,
            quality=quality,
            filename=filename,
            path=output_path,
            download_url=self.download_url(filename),
        )

        if output_path.exists():
            job.state = JobState.COMPLETED
            job.progress = 100.0
            job.completed_at = time.time()
            self._jobs[filename] = job
            logger.info(f"File already present, skipping download: {filename}", extra={"video_id": video_id})
            return job

        self.downloads_dir.mkdir(parents=True, exist_ok=True)
        command = build_command(self.binary, quality, output_path, video_id)
        logger.info(
            f"Starting yt-dlp for {video_id} at {quality}",
            extra={"video_id": video_id, "quality": quality, "command": command}
        )

        # Registered before spawning so a concurrent start for the same file reuses it
        self._jobs[filename] = job
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            if existing is None:
                del self._jobs[filename]
            else:
                self._jobs[filename] = existing
            logger.error(f"Could not spawn {self.binary}: {e}", extra={"video_id": video_id})
            raise DownloadError(
                f"Failed to start yt-dlp: {e}",
                video_id=video_id,
                filename=filename,
                cause=e
            )

        self._processes[filename] = process
        self._watchers[filename] = asyncio.create_task(self._watch(job, process))
        return job

    async def _watch(self, job: DownloadJob, process: asyncio.subprocess.Process) -> None:
        last_line = ""
        try:
            if process.stdout is not None:
                async for raw in process.stdout:
                    line = raw.decode("utf-8", errors="replace").strip()
                    if not line:
                        continue
                    last_line = line
                    progress = parse_progress(line)
                    if progress is not None:
                        job.progress = min(progress, 100.0)

            return_code = await process.wait()
            job.return_code = return_code
            job.completed_at = time.time()

            if return_code == 0:
                job.state = JobState.COMPLETED
                job.progress = 100.0
                job.message = "Download completed"
                logger.info(
                    f"Downloaded {job.filename} in {job.duration:.1f}s",
                    extra={"video_id": job.video_id, "file_name": job.filename}
                )
            else:
                job.state = JobState.FAILED
                job.message = f"yt-dlp exited with code {return_code}"
                logger.error(
                    f"yt-dlp failed for {job.video_id}: {job.message}",
                    extra={"video_id": job.video_id, "return_code": return_code, "last_output": last_line}
                )
        finally:
            self._processes.pop(job.filename, None)
            self._watchers.pop(job.filename, None)

    def get_status(self, filename: str) -> DownloadJob:
        """
        Current job for ``filename``.

        A file present on disk without a tracked job (for example from before a
        restart) is reported as completed.
        """
        if not is_safe_filename(filename):
            raise ValidationError("Invalid filename", field="filename", value=filename)

        job = self._jobs.get(filename)
        if job is not None:
            return job

        path = self.downloads_dir / filename
        if path.is_file():
            return DownloadJob(
                video_id="",
                title=filename,
                quality="",
                filename=filename,
                path=path,
                download_url=self.download_url(filename),
                state=JobState.COMPLETED,
                progress=100.0,
            )
        raise NotFoundError(f"Unknown download: {filename}", resource=filename)

    async def shutdown(self) -> None:
        """Stop watching and terminate yt-dlp processes still running."""
        for filename, process in list(self._processes.items()):
            if process.returncode is None:
                logger.info(f"Terminating yt-dlp for {filename}")
                process.terminate()

        watchers = list(self._watchers.values())
        for watcher in watchers:
            watcher.cancel()
        if watchers:
            await asyncio.gather(*watchers, return_exceptions=True)
