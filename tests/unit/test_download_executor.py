"""
Unit tests for the yt-dlp download executor.
"""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from offlinetube.services.download_executor import (
    DownloadExecutor, JobState, build_command, build_filename, is_safe_filename,
    parse_progress, sanitize_filename
)
from offlinetube.utils.exceptions import DownloadError, NotFoundError, ValidationError
from tests.conftest import FakeProcess, settle


@pytest.fixture
def executor(tmp_path):
    return DownloadExecutor(tmp_path / "videos")


class TestFilenames:
    """Test output file naming."""

    def test_sanitize_replaces_unsafe_characters(self):
        assert sanitize_filename("My Video: Part 1/2") == "My_Video__Part_1_2"

    def test_sanitize_keeps_cjk_and_dots(self):
        assert sanitize_filename("日本語 タイトル v1.2") == "日本語_タイトル_v1.2"

    def test_build_filename(self):
        assert build_filename("My Video", "720p", "abc123") == "My_Video_720p_abc123.mp4"
        assert build_filename("My Video", "audio_only", "abc123") == "My_Video_audio_only_abc123.m4a"

    @pytest.mark.parametrize("filename,expected", [
        ("video.mp4", True),
        ("", False),
        ("../etc/passwd", False),
        ("dir/video.mp4", False),
        ("dir\\video.mp4", False),
        (42, False),
        (None, False),
    ])
    def test_is_safe_filename(self, filename, expected):
        assert is_safe_filename(filename) is expected


class TestCommand:
    """Test yt-dlp argument construction."""

    def test_video_command(self):
        command = build_command("yt-dlp", "1080p", Path("/tmp/out.mp4"), "abc123")

        assert command == [
            "yt-dlp",
            "-S", "res:1080,ext:mp4:m4a",
            "--merge-output-format", "mp4",
            "--newline",
            "-o", "/tmp/out.mp4",
            "https://www.youtube.com/watch?v=abc123",
        ]

    def test_audio_command(self):
        command = build_command("yt-dlp", "audio_only", Path("/tmp/out.m4a"), "abc123")

        assert command[1:3] == ["-f", "bestaudio[ext=m4a]/bestaudio"]
        assert "--merge-output-format" not in command

    def test_parse_progress(self):
        assert parse_progress("[download]  42.5% of 10.00MiB at 1.00MiB/s ETA 00:05") == 42.5
        assert parse_progress("[download] 100% of 10.00MiB") == 100.0
        assert parse_progress("[youtube] abc123: Downloading webpage") is None


class TestStart:
    """Test launching downloads."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("video_id,title,quality,message", [
        ("", "Title", "720p", "Missing required parameters: videoId"),
        ("abc", None, None, "Missing required parameters: videoTitle, quality"),
        ("bad id!", "Title", "720p", "Invalid video id"),
        ("abc", "   ", "720p", "Invalid video title"),
    ])
    async def test_validation(self, executor, video_id, title, quality, message):
        with pytest.raises(ValidationError) as exc_info:
            await executor.start(video_id, title, quality)

        assert exc_info.value.message == message
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_unsupported_quality(self, executor):
        with pytest.raises(ValidationError, match="Unsupported quality '4k'"):
            await executor.start("abc", "Title", "4k")

    @pytest.mark.asyncio
    async def test_successful_download(self, executor):
        process = FakeProcess([b"[download]  10.0% of 5MiB\n", b"[download]  55.5% of 5MiB\n"], exit_code=0)
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as spawn:
            job = await executor.start("abc123", "My Video", "720p")

        assert job.filename == "My_Video_720p_abc123.mp4"
        assert job.download_url == "/downloads/videos/My_Video_720p_abc123.mp4"
        assert spawn.await_args.args[0] == "yt-dlp"
        assert executor.downloads_dir.is_dir()

        await settle()

        assert job.state == JobState.COMPLETED
        assert job.progress == 100.0
        assert job.return_code == 0
        assert job.to_status() == {
            "success": True,
            "filename": job.filename,
            "state": "completed",
            "progress": 100.0,
            "message": "Download completed",
        }

    @pytest.mark.asyncio
    async def test_failed_download(self, executor):
        process = FakeProcess([b"ERROR: Video unavailable\n"], exit_code=1)
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            job = await executor.start("abc123", "My Video", "720p")
        await settle()

        assert job.state == JobState.FAILED
        assert job.message == "yt-dlp exited with code 1"

    @pytest.mark.asyncio
    async def test_spawn_failure(self, executor):
        failing = AsyncMock(side_effect=FileNotFoundError("yt-dlp"))
        with patch("asyncio.create_subprocess_exec", failing):
            with pytest.raises(DownloadError, match="Failed to start yt-dlp"):
                await executor.start("abc123", "My Video", "720p")

        assert executor.jobs == {}

    @pytest.mark.asyncio
    async def test_existing_file_is_not_downloaded_again(self, executor):
        executor.downloads_dir.mkdir(parents=True)
        (executor.downloads_dir / "My_Video_720p_abc123.mp4").write_bytes(b"data")

        spawn = AsyncMock()
        with patch("asyncio.create_subprocess_exec", spawn):
            job = await executor.start("abc123", "My Video", "720p")

        spawn.assert_not_awaited()
        assert job.state == JobState.COMPLETED

    @pytest.mark.asyncio
    async def test_pending_job_is_reused(self, executor):
        process = FakeProcess()
        process.stdout = None

        async def never_exits():
            await asyncio.Event().wait()

        process.wait = never_exits
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as spawn:
            first = await executor.start("abc123", "My Video", "720p")
            second = await executor.start("abc123", "My Video", "720p")

        assert first is second
        assert spawn.await_count == 1
        await executor.shutdown()
        assert process.terminated

    @pytest.mark.asyncio
    async def test_concurrent_starts_spawn_once(self, executor):
        process = FakeProcess()
        process.stdout = None
        gate = asyncio.Event()
        spawned = []

        async def slow_spawn(*command, **kwargs):
            spawned.append(command)
            await gate.wait()
            return process

        async def never_exits():
            await asyncio.Event().wait()

        process.wait = never_exits
        with patch("asyncio.create_subprocess_exec", slow_spawn):
            first = asyncio.create_task(executor.start("abc123", "My Video", "720p"))
            await settle()
            second = await executor.start("abc123", "My Video", "720p")
            gate.set()
            first = await first

        assert first is second
        assert len(spawned) == 1
        await executor.shutdown()

    @pytest.mark.asyncio
    async def test_spawn_failure_keeps_previous_job(self, executor):
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=FakeProcess(exit_code=1))):
            failed = await executor.start("abc123", "My Video", "720p")
            await settle()
        assert failed.state == JobState.FAILED

        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=OSError("no fork"))):
            with pytest.raises(DownloadError):
                await executor.start("abc123", "My Video", "720p")

        assert executor.jobs == {failed.filename: failed}


class TestStatus:
    """Test status lookups."""

    def test_unsafe_filename(self, executor):
        with pytest.raises(ValidationError):
            executor.get_status("../secret.mp4")

    def test_unknown_filename(self, executor):
        with pytest.raises(NotFoundError):
            executor.get_status("missing.mp4")

    def test_untracked_file_on_disk_is_completed(self, executor):
        executor.downloads_dir.mkdir(parents=True)
        (executor.downloads_dir / "old.mp4").write_bytes(b"data")

        job = executor.get_status("old.mp4")

        assert job.state == JobState.COMPLETED
        assert job.to_status()["progress"] == 100.0

    @pytest.mark.asyncio
    async def test_tracked_job(self, executor):
        process = FakeProcess([b"[download]  30.0% of 5MiB\n"], exit_code=0)
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            job = await executor.start("abc123", "My Video", "720p")

        assert executor.get_status(job.filename) is job
