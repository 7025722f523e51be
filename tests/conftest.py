"""
Shared fixtures and fakes for the OfflineTube test suite.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from offlinetube.config.settings import Settings
from offlinetube.core.models import DownloadLocator, Video, VideoRef


class FakeExecutorClient:
    """
    Executor client whose answers are resolved by the test.

    Every ``start_download`` call parks on a future recorded in ``starts``;
    every ``wait_for_completion`` call parks on one recorded in ``waits``.
    """

    def __init__(self):
        self.starts: List[Tuple[str, str, asyncio.Future]] = []
        self.waits: List[Tuple[DownloadLocator, asyncio.Future, Any, Any]] = []
        self.closed = False

    @property
    def started_ids(self) -> List[str]:
        return [video_id for video_id, _, _ in self.starts]

    def start_future(self, video_id: str, index: int = -1) -> asyncio.Future:
        futures = [future for started, _, future in self.starts if started == video_id]
        return futures[index]

    def wait_entry(self, filename: str):
        for locator, future, on_progress, should_continue in reversed(self.waits):
            if locator.filename == filename:
                return future, on_progress, should_continue
        raise KeyError(filename)

    async def start_download(self, video_id: str, title: str, quality: str):
        future = asyncio.get_running_loop().create_future()
        self.starts.append((video_id, quality, future))
        return await future

    async def wait_for_completion(self, locator, on_progress=None, should_continue=None):
        future = asyncio.get_running_loop().create_future()
        self.waits.append((locator, future, on_progress, should_continue))
        return await future

    async def close(self):
        self.closed = True


class HangingExecutorClient:
    """Executor client that never answers; tasks stay in ``starting``."""

    def __init__(self):
        self.calls: List[Tuple[str, str, str]] = []

    async def start_download(self, video_id: str, title: str, quality: str):
        self.calls.append((video_id, title, quality))
        await asyncio.Event().wait()

    async def wait_for_completion(self, locator, on_progress=None, should_continue=None):
        await asyncio.Event().wait()

    async def close(self):
        pass


class FakeStream:
    """Async line iterator standing in for a subprocess stdout pipe."""

    def __init__(self, lines: List[bytes]):
        self._lines = list(lines)

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        if not self._lines:
            raise StopAsyncIteration
        return self._lines.pop(0)


class FakeProcess:
    def __init__(self, lines: Optional[List[bytes]] = None, exit_code: int = 0):
        self.stdout = FakeStream(lines or [])
        self.returncode: Optional[int] = None
        self._exit_code = exit_code
        self.terminated = False

    async def wait(self) -> int:
        self.returncode = self._exit_code
        return self._exit_code

    def terminate(self):
        self.terminated = True
        self.returncode = -15


async def settle(rounds: int = 10) -> None:
    """Let spawned tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_video(video_id: str, title: Optional[str] = None) -> Video:
    return Video(id=video_id, title=title or f"Video {video_id}", thumbnail_url=f"https://img/{video_id}.jpg")


def make_ref(video_id: str, quality: str = "720p") -> VideoRef:
    return VideoRef(id=video_id, title=f"Video {video_id}", quality=quality)


def locator_for(video_id: str) -> DownloadLocator:
    return DownloadLocator(url=f"/downloads/videos/{video_id}.mp4", filename=f"{video_id}.mp4")


@pytest.fixture
def app_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DOWNLOADS_DIR=tmp_path / "videos",
        MAX_CONCURRENT_DOWNLOADS=2,
        ENABLE_METRICS=True,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def catalog() -> Dict[str, Video]:
    return {video_id: make_video(video_id) for video_id in ("v1", "v2", "v3")}
