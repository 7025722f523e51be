"""
Download executor client.

Wraps the HTTP boundary to the download executor: one start request per task
and, once the executor has accepted it, status polling until the file is
really there. Every failure mode is returned as a value; nothing raised by the
transport escapes this module.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Union
from urllib.parse import quote

import aiohttp

from ..core.models import DownloadLocator
from ..config.logging_config import get_logger
from ..utils.constants import USER_AGENT

logger = get_logger(__name__)


class FailureReason(str, Enum):
    """Why an executor request did not produce a file."""
    VALIDATION = "validation"
    EXECUTOR = "executor"
    NETWORK = "network"
    TIMEOUT = "timeout"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class Accepted:
    """Executor launched the download; the file may not exist yet."""
    locator: DownloadLocator


@dataclass(frozen=True)
class Rejected:
    """Executor refused or could not be reached."""
    message: str
    reason: FailureReason
    status_code: Optional[int] = None


@dataclass(frozen=True)
class Completed:
    """The file behind ``locator`` is ready to fetch."""
    locator: DownloadLocator


@dataclass(frozen=True)
class Failed:
    """The launched download did not finish successfully."""
    message: str
    reason: FailureReason


StartOutcome = Union[Accepted, Rejected]
CompletionOutcome = Union[Completed, Failed]


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class DownloadExecutorClient:
    """HTTP client for the download executor endpoints."""

    def __init__(
        self,
        base_url: str,
        api_prefix: str = "/api/v1",
        request_timeout: float = 30.0,
        poll_interval: float = 2.0,
        completion_timeout: float = 3600.0,
        max_poll_failures: int = 3,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix
        self.request_timeout = request_timeout
        self.poll_interval = poll_interval
        self.completion_timeout = completion_timeout
        self.max_poll_failures = max_poll_failures
        self._session = session
        self._owns_session = session is None

    @classmethod
    def from_settings(cls, settings) -> "DownloadExecutorClient":
        return cls(**settings.executor_config)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def start_url(self) -> str:
        return f"{self.base_url}{self.api_prefix}/downloads/start"

    def status_url(self, filename: str) -> str:
        return f"{self.base_url}{self.api_prefix}/downloads/status/{quote(filename)}"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers={"User-Agent": USER_AGENT})
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session if this client created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _read_json(self, response: aiohttp.ClientResponse) -> Dict[str, Any]:
        try:
            body = await response.json(content_type=None)
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    async def _post_json(self, url: str, payload: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
        session = await self._get_session()
        async with session.post(url, json=payload) as response:
            return response.status, await self._read_json(response)

    async def _get_json(self, url: str) -> Tuple[int, Dict[str, Any]]:
        session = await self._get_session()
        async with session.get(url) as response:
            return response.status, await self._read_json(response)

    async def start_download(self, video_id: str, title: str, quality: str) -> StartOutcome:
        """
        Ask the executor to start downloading ``video_id`` at ``quality``.

        Returns Accepted with the locator the file will be served from, or
        Rejected carrying the executor's message verbatim when it gave one.
        """
        payload = {"videoId": video_id, "videoTitle": title, "quality": quality}
        logger.info(
            f"Requesting server download for {video_id}",
            extra={"video_id": video_id, "quality": quality}
        )

        try:
            status, body = await asyncio.wait_for(
                self._post_json(self.start_url, payload),
                timeout=self.request_timeout
            )
        except asyncio.TimeoutError:
            message = f"Server did not respond within {self.request_timeout:g}s"
            logger.warning(message, extra={"video_id": video_id})
            return Rejected(message=message, reason=FailureReason.TIMEOUT)
        except aiohttp.ClientError as e:
            message = f"Could not reach server: {_describe(e)}"
            logger.warning(message, extra={"video_id": video_id})
            return Rejected(message=message, reason=FailureReason.NETWORK)

        if 200 <= status < 300 and body.get("success"):
            download_url = body.get("downloadUrl")
            filename = body.get("filename")
            if download_url and filename:
                return Accepted(DownloadLocator(url=download_url, filename=filename))
            return Rejected(
                message="Server response did not include a download location",
                reason=FailureReason.EXECUTOR,
                status_code=status
            )

        message = body.get("message") or f"Failed to start server download (HTTP {status})"
        reason = FailureReason.VALIDATION if 400 <= status < 500 else FailureReason.EXECUTOR
        logger.warning(
            f"Server rejected download for {video_id}: {message}",
            extra={"video_id": video_id, "status_code": status}
        )
        return Rejected(message=message, reason=reason, status_code=status)

    async def wait_for_completion(
        self,
        locator: DownloadLocator,
        on_progress: Optional[Callable[[int], None]] = None,
        should_continue: Optional[Callable[[], bool]] = None
    ) -> CompletionOutcome:
        """
        Poll the executor until the file behind ``locator`` is completed or failed.

        Gives up after ``completion_timeout`` seconds, after
        ``max_poll_failures`` consecutive transport failures, or as soon as
        ``should_continue`` returns False.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.completion_timeout
        url = self.status_url(locator.filename)
        failures = 0

        while True:
            if should_continue is not None and not should_continue():
                return Failed(message="No longer tracked", reason=FailureReason.ABANDONED)

            try:
                status, body = await asyncio.wait_for(self._get_json(url), timeout=self.request_timeout)
            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                failures += 1
                logger.debug(
                    f"Status poll for {locator.filename} failed ({failures}/{self.max_poll_failures}): {_describe(e)}"
                )
                if failures >= self.max_poll_failures:
                    return Failed(
                        message=f"Lost contact with server: {_describe(e)}",
                        reason=FailureReason.NETWORK
                    )
            else:
                if status == 404:
                    return Failed(
                        message=body.get("message") or "Server has no record of this download",
                        reason=FailureReason.EXECUTOR
                    )
                if status >= 400:
                    failures += 1
                    if failures >= self.max_poll_failures:
                        return Failed(
                            message=body.get("message") or f"Status check failed (HTTP {status})",
                            reason=FailureReason.EXECUTOR
                        )
                else:
                    failures = 0
                    state = body.get("state")
                    if state == "completed":
                        return Completed(locator)
                    if state == "failed":
                        return Failed(
                            message=body.get("message") or "Download failed on server",
                            reason=FailureReason.EXECUTOR
                        )
                    progress = body.get("progress")
                    if on_progress is not None and isinstance(progress, (int, float)):
                        on_progress(int(progress))

            if loop.time() >= deadline:
                return Failed(
                    message=f"Download did not finish within {self.completion_timeout:g}s",
                    reason=FailureReason.TIMEOUT
                )
            await asyncio.sleep(self.poll_interval)
