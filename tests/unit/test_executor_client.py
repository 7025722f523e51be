"""
Unit tests for the download executor HTTP client.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from offlinetube.services.executor_client import (
    Accepted, Completed, DownloadExecutorClient, Failed, FailureReason, Rejected
)
from tests.conftest import locator_for


@pytest.fixture
def client():
    return DownloadExecutorClient(
        "http://executor:8000/",
        request_timeout=5,
        poll_interval=0,
        completion_timeout=60,
        max_poll_failures=3,
    )


class TestUrls:
    """Test endpoint URL construction."""

    def test_start_url_strips_trailing_slash(self, client):
        assert client.start_url == "http://executor:8000/api/v1/downloads/start"

    def test_status_url_quotes_filename(self, client):
        assert client.status_url("My Video.mp4") == "http://executor:8000/api/v1/downloads/status/My%20Video.mp4"

    def test_from_settings(self, app_settings):
        built = DownloadExecutorClient.from_settings(app_settings)

        assert built.base_url == app_settings.EXECUTOR_BASE_URL.rstrip("/")
        assert built.poll_interval == app_settings.EXECUTOR_POLL_INTERVAL


class TestStartDownload:
    """Test start request outcomes."""

    @pytest.mark.asyncio
    async def test_accepted(self, client):
        body = {"success": True, "downloadUrl": "/downloads/videos/v1.mp4", "filename": "v1.mp4"}
        with patch.object(client, "_post_json", AsyncMock(return_value=(200, body))) as post:
            outcome = await client.start_download("v1", "Video v1", "720p")

        assert outcome == Accepted(locator_for("v1"))
        post.assert_awaited_once_with(
            client.start_url, {"videoId": "v1", "videoTitle": "Video v1", "quality": "720p"}
        )

    @pytest.mark.asyncio
    async def test_success_without_locator_is_rejected(self, client):
        with patch.object(client, "_post_json", AsyncMock(return_value=(200, {"success": True}))):
            outcome = await client.start_download("v1", "Video v1", "720p")

        assert isinstance(outcome, Rejected)
        assert outcome.reason == FailureReason.EXECUTOR

    @pytest.mark.asyncio
    async def test_validation_error_message_is_kept(self, client):
        body = {"success": False, "message": "Missing required parameters: videoTitle"}
        with patch.object(client, "_post_json", AsyncMock(return_value=(400, body))):
            outcome = await client.start_download("v1", "", "720p")

        assert outcome == Rejected(
            "Missing required parameters: videoTitle", FailureReason.VALIDATION, status_code=400
        )

    @pytest.mark.asyncio
    async def test_server_error_without_message(self, client):
        with patch.object(client, "_post_json", AsyncMock(return_value=(502, {}))):
            outcome = await client.start_download("v1", "Video v1", "720p")

        assert outcome.message == "Failed to start server download (HTTP 502)"
        assert outcome.reason == FailureReason.EXECUTOR

    @pytest.mark.asyncio
    async def test_network_error(self, client):
        failing = AsyncMock(side_effect=aiohttp.ClientConnectionError("connection refused"))
        with patch.object(client, "_post_json", failing):
            outcome = await client.start_download("v1", "Video v1", "720p")

        assert outcome.reason == FailureReason.NETWORK
        assert outcome.message == "Could not reach server: connection refused"

    @pytest.mark.asyncio
    async def test_timeout(self, client):
        client.request_timeout = 0.01

        async def slow(url, payload):
            await asyncio.sleep(1)

        with patch.object(client, "_post_json", slow):
            outcome = await client.start_download("v1", "Video v1", "720p")

        assert outcome.reason == FailureReason.TIMEOUT
        assert outcome.message == "Server did not respond within 0.01s"


class TestWaitForCompletion:
    """Test status polling."""

    @pytest.mark.asyncio
    async def test_reports_progress_until_completed(self, client):
        responses = [
            (200, {"success": True, "state": "pending", "progress": 12.5}),
            (200, {"success": True, "state": "pending", "progress": 80}),
            (200, {"success": True, "state": "completed", "progress": 100}),
        ]
        progress = []
        with patch.object(client, "_get_json", AsyncMock(side_effect=responses)):
            outcome = await client.wait_for_completion(locator_for("v1"), on_progress=progress.append)

        assert outcome == Completed(locator_for("v1"))
        assert progress == [12, 80]

    @pytest.mark.asyncio
    async def test_failed_state(self, client):
        body = {"success": True, "state": "failed", "message": "yt-dlp exited with code 1"}
        with patch.object(client, "_get_json", AsyncMock(return_value=(200, body))):
            outcome = await client.wait_for_completion(locator_for("v1"))

        assert outcome == Failed("yt-dlp exited with code 1", FailureReason.EXECUTOR)

    @pytest.mark.asyncio
    async def test_not_found(self, client):
        with patch.object(client, "_get_json", AsyncMock(return_value=(404, {}))):
            outcome = await client.wait_for_completion(locator_for("v1"))

        assert outcome.reason == FailureReason.EXECUTOR
        assert outcome.message == "Server has no record of this download"

    @pytest.mark.asyncio
    async def test_transient_failures_are_tolerated(self, client):
        responses = [
            aiohttp.ClientConnectionError("reset"),
            (503, {}),
            (200, {"success": True, "state": "completed"}),
        ]
        with patch.object(client, "_get_json", AsyncMock(side_effect=responses)):
            outcome = await client.wait_for_completion(locator_for("v1"))

        assert isinstance(outcome, Completed)

    @pytest.mark.asyncio
    async def test_gives_up_after_consecutive_failures(self, client):
        failing = AsyncMock(side_effect=aiohttp.ClientConnectionError("reset"))
        with patch.object(client, "_get_json", failing):
            outcome = await client.wait_for_completion(locator_for("v1"))

        assert outcome == Failed("Lost contact with server: reset", FailureReason.NETWORK)
        assert failing.await_count == 3

    @pytest.mark.asyncio
    async def test_repeated_server_errors(self, client):
        with patch.object(client, "_get_json", AsyncMock(return_value=(500, {}))):
            outcome = await client.wait_for_completion(locator_for("v1"))

        assert outcome == Failed("Status check failed (HTTP 500)", FailureReason.EXECUTOR)

    @pytest.mark.asyncio
    async def test_abandoned_when_no_longer_tracked(self, client):
        poll = AsyncMock(return_value=(200, {"success": True, "state": "pending", "progress": 5}))
        checks = iter([True, False])
        with patch.object(client, "_get_json", poll):
            outcome = await client.wait_for_completion(locator_for("v1"), should_continue=lambda: next(checks))

        assert outcome.reason == FailureReason.ABANDONED
        assert poll.await_count == 1

    @pytest.mark.asyncio
    async def test_deadline(self, client):
        client.completion_timeout = 0
        pending = (200, {"success": True, "state": "pending", "progress": 5})
        with patch.object(client, "_get_json", AsyncMock(return_value=pending)):
            outcome = await client.wait_for_completion(locator_for("v1"))

        assert outcome == Failed("Download did not finish within 0s", FailureReason.TIMEOUT)


class TestSession:
    """Test session ownership."""

    @pytest.mark.asyncio
    async def test_injected_session_is_not_closed(self):
        session = MagicMock(closed=False)
        session.close = AsyncMock()
        client = DownloadExecutorClient("http://executor", session=session)

        async with client:
            assert await client._get_session() is session

        session.close.assert_not_awaited()
