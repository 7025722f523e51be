"""
Video catalog client for the YouTube Data API v3.

Lists a channel's uploads and playlists and turns raw API items into the
display-ready Video records the queue is built from.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

import aiohttp

from ..config import settings
from ..config.logging_config import get_logger
from ..core.models import Video
from ..utils.constants import (
    DEFAULT_AVAILABLE_QUALITIES, PLACEHOLDER_PLAYLIST_THUMBNAIL,
    PLACEHOLDER_VIDEO_THUMBNAIL, USER_AGENT
)
from ..utils.exceptions import CatalogError, ConfigurationError, NetworkError

logger = get_logger(__name__)

_ISO_DURATION = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")


@dataclass(frozen=True)
class ChannelDetails:
    id: str
    title: str
    uploads_playlist_id: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "title": self.title, "uploads_playlist_id": self.uploads_playlist_id}


@dataclass(frozen=True)
class Playlist:
    id: str
    title: str
    thumbnail_url: str
    item_count: int = 0
    description: Optional[str] = None
    published_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "thumbnail_url": self.thumbnail_url,
            "item_count": self.item_count,
            "published_at": self.published_at,
        }


@dataclass(frozen=True)
class VideoPage:
    videos: List[Video] = field(default_factory=list)
    next_page_token: Optional[str] = None
    prev_page_token: Optional[str] = None
    total_results: Optional[int] = None
    results_per_page: Optional[int] = None


def format_duration(iso_duration: Optional[str]) -> str:
    """``PT1H2M3S`` -> ``1:02:03``; ``PT4M5S`` -> ``4:05``."""
    if not iso_duration:
        return "N/A"
    if iso_duration == "P0D":
        return "LIVE"

    match = _ISO_DURATION.match(iso_duration)
    if not match:
        return "N/A"

    hours, minutes, seconds = (int(part or 0) for part in match.groups())
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def format_view_count(view_count: Optional[str]) -> str:
    if view_count is None or view_count == "":
        return "N/A views"
    try:
        views = int(view_count)
    except (TypeError, ValueError):
        return "N/A views"

    if views >= 1_000_000_000:
        return f"{views / 1_000_000_000:.1f}B views"
    if views >= 1_000_000:
        return f"{views / 1_000_000:.1f}M views"
    if views >= 1_000:
        return f"{views / 1_000:.1f}K views"
    return f"{views} views"


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}" if value == 1 else f"{value} {unit}s"


def format_upload_date(published_at: Optional[str], now: Optional[datetime] = None) -> str:
    """Relative label such as ``3 days ago``, using a single rounded unit."""
    if not published_at:
        return "Unknown date"
    try:
        published = datetime.fromisoformat(published_at.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Error formatting date: {published_at}")
        return "Unknown date"

    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)

    seconds = (now - published).total_seconds()
    future = seconds < 0
    seconds = abs(seconds)

    minutes = seconds / 60
    hours = minutes / 60
    days = hours / 24
    if seconds < 60:
        label = _plural(round(seconds), "second")
    elif minutes < 60:
        label = _plural(round(minutes), "minute")
    elif hours < 24:
        label = _plural(round(hours), "hour")
    elif days < 30:
        label = _plural(round(days), "day")
    elif days < 365:
        label = _plural(max(1, round(days / 30)), "month")
    else:
        label = _plural(round(days / 365), "year")

    return f"in {label}" if future else f"{label} ago"


def duration_label(item: Dict[str, Any]) -> str:
    snippet = item.get("snippet") or {}
    content = item.get("contentDetails") or {}
    broadcast = snippet.get("liveBroadcastContent")
    duration = content.get("duration")

    if broadcast == "live" or duration == "P0D":
        return "LIVE"
    if broadcast == "upcoming":
        return "Upcoming"
    if duration == "PT0S":
        return "0:00"
    if duration:
        return format_duration(duration)
    return "N/A"


def _thumbnail(snippet: Dict[str, Any], placeholder: str) -> str:
    thumbnails = snippet.get("thumbnails") or {}
    for size in ("medium", "default"):
        url = (thumbnails.get(size) or {}).get("url")
        if url:
            return url
    return placeholder


def video_from_item(item: Dict[str, Any], playlist_id: Optional[str] = None) -> Video:
    """Build a Video from a ``videos.list`` item."""
    snippet = item.get("snippet") or {}
    statistics = item.get("statistics") or {}
    return Video(
        id=item["id"],
        title=snippet.get("title") or "Untitled Video",
        thumbnail_url=_thumbnail(snippet, PLACEHOLDER_VIDEO_THUMBNAIL),
        duration_label=duration_label(item),
        upload_date_label=format_upload_date(snippet.get("publishedAt")),
        view_count_label=format_view_count(statistics.get("viewCount")),
        channel_name=snippet.get("channelTitle") or "Unknown Channel",
        available_qualities=DEFAULT_AVAILABLE_QUALITIES,
        description=snippet.get("description"),
        published_at=snippet.get("publishedAt"),
        playlist_id=playlist_id,
    )


def extract_channel_handle(channel_url: str) -> Optional[str]:
    """``@handle``, channel id or user name from a channel URL."""
    try:
        parsed = urlparse(channel_url)
    except ValueError:
        logger.warning(f"Invalid channel URL: {channel_url}")
        return None
    if not parsed.scheme or not parsed.netloc:
        logger.warning(f"Invalid channel URL: {channel_url}")
        return None

    parts = [part for part in parsed.path.split("/") if part]
    if not parts:
        return None
    if parts[0].startswith("@"):
        return parts[0]
    if parts[0] in ("channel", "user") and len(parts) > 1:
        return parts[1]
    return None


class CatalogCache:
    """Process-local record of videos fetched so far, keyed by id."""

    def __init__(self):
        self._videos: Dict[str, Video] = {}

    def add(self, videos: Iterable[Video]) -> None:
        for video in videos:
            self._videos[video.id] = video

    def get(self, video_id: str) -> Optional[Video]:
        return self._videos.get(video_id)

    def __contains__(self, video_id: object) -> bool:
        return video_id in self._videos

    def __len__(self) -> int:
        return len(self._videos)

    def as_mapping(self) -> Dict[str, Video]:
        return dict(self._videos)


class YouTubeCatalogClient:
    """Thin async client over the YouTube Data API v3 endpoints used here."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://www.googleapis.com/youtube/v3",
        per_page: int = 50,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 30.0
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.per_page = per_page
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    @classmethod
    def from_settings(cls, app_settings=None) -> "YouTubeCatalogClient":
        app_settings = app_settings or settings
        return cls(
            api_key=app_settings.YOUTUBE_API_KEY,
            base_url=app_settings.YOUTUBE_API_BASE_URL,
            per_page=app_settings.VIDEOS_PER_PAGE,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": USER_AGENT},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._owns_session = True
        return self._session

    async def _request(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise ConfigurationError("YouTube API key is not configured", config_key="YOUTUBE_API_KEY")

        url = f"{self.base_url}/{endpoint}"
        query = {key: value for key, value in params.items() if value is not None}
        query["key"] = self.api_key

        session = await self._get_session()
        try:
            async with session.get(url, params=query) as response:
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = {}
                if response.status >= 400:
                    error = (data or {}).get("error") or {}
                    message = error.get("message") or f"Failed to fetch {endpoint}, status: {response.status}"
                    logger.error(
                        f"YouTube API error ({endpoint}): {message}",
                        extra={"endpoint": endpoint, "status_code": response.status}
                    )
                    raise CatalogError(message, endpoint=endpoint, status_code=response.status)
                return data or {}
        except aiohttp.ClientError as e:
            raise NetworkError(f"Could not reach YouTube API: {e}", url=url, cause=e)

    async def fetch_channel_details(self, handle_or_id: str) -> Optional[ChannelDetails]:
        params: Dict[str, Any] = {"part": "snippet,contentDetails"}
        if handle_or_id.startswith("@"):
            params["forHandle"] = handle_or_id[1:]
        elif handle_or_id.startswith("UC"):
            params["id"] = handle_or_id
        else:
            params["forUsername"] = handle_or_id

        data = await self._request("channels", params)
        items = data.get("items") or []
        if not items:
            return None

        channel = items[0]
        return ChannelDetails(
            id=channel["id"],
            title=(channel.get("snippet") or {}).get("title", ""),
            uploads_playlist_id=channel["contentDetails"]["relatedPlaylists"]["uploads"],
        )

    async def fetch_channel_playlists(self, channel_id: str) -> List[Playlist]:
        data = await self._request("playlists", {
            "part": "snippet,contentDetails",
            "channelId": channel_id,
            "maxResults": 50,
        })

        playlists = []
        for item in data.get("items") or []:
            snippet = item.get("snippet") or {}
            playlists.append(Playlist(
                id=item["id"],
                title=snippet.get("title") or "Untitled Playlist",
                description=snippet.get("description"),
                thumbnail_url=_thumbnail(snippet, PLACEHOLDER_PLAYLIST_THUMBNAIL),
                item_count=(item.get("contentDetails") or {}).get("itemCount") or 0,
                published_at=snippet.get("publishedAt"),
            ))
        return playlists

    async def fetch_page(self, playlist_id: str, page_token: Optional[str] = None) -> VideoPage:
        """One page of a playlist, with per-video details resolved."""
        data = await self._request("playlistItems", {
            "part": "snippet,contentDetails",
            "playlistId": playlist_id,
            "maxResults": self.per_page,
            "pageToken": page_token,
        })

        items = data.get("items") or []
        page_info = data.get("pageInfo") or {}
        playlist_of: Dict[str, Optional[str]] = {}
        for item in items:
            video_id = (item.get("contentDetails") or {}).get("videoId")
            if video_id:
                playlist_of[video_id] = (item.get("snippet") or {}).get("playlistId")

        videos: List[Video] = []
        if playlist_of:
            details = await self._request("videos", {
                "part": "snippet,contentDetails,statistics",
                "id": ",".join(playlist_of),
            })
            videos = [
                video_from_item(item, playlist_of.get(item.get("id")))
                for item in details.get("items") or []
            ]

        logger.debug(
            f"Fetched {len(videos)} video(s) from playlist {playlist_id}",
            extra={"playlist_id": playlist_id, "page_token": page_token}
        )
        return VideoPage(
            videos=videos,
            next_page_token=data.get("nextPageToken"),
            prev_page_token=data.get("prevPageToken"),
            total_results=page_info.get("totalResults"),
            results_per_page=page_info.get("resultsPerPage"),
        )
