"""
Catalog endpoints backed by the YouTube Data API.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_catalog_client, get_queue_service, get_settings
from ..models.catalog import ChannelResponse, PlaylistResponse, VideoPageResponse
from ...config.logging_config import get_logger
from ...config.settings import Settings
from ...core.models import Video
from ...services.catalog import ChannelDetails, YouTubeCatalogClient, extract_channel_handle
from ...services.queue_service import QueueService
from ...utils.exceptions import ConfigurationError, NotFoundError, ValidationError

logger = get_logger(__name__)
router = APIRouter()


async def _resolve_channel(app_settings: Settings, client: YouTubeCatalogClient) -> ChannelDetails:
    if not app_settings.YOUTUBE_CHANNEL_URL:
        raise ConfigurationError("YouTube channel URL is not configured", config_key="YOUTUBE_CHANNEL_URL")

    handle = extract_channel_handle(app_settings.YOUTUBE_CHANNEL_URL)
    if not handle:
        raise ValidationError(
            "Could not extract a channel handle or id from the configured URL",
            field="YOUTUBE_CHANNEL_URL",
            value=app_settings.YOUTUBE_CHANNEL_URL
        )

    channel = await client.fetch_channel_details(handle)
    if channel is None:
        raise NotFoundError(f"Channel {handle} not found", resource="channel")
    return channel


def _video_response(video: Video) -> dict:
    return {
        "id": video.id,
        "title": video.title,
        "thumbnail_url": video.thumbnail_url,
        "duration": video.duration_label,
        "upload_date": video.upload_date_label,
        "view_count": video.view_count_label,
        "channel_name": video.channel_name,
        "available_qualities": list(video.available_qualities),
        "description": video.description,
        "published_at": video.published_at,
        "playlist_id": video.playlist_id,
    }


@router.get("/channel", response_model=ChannelResponse)
async def get_channel(
    app_settings: Settings = Depends(get_settings),
    client: YouTubeCatalogClient = Depends(get_catalog_client)
):
    """Channel configured through ``YOUTUBE_CHANNEL_URL``."""
    channel = await _resolve_channel(app_settings, client)
    return channel.to_dict()


@router.get("/playlists", response_model=List[PlaylistResponse])
async def get_playlists(
    channel_id: Optional[str] = Query(None, description="Defaults to the configured channel"),
    app_settings: Settings = Depends(get_settings),
    client: YouTubeCatalogClient = Depends(get_catalog_client)
):
    if channel_id is None:
        channel_id = (await _resolve_channel(app_settings, client)).id
    playlists = await client.fetch_channel_playlists(channel_id)
    return [playlist.to_dict() for playlist in playlists]


@router.get("/videos", response_model=VideoPageResponse)
async def get_videos(
    playlist_id: Optional[str] = Query(None, description="Defaults to the channel's uploads"),
    page_token: Optional[str] = Query(None),
    app_settings: Settings = Depends(get_settings),
    client: YouTubeCatalogClient = Depends(get_catalog_client),
    service: QueueService = Depends(get_queue_service)
):
    """
    One page of videos. Fetched videos are remembered so they can be
    enqueued by id afterwards.
    """
    if playlist_id is None:
        playlist_id = (await _resolve_channel(app_settings, client)).uploads_playlist_id

    page = await client.fetch_page(playlist_id, page_token)
    service.catalog.add(page.videos)

    return {
        "videos": [_video_response(video) for video in page.videos],
        "next_page_token": page.next_page_token,
        "prev_page_token": page.prev_page_token,
        "total_results": page.total_results,
        "results_per_page": page.results_per_page,
    }
