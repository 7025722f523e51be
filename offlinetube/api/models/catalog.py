"""
Catalog Pydantic models.
"""

from typing import List, Optional

from pydantic import BaseModel


class ChannelResponse(BaseModel):
    id: str
    title: str
    uploads_playlist_id: str


class PlaylistResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    thumbnail_url: str
    item_count: int = 0
    published_at: Optional[str] = None


class VideoResponse(BaseModel):
    id: str
    title: str
    thumbnail_url: str
    duration: str
    upload_date: str
    view_count: str
    channel_name: str
    available_qualities: List[str]
    description: Optional[str] = None
    published_at: Optional[str] = None
    playlist_id: Optional[str] = None


class VideoPageResponse(BaseModel):
    videos: List[VideoResponse]
    next_page_token: Optional[str] = None
    prev_page_token: Optional[str] = None
    total_results: Optional[int] = None
    results_per_page: Optional[int] = None
