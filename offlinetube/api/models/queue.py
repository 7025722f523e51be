"""
Download queue Pydantic models for API requests and responses.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ...config.settings import VideoQuality
from ...core.models import Video
from ...utils.constants import DEFAULT_AVAILABLE_QUALITIES
from .common import BaseResponse


class VideoPayload(BaseModel):
    """Video record a client can send along with its selection."""
    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    thumbnail_url: str = ""
    duration_label: str = "N/A"
    upload_date_label: str = "Unknown date"
    view_count_label: str = "N/A views"
    channel_name: str = ""
    available_qualities: List[str] = Field(default_factory=lambda: list(DEFAULT_AVAILABLE_QUALITIES))
    description: Optional[str] = None
    published_at: Optional[str] = None
    playlist_id: Optional[str] = None

    def to_video(self) -> Video:
        return Video(
            id=self.id,
            title=self.title,
            thumbnail_url=self.thumbnail_url,
            duration_label=self.duration_label,
            upload_date_label=self.upload_date_label,
            view_count_label=self.view_count_label,
            channel_name=self.channel_name,
            available_qualities=tuple(self.available_qualities),
            description=self.description,
            published_at=self.published_at,
            playlist_id=self.playlist_id,
        )


class EnqueueRequest(BaseModel):
    selected_ids: List[str] = Field(description="Selected video ids, in selection order")
    videos: Optional[List[VideoPayload]] = None
    video_qualities: Optional[Dict[str, VideoQuality]] = None


class EnqueueResponse(BaseResponse):
    message: str
    added: List[str]
    skipped: List[str]


class TaskResponse(BaseModel):
    id: str
    title: str
    thumbnail_url: str = ""
    selected_quality: str
    status: str
    progress: int
    download_url: Optional[str] = None
    filename: Optional[str] = None
    error_message: Optional[str] = None
    attempt: int = 0


class NotificationResponse(BaseModel):
    level: str
    title: str
    description: str
    task_id: Optional[str] = None


class QueueSnapshotResponse(BaseModel):
    tasks: List[TaskResponse]
    budget: int
    in_flight: int
    overall_progress: float
    notifications: List[NotificationResponse] = Field(default_factory=list)


class QueueSettingsResponse(BaseModel):
    concurrent_downloads: int
    default_quality: str
    video_qualities: Dict[str, str] = Field(default_factory=dict)


class QueueSettingsUpdate(BaseModel):
    concurrent_downloads: Optional[int] = Field(default=None, ge=1, le=10)
    default_quality: Optional[VideoQuality] = None


class VideoQualityUpdate(BaseModel):
    quality: Optional[VideoQuality] = Field(default=None, description="None clears the override")
