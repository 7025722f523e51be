"""
Download queue endpoints.
"""

from fastapi import APIRouter, Depends, status

from ..dependencies import get_queue_service
from ..models.common import SuccessResponse
from ..models.queue import (
    EnqueueRequest, EnqueueResponse, QueueSettingsResponse, QueueSettingsUpdate,
    QueueSnapshotResponse, TaskResponse, VideoQualityUpdate
)
from ...config.logging_config import get_logger
from ...services.queue_service import QueueService

logger = get_logger(__name__)
router = APIRouter()


@router.get("", response_model=QueueSnapshotResponse)
async def get_queue(service: QueueService = Depends(get_queue_service)):
    """Current queue snapshot with recent notifications."""
    return service.snapshot()


@router.post("", response_model=EnqueueResponse, status_code=status.HTTP_201_CREATED)
async def enqueue(request_data: EnqueueRequest, service: QueueService = Depends(get_queue_service)):
    """
    Enqueue the selected videos.

    Ids unknown to the catalog, repeated ids and ids already queued are
    reported as skipped.
    """
    videos = [payload.to_video() for payload in request_data.videos or []]
    qualities = {
        video_id: quality.value
        for video_id, quality in (request_data.video_qualities or {}).items()
    }
    added, skipped = service.enqueue_selection(request_data.selected_ids, videos, qualities)

    return EnqueueResponse(
        message=f"Added {len(added)} video(s) to the download queue",
        added=added,
        skipped=skipped,
    )


@router.get("/settings", response_model=QueueSettingsResponse)
async def get_queue_settings(service: QueueService = Depends(get_queue_service)):
    return service.settings_dict()


@router.put("/settings", response_model=QueueSettingsResponse)
async def update_queue_settings(
    request_data: QueueSettingsUpdate,
    service: QueueService = Depends(get_queue_service)
):
    """Change the concurrency budget and/or the default quality."""
    if request_data.concurrent_downloads is not None:
        service.set_budget(request_data.concurrent_downloads)
    if request_data.default_quality is not None:
        service.set_global_quality(request_data.default_quality.value)
    return service.settings_dict()


@router.put("/qualities/{video_id}", response_model=QueueSettingsResponse)
async def set_video_quality(
    video_id: str,
    request_data: VideoQualityUpdate,
    service: QueueService = Depends(get_queue_service)
):
    quality = request_data.quality.value if request_data.quality else None
    service.set_video_quality(video_id, quality)
    return service.settings_dict()


@router.post("/clear-finished", response_model=SuccessResponse)
async def clear_finished(service: QueueService = Depends(get_queue_service)):
    cleared = service.clear_finished()
    return SuccessResponse(message=f"Cleared {cleared} finished task(s)", data={"cleared": cleared})


@router.post("/{task_id}/pause", response_model=TaskResponse)
async def pause_task(task_id: str, service: QueueService = Depends(get_queue_service)):
    """Pause a task. An already launched yt-dlp process keeps running."""
    return service.pause(task_id).to_dict()


@router.post("/{task_id}/resume", response_model=TaskResponse)
async def resume_task(task_id: str, service: QueueService = Depends(get_queue_service)):
    return service.resume(task_id).to_dict()


@router.post("/{task_id}/retry", response_model=TaskResponse)
async def retry_task(task_id: str, service: QueueService = Depends(get_queue_service)):
    return service.retry(task_id).to_dict()


@router.delete("/{task_id}", response_model=SuccessResponse)
async def remove_task(task_id: str, service: QueueService = Depends(get_queue_service)):
    service.remove(task_id)
    return SuccessResponse(message=f"Removed {task_id} from the download queue")
