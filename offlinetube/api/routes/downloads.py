"""
Download executor endpoints: start a yt-dlp download, report its state and
bundle finished files into a ZIP archive.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ..dependencies import get_archive_builder, get_download_executor, get_metrics
from ..models.downloads import (
    DownloadStatusResponse, StartDownloadRequest, StartDownloadResponse, ZipRequest
)
from ...config.logging_config import get_logger
from ...monitoring.metrics import QueueMetrics
from ...services.archive import ArchiveBuilder
from ...services.download_executor import DownloadExecutor
from ...utils.exceptions import DownloadError, OfflineTubeError

logger = get_logger(__name__)
router = APIRouter()


@router.post("/start", response_model=StartDownloadResponse)
async def start_download(
    request_data: StartDownloadRequest,
    executor: DownloadExecutor = Depends(get_download_executor)
):
    """
    Launch yt-dlp for one video.

    The response only means the process was started; poll
    ``/downloads/status/{filename}`` for completion.
    """
    try:
        job = await executor.start(request_data.videoId, request_data.videoTitle, request_data.quality)
    except OfflineTubeError:
        raise
    except Exception as e:
        logger.error(f"Download start error: {e}", exc_info=True)
        raise DownloadError(str(e) or "An unknown error occurred.", video_id=request_data.videoId, cause=e)

    return StartDownloadResponse(
        videoId=job.video_id,
        downloadUrl=job.download_url,
        filename=job.filename,
    )


@router.get("/status/{filename}", response_model=DownloadStatusResponse)
async def get_download_status(
    filename: str,
    executor: DownloadExecutor = Depends(get_download_executor)
):
    """Executor-side state of the download producing ``filename``."""
    return executor.get_status(filename).to_status()


@router.post("/zip")
async def download_zip(
    request_data: ZipRequest,
    archive_builder: ArchiveBuilder = Depends(get_archive_builder),
    metrics: Optional[QueueMetrics] = Depends(get_metrics)
):
    """Bundle the named files from the downloads directory into one ZIP."""
    try:
        archive_path = await archive_builder.build(request_data.filenames)
    except OfflineTubeError:
        if metrics is not None:
            metrics.record_archive("failed")
        raise

    if metrics is not None:
        metrics.record_archive("success")

    archive_name = archive_builder.archive_name()
    return StreamingResponse(
        archive_builder.stream(archive_path),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{archive_name}"'},
    )
