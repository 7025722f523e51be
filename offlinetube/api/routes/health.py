"""
Health check endpoints for monitoring application status.
"""

import shutil
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from yt_dlp.version import __version__ as ytdlp_version

from ..dependencies import get_queue_service, get_settings
from ..models.common import HealthStatus, SuccessResponse
from ...config.logging_config import get_logger
from ...config.settings import Settings
from ...services.queue_service import QueueService

logger = get_logger(__name__)
router = APIRouter()

# Application start time for uptime calculation
app_start_time = time.time()


@router.get("/", response_model=HealthStatus)
async def health_check(
    app_settings: Settings = Depends(get_settings),
    service: QueueService = Depends(get_queue_service)
):
    """
    Health of the pieces downloads depend on.

    Reports ``degraded`` when the yt-dlp binary is not on PATH or the
    downloads directory is missing.
    """
    now = datetime.now(timezone.utc).isoformat()
    binary_path = shutil.which(app_settings.YTDLP_BINARY)
    downloads_dir = app_settings.DOWNLOADS_DIR
    state = service.state

    checks = {
        "yt_dlp": {
            "status": "healthy" if binary_path else "unhealthy",
            "library_version": ytdlp_version,
            "binary": binary_path,
            "timestamp": now,
        },
        "downloads_dir": {
            "status": "healthy" if downloads_dir.is_dir() else "unhealthy",
            "path": str(downloads_dir),
            "timestamp": now,
        },
        "queue": {
            "status": "healthy",
            "tasks": len(state),
            "in_flight": state.in_flight_count,
            "budget": state.budget,
            "scheduler_running": service.scheduler.is_running,
        },
        "catalog": {
            "status": "healthy" if app_settings.youtube_configured else "unconfigured",
        },
    }

    degraded = any(check["status"] == "unhealthy" for check in checks.values())
    return HealthStatus(
        status="degraded" if degraded else "healthy",
        version=app_settings.APP_VERSION,
        uptime=time.time() - app_start_time,
        checks=checks,
    )


@router.get("/live", response_model=SuccessResponse)
async def liveness_check():
    """
    Liveness check - indicates if the service is alive.
    """
    return SuccessResponse(message="Service is alive")
