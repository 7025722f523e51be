"""API routes initialization."""

from .catalog import router as catalog_router
from .downloads import router as downloads_router
from .health import router as health_router
from .metrics import router as metrics_router
from .queue import router as queue_router

__all__ = [
    "catalog_router",
    "downloads_router",
    "health_router",
    "metrics_router",
    "queue_router",
]
