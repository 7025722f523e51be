"""
FastAPI dependencies resolving the services stored on the application.
"""

from typing import Optional

from fastapi import Request

from ..config.settings import Settings
from ..monitoring.metrics import QueueMetrics
from ..services.archive import ArchiveBuilder
from ..services.catalog import YouTubeCatalogClient
from ..services.download_executor import DownloadExecutor
from ..services.queue_service import QueueService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_queue_service(request: Request) -> QueueService:
    return request.app.state.queue_service


def get_download_executor(request: Request) -> DownloadExecutor:
    return request.app.state.download_executor


def get_archive_builder(request: Request) -> ArchiveBuilder:
    return request.app.state.archive_builder


def get_catalog_client(request: Request) -> YouTubeCatalogClient:
    return request.app.state.catalog_client


def get_metrics(request: Request) -> Optional[QueueMetrics]:
    """Metrics collector, or None when metrics are disabled."""
    return getattr(request.app.state, "metrics", None)
