"""
Services around the download queue: the executor client and server-side
executor, ZIP bundling and the YouTube catalog.
"""

from .executor_client import (
    DownloadExecutorClient, Accepted, Rejected, Completed, Failed, FailureReason
)
from .download_executor import DownloadExecutor, DownloadJob, JobState
from .archive import ArchiveBuilder
from .catalog import YouTubeCatalogClient, CatalogCache

__all__ = [
    "DownloadExecutorClient", "Accepted", "Rejected", "Completed", "Failed",
    "FailureReason", "DownloadExecutor", "DownloadJob", "JobState",
    "ArchiveBuilder", "YouTubeCatalogClient", "CatalogCache",
]
