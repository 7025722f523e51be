"""
OfflineTube

A dashboard backend that lists videos from a YouTube channel or playlist,
queues selected videos for download through yt-dlp under a concurrency
budget, and serves the finished files individually or as a ZIP archive.
"""

__version__ = "0.1.0"

from .config import settings

__all__ = ["settings"]
