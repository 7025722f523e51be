"""Utility modules for OfflineTube."""

from .constants import *
from .exceptions import *

__all__ = [
    # Constants
    "API_VERSION",
    "APP_NAME",
    "USER_AGENT",
    "TIMEOUT",
    "ERROR_CODES",

    # Exceptions
    "OfflineTubeError",
    "ValidationError",
    "NotFoundError",
    "DownloadError",
    "ArchiveError",
    "NetworkError",
    "CatalogError",
    "ConfigurationError",
]
