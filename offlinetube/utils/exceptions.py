"""
Custom exception classes for OfflineTube.
Provides structured error handling with error codes, context and an HTTP status.
"""

from typing import Optional, Dict, Any
from .constants import ERROR_CODES


class OfflineTubeError(Exception):
    """Base exception for all OfflineTube errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or ERROR_CODES["INTERNAL_ERROR"]
        self.context = context or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "success": False,
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }

    def __str__(self) -> str:
        parts = [self.message]
        if self.error_code:
            parts.append(f"Code: {self.error_code}")
        if self.context:
            parts.append(f"Context: {self.context}")
        return " | ".join(parts)


class ValidationError(OfflineTubeError):
    """Exception raised when input validation fails."""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        context = context or {}
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)

        super().__init__(
            message=message,
            error_code=ERROR_CODES["VALIDATION_ERROR"],
            context=context,
            cause=cause
        )


class NotFoundError(OfflineTubeError):
    """Exception raised when a requested resource does not exist."""

    status_code = 404

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        context = context or {}
        if resource:
            context["resource"] = resource

        super().__init__(
            message=message,
            error_code=ERROR_CODES["NOT_FOUND"],
            context=context,
            cause=cause
        )


class DownloadError(OfflineTubeError):
    """Exception raised when the download executor cannot start yt-dlp."""

    status_code = 500

    def __init__(
        self,
        message: str,
        video_id: Optional[str] = None,
        filename: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        context = context or {}
        if video_id:
            context["video_id"] = video_id
        if filename:
            context["filename"] = filename

        super().__init__(
            message=message,
            error_code=ERROR_CODES["DOWNLOAD_FAILED"],
            context=context,
            cause=cause
        )


class ArchiveError(OfflineTubeError):
    """Exception raised when a ZIP archive cannot be built."""

    status_code = 500

    def __init__(
        self,
        message: str,
        filenames: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        context = context or {}
        if filenames:
            context["filenames"] = list(filenames)

        super().__init__(
            message=message,
            error_code=ERROR_CODES["ARCHIVE_FAILED"],
            context=context,
            cause=cause
        )


class NetworkError(OfflineTubeError):
    """Exception raised when network operations fail."""

    status_code = 502

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        timeout: Optional[bool] = False,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        error_code: Optional[str] = None
    ):
        context = context or {}
        if url:
            context["url"] = url
        if status_code:
            context["status_code"] = status_code
        if timeout:
            context["timeout"] = timeout

        super().__init__(
            message=message,
            error_code=error_code or ERROR_CODES["NETWORK_ERROR"],
            context=context,
            cause=cause
        )


class CatalogError(NetworkError):
    """Exception raised when the YouTube Data API returns an error."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        context = context or {}
        if endpoint:
            context["endpoint"] = endpoint

        super().__init__(
            message=message,
            status_code=status_code,
            context=context,
            cause=cause,
            error_code=ERROR_CODES["CATALOG_ERROR"]
        )


class ConfigurationError(OfflineTubeError):
    """Exception raised when configuration is missing or invalid."""

    status_code = 503

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        context = context or {}
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=ERROR_CODES["CONFIGURATION_ERROR"],
            context=context,
            cause=cause
        )
