"""
Common Pydantic models for API requests and responses.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseResponse(BaseModel):
    """Base response model."""
    success: bool = True
    timestamp: datetime = Field(default_factory=_utcnow)


class SuccessResponse(BaseResponse):
    """Generic success response."""
    message: str = "Operation completed successfully"
    data: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Error response model."""
    success: bool = False
    error: str
    message: str
    error_code: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)


class HealthStatus(BaseModel):
    """Health check status."""
    status: str = Field(description="Overall health status")
    timestamp: datetime = Field(default_factory=_utcnow)
    version: str = Field(description="Application version")
    uptime: float = Field(description="Uptime in seconds")
    checks: Dict[str, Any] = Field(description="Individual health checks")
