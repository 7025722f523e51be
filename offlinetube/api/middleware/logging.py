"""
Request logging middleware.

Every HTTP request gets a correlation id (the caller's ``X-Correlation-ID``
when present), a start/completion log line and, when metrics are enabled, a
sample in the HTTP request metrics keyed by route template.
"""

import time
import uuid
from typing import Any, Dict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ...config.logging_config import get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
PROCESSING_TIME_HEADER = "X-Processing-Time"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Correlation ids, request logging and HTTP metrics."""

    # Polled endpoints; logged at debug level only
    QUIET_PATHS = frozenset({"/health/", "/health/live", "/ping", "/metrics"})

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        fields = self._request_fields(request, correlation_id)
        log = logger.debug if request.url.path in self.QUIET_PATHS else logger.info
        log(f"{request.method} {request.url.path} started", extra=fields)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = time.perf_counter() - started
            logger.error(
                f"{request.method} {request.url.path} failed after {elapsed:.3f}s: {e}",
                exc_info=True,
                extra={**fields, "processing_time": elapsed, "error_type": type(e).__name__}
            )
            raise

        elapsed = time.perf_counter() - started
        log(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed:.3f}s)",
            extra={**fields, **self._response_fields(response, elapsed)}
        )
        self._record_metrics(request, response.status_code, elapsed)

        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers[PROCESSING_TIME_HEADER] = f"{elapsed:.3f}"
        return response

    def _record_metrics(self, request: Request, status_code: int, elapsed: float) -> None:
        metrics = getattr(request.app.state, "metrics", None)
        if metrics is None:
            return
        # Labelled by route template, e.g. ``/api/v1/queue/{task_id}/pause``
        route = request.scope.get("route")
        endpoint = getattr(route, "path", None) or "unmatched"
        metrics.record_http_request(request.method, endpoint, status_code, elapsed)

    def _request_fields(self, request: Request, correlation_id: str) -> Dict[str, Any]:
        return {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": self._client_ip(request),
            "user_agent": request.headers.get("user-agent", "unknown"),
        }

    def _response_fields(self, response: Response, elapsed: float) -> Dict[str, Any]:
        return {
            "status_code": response.status_code,
            "processing_time": elapsed,
            "content_type": response.headers.get("content-type"),
        }

    def _client_ip(self, request: Request) -> str:
        """Client address, honouring ``X-Forwarded-For`` and ``X-Real-IP``."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

        return request.client.host if request.client else "unknown"
