"""
Prometheus metrics endpoint.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Response

from ..dependencies import get_metrics
from ...monitoring.metrics import QueueMetrics
from ...utils.exceptions import NotFoundError

router = APIRouter()


@router.get("")
async def get_prometheus_metrics(metrics: Optional[QueueMetrics] = Depends(get_metrics)):
    """Metrics in Prometheus text format."""
    if metrics is None:
        raise NotFoundError("Metrics are disabled", resource="metrics")
    return Response(content=metrics.get_metrics(), media_type=metrics.get_content_type())
