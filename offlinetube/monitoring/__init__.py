"""Prometheus metrics for the download queue."""

from .metrics import QueueMetrics

__all__ = ["QueueMetrics"]
