"""
Prometheus metrics collection for the download queue.
"""

from typing import Optional

from prometheus_client import (
    Counter, Gauge, Histogram, Info, CollectorRegistry, generate_latest,
    CONTENT_TYPE_LATEST
)

from ..config.logging_config import get_logger
from ..core.models import QueueState, TaskStatus
from ..core.store import QueueStore
from ..utils.constants import METRICS_NAMES

logger = get_logger(__name__)


class QueueMetrics:
    """Metrics collector with its own registry, one per application instance."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._unsubscribe = None
        self._setup_metrics()

    def _setup_metrics(self):
        """Initialize all Prometheus metrics."""

        # Queue metrics
        self.queue_tasks = Gauge(
            METRICS_NAMES["QUEUE_TASKS"],
            "Number of download tasks per status",
            ["status"],
            registry=self.registry
        )

        self.queue_budget = Gauge(
            METRICS_NAMES["QUEUE_BUDGET"],
            "Maximum number of concurrent executor requests",
            registry=self.registry
        )

        self.queue_overall_progress = Gauge(
            "offlinetube_queue_overall_progress",
            "Average progress across all tasks in percent",
            registry=self.registry
        )

        # Executor metrics
        self.executor_outcomes_total = Counter(
            METRICS_NAMES["EXECUTOR_OUTCOMES_TOTAL"],
            "Executor request outcomes seen by the scheduler",
            ["outcome"],
            registry=self.registry
        )

        # Archive metrics
        self.archives_total = Counter(
            METRICS_NAMES["ARCHIVES_TOTAL"],
            "ZIP archives requested",
            ["status"],
            registry=self.registry
        )

        # HTTP metrics
        self.http_requests_total = Counter(
            METRICS_NAMES["HTTP_REQUESTS_TOTAL"],
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self.http_request_duration = Histogram(
            METRICS_NAMES["HTTP_REQUEST_DURATION"],
            "HTTP request duration",
            ["method", "endpoint"],
            buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1, 5, 30],
            registry=self.registry
        )

        self.app_info = Info(
            "offlinetube_app",
            "Application information",
            registry=self.registry
        )

        for status in TaskStatus:
            self.queue_tasks.labels(status=status.value).set(0)

    def bind(self, store: QueueStore) -> None:
        """Track ``store`` snapshots from now on."""
        self.unbind()
        self._unsubscribe = store.subscribe(self.observe_state)
        self.observe_state(store.state)

    def unbind(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def observe_state(self, state: QueueState) -> None:
        for status, count in state.count_by_status().items():
            self.queue_tasks.labels(status=status.value).set(count)
        self.queue_budget.set(state.budget)
        self.queue_overall_progress.set(state.overall_progress)

    def record_executor_outcome(self, outcome: str) -> None:
        self.executor_outcomes_total.labels(outcome=outcome).inc()
        logger.debug(f"Executor outcome recorded: {outcome}")

    def record_archive(self, status: str) -> None:
        self.archives_total.labels(status=status).inc()

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()
        self.http_request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def set_app_info(self, version: str, environment: str):
        self.app_info.info({"version": version, "environment": environment})

    def get_metrics(self) -> str:
        """Get metrics in Prometheus format."""
        return generate_latest(self.registry).decode("utf-8")

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST
