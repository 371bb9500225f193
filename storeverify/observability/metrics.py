"""
Metrics Collection with Prometheus.

Counts provider round-trips by store, operation and outcome so a host
application can alert on provider outages or credential problems.
"""

import time
from enum import Enum

from prometheus_client import Counter, Gauge, Histogram

from storeverify.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    STORE = "store"
    OPERATION = "operation"
    OUTCOME = "outcome"
    ENVIRONMENT = "environment"
    STATUS = "status"


class StoreMetrics:
    """Centralized metrics for store verification calls."""

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""
        self.requests_total = Counter(
            "storeverify_requests_total",
            "Total store API calls",
            [MetricLabels.STORE, MetricLabels.OPERATION, MetricLabels.OUTCOME],
        )

        self.request_duration_seconds = Histogram(
            "storeverify_request_duration_seconds",
            "Store API call duration in seconds",
            [MetricLabels.STORE, MetricLabels.OPERATION],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )

        self.requests_in_progress = Gauge(
            "storeverify_requests_in_progress",
            "Number of store API calls currently in flight",
            [MetricLabels.STORE, MetricLabels.OPERATION],
        )

        self.receipt_status_total = Counter(
            "storeverify_receipt_status_total",
            "App Store receipt statuses returned by verifyReceipt",
            [MetricLabels.ENVIRONMENT, MetricLabels.STATUS],
        )

    def record_request(self, store: str, operation: str, outcome: str, duration: float) -> None:
        """Record a completed store API call."""
        if not settings.metrics_enabled:
            return
        self.requests_total.labels(store=store, operation=operation, outcome=outcome).inc()
        self.request_duration_seconds.labels(store=store, operation=operation).observe(duration)

    def record_receipt_status(self, environment: str, status: int) -> None:
        """Record the status field of a decoded receipt response."""
        if not settings.metrics_enabled:
            return
        self.receipt_status_total.labels(environment=environment, status=str(status)).inc()


# Global metrics instance
metrics = StoreMetrics()


class track_store_request:
    """
    Context manager for tracking store API calls.

    The outcome is "ok" unless the block raises, in which case it is the
    exception class name.

    Usage:
        with track_store_request("playstore", "get_product"):
            ...
    """

    def __init__(self, store: str, operation: str) -> None:
        self.store = store
        self.operation = operation
        self.start_time: float = 0.0

    def __enter__(self) -> "track_store_request":
        """Start tracking."""
        self.start_time = time.monotonic()
        if settings.metrics_enabled:
            metrics.requests_in_progress.labels(store=self.store, operation=self.operation).inc()
        return self

    def __exit__(
        self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object
    ) -> None:
        """Record metrics."""
        duration = time.monotonic() - self.start_time
        outcome = "ok" if exc_type is None else exc_type.__name__
        metrics.record_request(self.store, self.operation, outcome, duration)
        if settings.metrics_enabled:
            metrics.requests_in_progress.labels(store=self.store, operation=self.operation).dec()
