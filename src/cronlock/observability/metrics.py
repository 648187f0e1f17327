"""Prometheus metrics for schedule runs.

Provides metrics collection and exposure:
- Run metrics (outcome counts, duration, in-progress gauge)
- Lock metrics (acquire/query/release results)

Usage:
    from cronlock.observability.metrics import get_metrics, start_metrics_server

    start_metrics_server(9100)  # GET :9100/metrics

    metrics = get_metrics()
    metrics.schedule_runs_total.labels(schedule="cleanup", outcome="succeeded").inc()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from prometheus_client import REGISTRY, Counter, Gauge, Histogram, start_http_server

from cronlock.config import settings

logger = logging.getLogger(__name__)


@dataclass
class MetricsRegistry:
    """Registry for Prometheus metrics."""

    # Run metrics
    schedule_runs_total: Any = None
    schedule_run_duration_seconds: Any = None
    schedule_runs_in_progress: Any = None

    # Lock metrics
    lock_operations_total: Any = None

    # Internal state
    _initialized: bool = field(default=False, repr=False)
    _registry: Any = field(default=None, repr=False)

    def initialize(self) -> None:
        """Initialize Prometheus metrics."""
        if self._initialized:
            return

        if not settings.enable_metrics:
            logger.info("Metrics are disabled")
            self._initialized = True
            return

        self._registry = REGISTRY

        self.schedule_runs_total = Counter(
            "cronlock_schedule_runs_total",
            "Schedule runs by outcome",
            ["schedule", "outcome"],
        )

        self.schedule_run_duration_seconds = Histogram(
            "cronlock_schedule_run_duration_seconds",
            "Handler execution time in seconds",
            ["schedule"],
            buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0),
        )

        self.schedule_runs_in_progress = Gauge(
            "cronlock_schedule_runs_in_progress",
            "Handlers currently executing",
            ["schedule"],
        )

        self.lock_operations_total = Counter(
            "cronlock_lock_operations_total",
            "Lock backend operations by result",
            ["operation", "result"],
        )

        self._initialized = True
        logger.info("Prometheus metrics initialized")


# Global metrics registry
metrics_registry = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry.

    Initializes metrics on first access.
    """
    if not metrics_registry._initialized:
        metrics_registry.initialize()
    return metrics_registry


def record_run(schedule: str, outcome: str, duration: float | None = None) -> None:
    """Record a finished run.

    Args:
        schedule: Schedule name
        outcome: Run outcome (succeeded, failed, crashed, not_elected, skipped)
        duration: Handler execution time in seconds, if the handler ran
    """
    metrics = get_metrics()
    if metrics.schedule_runs_total:
        metrics.schedule_runs_total.labels(schedule=schedule, outcome=outcome).inc()
    if duration is not None and metrics.schedule_run_duration_seconds:
        metrics.schedule_run_duration_seconds.labels(schedule=schedule).observe(duration)


def track_in_progress(schedule: str, delta: int) -> None:
    """Adjust the in-progress gauge for a schedule."""
    metrics = get_metrics()
    if metrics.schedule_runs_in_progress:
        gauge = metrics.schedule_runs_in_progress.labels(schedule=schedule)
        if delta >= 0:
            gauge.inc(delta)
        else:
            gauge.dec(-delta)


def record_lock_operation(operation: str, result: str) -> None:
    """Record a lock backend operation.

    Args:
        operation: Lock operation (is_held, try_acquire, release)
        result: Operation result (held, free, acquired, rejected, released, error)
    """
    metrics = get_metrics()
    if metrics.lock_operations_total:
        metrics.lock_operations_total.labels(operation=operation, result=result).inc()


def start_metrics_server(port: int, addr: str = "0.0.0.0") -> bool:
    """Expose the metrics over HTTP for Prometheus to scrape.

    Returns:
        False if metrics are disabled and no server was started
    """
    metrics = get_metrics()
    if metrics._registry is None:
        logger.info("Metrics are disabled, not starting the metrics server")
        return False

    start_http_server(port, addr=addr, registry=metrics._registry)
    logger.info(f"Serving metrics on {addr}:{port}")
    return True
