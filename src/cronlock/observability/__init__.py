"""Observability module for cronlock.

Provides metrics and structured logging:
- Prometheus metrics for run outcomes and lock operations
- JSON structured logging with run correlation IDs
"""

from cronlock.observability.logging import (
    LogContext,
    configure_logging,
    instance_id_var,
    run_id_var,
    schedule_var,
)
from cronlock.observability.metrics import (
    get_metrics,
    metrics_registry,
    record_lock_operation,
    record_run,
    start_metrics_server,
)

__all__ = [
    # Logging
    "configure_logging",
    "LogContext",
    "schedule_var",
    "run_id_var",
    "instance_id_var",
    # Metrics
    "metrics_registry",
    "get_metrics",
    "record_run",
    "record_lock_operation",
    "start_metrics_server",
]
