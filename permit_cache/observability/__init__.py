"""
Observability components.

Provides contextual logging and decision-fetch metrics.
"""

from .logging import (
    ContextualLoggerAdapter,
    clear_correlation_id,
    get_correlation_id,
    get_logger,
    get_logging_context,
    log_operation,
    set_correlation_id,
)
from .metrics import (
    FetchMetrics,
    MetricsCollector,
    get_metrics_collector,
    record_fetch,
)

__all__ = [
    # Metrics
    "FetchMetrics",
    "MetricsCollector",
    "get_metrics_collector",
    "record_fetch",
    # Logging
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "get_logging_context",
    "ContextualLoggerAdapter",
    "get_logger",
    "log_operation",
]
