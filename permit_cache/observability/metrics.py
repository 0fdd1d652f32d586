"""
Metrics for decision backend fetches.

Each fetch records how it ended:

- allowed / denied verdicts returned by the backend
- defaulted: a single fetch failed and fell back to the default verdict
- error: a bulk fetch failed and the error propagated
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..constants import MAX_METRICS

logger = logging.getLogger(__name__)


@dataclass
class FetchMetrics:
    """Aggregated metrics for one fetch operation series."""

    operation_name: str
    count: int = 0
    allowed: int = 0
    denied: int = 0
    defaulted: int = 0
    errors: int = 0
    total_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    last_execution: datetime | None = None

    @property
    def avg_duration_ms(self) -> float:
        return self.total_duration_ms / self.count if self.count > 0 else 0.0

    def record(
        self,
        duration_ms: float,
        allowed: int = 0,
        denied: int = 0,
        defaulted: bool = False,
        error: bool = False,
    ) -> None:
        """
        Record one fetch.

        Args:
            duration_ms: Round-trip duration in milliseconds
            allowed: Number of allowed verdicts the fetch produced
            denied: Number of denied verdicts the fetch produced
            defaulted: The fetch fell back to the default verdict
            error: The fetch failed and raised
        """
        self.count += 1
        self.total_duration_ms += duration_ms
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        self.allowed += allowed
        self.denied += denied
        if defaulted:
            self.defaulted += 1
        if error:
            self.errors += 1
        self.last_execution = datetime.now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation_name,
            "count": self.count,
            "allowed": self.allowed,
            "denied": self.denied,
            "defaulted": self.defaulted,
            "errors": self.errors,
            "avg_duration_ms": round(self.avg_duration_ms, 2),
            "max_duration_ms": round(self.max_duration_ms, 2),
            "last_execution": (self.last_execution.isoformat() if self.last_execution else None),
        }


class MetricsCollector:
    """
    Thread-safe collector of FetchMetrics keyed by operation and tags.

    Bounded: once ``max_metrics`` series exist, the least recently updated
    one is evicted.
    """

    def __init__(self, max_metrics: int = MAX_METRICS):
        self._metrics: OrderedDict[str, FetchMetrics] = OrderedDict()
        self._lock = threading.Lock()
        self._max_metrics = max_metrics

    def record_fetch(
        self,
        operation_name: str,
        duration_ms: float,
        allowed: int = 0,
        denied: int = 0,
        defaulted: bool = False,
        error: bool = False,
        **tags: Any,
    ) -> None:
        key = operation_name
        if tags:
            tag_str = "_".join(f"{k}={v}" for k, v in sorted(tags.items()))
            key = f"{operation_name}[{tag_str}]"

        with self._lock:
            is_new = key not in self._metrics
            if is_new and len(self._metrics) >= self._max_metrics:
                self._metrics.popitem(last=False)

            if is_new:
                self._metrics[key] = FetchMetrics(operation_name=operation_name)
            else:
                self._metrics.move_to_end(key)

            self._metrics[key].record(duration_ms, allowed, denied, defaulted, error)

    def get_metrics(self, operation_name: str | None = None) -> dict[str, Any]:
        """Get metrics, optionally restricted to one operation name prefix."""
        with self._lock:
            metrics = {
                k: v.to_dict()
                for k, v in self._metrics.items()
                if operation_name is None or k.startswith(operation_name)
            }

        return {
            "timestamp": datetime.now().isoformat(),
            "metrics": metrics,
            "total_series": len(metrics),
        }

    def get_operation_count(self, operation_name: str) -> int:
        with self._lock:
            return sum(
                m.count for m in self._metrics.values() if m.operation_name == operation_name
            )

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()


# Global metrics collector instance
_metrics_collector: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get or create the global metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


def record_fetch(
    operation_name: str,
    duration_ms: float,
    allowed: int = 0,
    denied: int = 0,
    defaulted: bool = False,
    error: bool = False,
    **tags: Any,
) -> None:
    """Record a fetch in the global metrics collector."""
    get_metrics_collector().record_fetch(
        operation_name, duration_ms, allowed, denied, defaulted, error, **tags
    )
