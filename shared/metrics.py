"""
Shared metrics configuration for the PostgreSQL distributed cache.
"""

from prometheus_client import Counter, Histogram, CollectorRegistry, REGISTRY
from typing import Dict, Any, Optional


class MetricsCollector:
    """Centralized metrics collector for cache operations."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else REGISTRY
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up cache metrics."""
        self._metrics["cache_operations_total"] = Counter(
            "cache_operations_total",
            "Total cache operations",
            ["service", "operation", "result"],
            registry=self.registry
        )

        self._metrics["cache_operation_duration_seconds"] = Histogram(
            "cache_operation_duration_seconds",
            "Cache operation duration in seconds",
            ["service", "operation"],
            registry=self.registry
        )

        self._metrics["cache_swept_items_total"] = Counter(
            "cache_swept_items_total",
            "Total expired cache items removed by sweeps",
            ["service"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_operation(self, operation: str, result: str, duration: float):
        """Record one cache operation and its latency."""
        self._metrics["cache_operations_total"].labels(
            service=self.service_name,
            operation=operation,
            result=result
        ).inc()

        self._metrics["cache_operation_duration_seconds"].labels(
            service=self.service_name,
            operation=operation
        ).observe(duration)

    def record_sweep(self, removed: int):
        """Record the number of rows removed by a sweep."""
        if removed > 0:
            self._metrics["cache_swept_items_total"].labels(service=self.service_name).inc(removed)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a cache host."""
    return MetricsCollector(service_name, registry)
