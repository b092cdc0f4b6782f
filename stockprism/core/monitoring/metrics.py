"""Prometheus metrics helpers for stockprism services."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


class MetricsCollector:
    """Collects and exposes core Prometheus metrics for pipeline operations."""

    def __init__(self, *, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.upstream_latency_seconds = Histogram(
            "stockprism_upstream_latency_seconds",
            "Latency distribution for upstream provider requests.",
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0, float("inf")),
            registry=self.registry,
        )
        self.upstream_requests_total = Counter(
            "stockprism_upstream_requests_total",
            "Upstream provider requests grouped by function and response class.",
            ("function", "outcome"),
            registry=self.registry,
        )
        self.fallback_total = Counter(
            "stockprism_fallback_total",
            "Synthetic fallback series served, grouped by triggering error code.",
            ("reason",),
            registry=self.registry,
        )
        self.normalization_skipped_total = Counter(
            "stockprism_normalization_skipped_total",
            "Time-series entries dropped during normalization.",
            ("data_type",),
            registry=self.registry,
        )
        self.reconciliation_total = Counter(
            "stockprism_reconciliation_total",
            "Reconciliation outcomes grouped by data type and result.",
            ("data_type", "result"),
            registry=self.registry,
        )
        self.storage_failures_total = Counter(
            "stockprism_storage_failures_total",
            "Absorbed persistence failures grouped by operation.",
            ("operation",),
            registry=self.registry,
        )

    def observe_upstream(self, function: str, outcome: str, latency_seconds: float | None = None) -> None:
        """Record one upstream request and its classified outcome."""

        if latency_seconds is not None:
            self.upstream_latency_seconds.observe(latency_seconds)
        self.upstream_requests_total.labels(function=function, outcome=outcome).inc()

    def record_fallback(self, reason: str) -> None:
        self.fallback_total.labels(reason=reason).inc()

    def record_skipped(self, data_type: str, count: int) -> None:
        if count > 0:
            self.normalization_skipped_total.labels(data_type=data_type).inc(count)

    def record_reconciliation(self, data_type: str, result: str) -> None:
        self.reconciliation_total.labels(data_type=data_type, result=result).inc()

    def record_storage_failure(self, operation: str) -> None:
        self.storage_failures_total.labels(operation=operation).inc()

    def render(self) -> bytes:
        """Render metrics in Prometheus exposition format."""

        return generate_latest(self.registry)


_collector: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Return the process-wide metrics collector."""

    global _collector
    if _collector is None:
        _collector = MetricsCollector()
    return _collector


def configure_metrics_collector(collector: MetricsCollector | None) -> None:
    """Replace the process-wide collector; ``None`` resets to a fresh one on next use."""

    global _collector
    _collector = collector


__all__ = ["MetricsCollector", "configure_metrics_collector", "get_metrics_collector"]
