"""
Prometheus metrics module for the Dispatchly scheduling engine.

Service timings come from the @measure_operation decorator; scheduling
counters (assignments, generated/deferred occurrences, capacity rejections,
notifications) are incremented by the services that own those events.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from ..core.config import settings

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "dispatchly_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "dispatchly_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "dispatchly_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

# Domain-specific counters
assignments_total = Counter(
    "dispatchly_assignments_total",
    "Assignment attempts by source and outcome",
    ["source", "outcome"],  # source: auto | grab | manual
    registry=REGISTRY,
)

series_occurrences_total = Counter(
    "dispatchly_series_occurrences_total",
    "Recurring series candidate dates by result",
    ["result"],  # created | deferred | holiday | duplicate
    registry=REGISTRY,
)

capacity_rejections_total = Counter(
    "dispatchly_capacity_rejections_total",
    "Bookings refused by the capacity guard",
    ["reason"],
    registry=REGISTRY,
)

notifications_total = Counter(
    "dispatchly_notifications_total",
    "Scheduling notifications by kind and delivery status",
    ["kind", "status"],  # status: delivered | failed
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Wrapper for the module-level metrics with a short-lived exposition cache."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'AssignmentSelector')
            operation: Operation name (e.g., 'auto_assign')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_assignment(source: str, outcome: str) -> None:
        assignments_total.labels(source=source, outcome=outcome).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_series_occurrence(result: str, count: int = 1) -> None:
        if count > 0:
            series_occurrences_total.labels(result=result).inc(count)
            PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_capacity_rejection(reason: str) -> None:
        capacity_rejections_total.labels(reason=reason).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_notification(kind: str, status: str) -> None:
        notifications_total.labels(kind=kind, status=status).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        now = monotonic()
        ttl = settings.prometheus_cache_ttl_seconds
        payload = PrometheusMetrics._cache_payload
        ts = PrometheusMetrics._cache_ts
        if payload is not None and ts is not None and (now - ts) <= ttl:
            return payload

        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_payload = cast(bytes, generate_latest(REGISTRY))
            PrometheusMetrics._cache_ts = monotonic()
            return PrometheusMetrics._cache_payload

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_ts = None
            PrometheusMetrics._cache_payload = None


prometheus_metrics = PrometheusMetrics()
