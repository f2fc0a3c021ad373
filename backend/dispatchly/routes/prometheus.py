# backend/dispatchly/routes/prometheus.py
"""
Prometheus metrics endpoint for monitoring infrastructure.

Public, unauthenticated, following standard Prometheus practice. Exposes
the service-operation metrics recorded by @measure_operation plus the
scheduling counters (assignments, generated occurrences, capacity
rejections, notifications).
"""

from fastapi import APIRouter, Response

from ..monitoring.prometheus_metrics import prometheus_metrics

router = APIRouter(tags=["monitoring"])


@router.get("/metrics/prometheus", include_in_schema=False)
def get_prometheus_metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
        headers={"Cache-Control": "no-cache"},
    )
