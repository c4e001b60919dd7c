"""Prometheus metric definitions for the webhook receiver."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
webhook_requests_total = Counter(
    "webhook_requests_total",
    "Inbound webhook requests by authentication result",
    ["service", "result"],
)
webhook_ingest_total = Counter(
    "webhook_ingest_total",
    "Detached ingest attempts by outcome",
    ["service", "outcome"],
)
webhook_ingest_seconds = Histogram(
    "webhook_ingest_seconds",
    "Duration of one detached ingest write",
    ["service"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
