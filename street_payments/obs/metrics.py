"""Prometheus metrics for the API and the reconciliation worker."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_LATENCY_SECONDS = Histogram(
    "http_request_latency_seconds",
    "Latency of HTTP requests in seconds.",
    labelnames=("method", "path"),
)
REQUEST_COUNTER = Counter(
    "http_requests_total",
    "Total number of HTTP requests processed.",
    labelnames=("method", "path", "status"),
)
REQUEST_ERROR_COUNTER = Counter(
    "http_request_errors_total",
    "Total number of HTTP requests that resulted in server errors.",
    labelnames=("method", "path", "status"),
)
TIPS_CREATED_COUNTER = Counter(
    "tips_created_total",
    "Tip payment intents created, by currency.",
    labelnames=("currency",),
)
WEBHOOK_EVENT_COUNTER = Counter(
    "payment_webhook_events_total",
    "Payment processor webhook events received, by type and outcome.",
    labelnames=("event_type", "outcome"),
)
RECONCILIATION_TRANSITION_COUNTER = Counter(
    "transaction_reconciliations_total",
    "Terminal status transitions applied to transactions, by source and status.",
    labelnames=("source", "status"),
)
PENDING_TRANSACTIONS_GAUGE = Gauge(
    "stale_pending_transactions",
    "Pending transactions still older than the sweep threshold after the last sweep.",
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware that records request metrics for Prometheus scraping."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        method = request.method
        path = request.url.path
        start_time = time.perf_counter()
        status = "500"

        try:
            response = await call_next(request)
            status = str(response.status_code)
            if response.status_code >= 500:
                REQUEST_ERROR_COUNTER.labels(method=method, path=path, status=status).inc()
            return response
        except Exception:
            REQUEST_ERROR_COUNTER.labels(method=method, path=path, status="500").inc()
            raise
        finally:
            latency = time.perf_counter() - start_time
            REQUEST_LATENCY_SECONDS.labels(method=method, path=path).observe(latency)
            REQUEST_COUNTER.labels(method=method, path=path, status=status).inc()


metrics_router = APIRouter(tags=["observability"])


@metrics_router.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    """Expose Prometheus metrics for scraping."""
    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "PENDING_TRANSACTIONS_GAUGE",
    "PrometheusMiddleware",
    "RECONCILIATION_TRANSITION_COUNTER",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "TIPS_CREATED_COUNTER",
    "WEBHOOK_EVENT_COUNTER",
    "metrics_endpoint",
    "metrics_router",
]
