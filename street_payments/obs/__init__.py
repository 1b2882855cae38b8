"""Observability utilities."""

from .metrics import (
    PENDING_TRANSACTIONS_GAUGE,
    RECONCILIATION_TRANSITION_COUNTER,
    REQUEST_COUNTER,
    REQUEST_ERROR_COUNTER,
    REQUEST_LATENCY_SECONDS,
    TIPS_CREATED_COUNTER,
    WEBHOOK_EVENT_COUNTER,
    PrometheusMiddleware,
    metrics_router,
)
from .request_log import RequestLogMiddleware, RequestLogRecord
from .tracing import (
    initialise_tracing,
    inject_traceparent,
    instrument_fastapi_app,
    instrument_sqlalchemy_engine,
    start_span,
)

__all__ = [
    "PENDING_TRANSACTIONS_GAUGE",
    "PrometheusMiddleware",
    "RECONCILIATION_TRANSITION_COUNTER",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "RequestLogMiddleware",
    "RequestLogRecord",
    "TIPS_CREATED_COUNTER",
    "WEBHOOK_EVENT_COUNTER",
    "initialise_tracing",
    "inject_traceparent",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "metrics_router",
    "start_span",
]
