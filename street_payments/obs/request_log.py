"""Request logging middleware."""
from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

_SENSITIVE_KEYS = {
    "clientsecret",
    "client_secret",
    "authorization",
    "stripe-signature",
    "token",
}
# Webhook bodies are processor payloads, not caller input.
_UNLOGGED_BODY_PATHS = ("/webhooks/",)


def _mask(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: "***" if str(key).lower() in _SENSITIVE_KEYS else _mask(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_mask(item) for item in value]
    return value


@dataclass(slots=True)
class RequestLogRecord:
    """Structured log entry emitted once per request."""

    timestamp: str
    request_id: str
    method: str
    path: str
    status: int
    duration_ms: float
    user_id: str | None
    ip_address: str | None
    body: Any

    def to_json(self) -> str:
        payload = asdict(self)
        payload["duration_ms"] = round(self.duration_ms, 2)
        return json.dumps(payload, default=str)


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Assigns an ``X-Request-ID`` and logs a masked summary of each request."""

    def __init__(self, app: ASGIApp, *, logger: logging.Logger | None = None) -> None:
        super().__init__(app)
        self._logger = logger or logging.getLogger("request")

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()

        body = None
        if request.method in {"POST", "PUT", "PATCH"} and not any(
            marker in request.url.path for marker in _UNLOGGED_BODY_PATHS
        ):
            body_bytes = await request.body()
            if body_bytes:
                try:
                    body = _mask(json.loads(body_bytes))
                except json.JSONDecodeError:
                    body = "<binary>"

        response = await call_next(request)

        record = RequestLogRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=(time.perf_counter() - start) * 1000,
            user_id=getattr(request.state, "user_id", None),
            ip_address=request.client.host if request.client else None,
            body=body,
        )
        self._logger.info(record.to_json())

        response.headers["X-Request-ID"] = request_id
        return response


__all__ = ["RequestLogMiddleware", "RequestLogRecord"]
