"""
Request middleware: correlation IDs, timing and one access-log line.

Log level per request:

    path                  2xx/3xx   4xx       5xx
    /api/v1/sos/*         INFO      WARNING   ERROR
    anything else         DEBUG     WARNING   ERROR
    docs, liveness        (not logged)

Trigger, cancel and reconcile calls therefore always leave an INFO line,
while routine polling of contacts, settings and health stays at DEBUG.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from aurora.app.core.logging_config import set_request_context

logger = logging.getLogger(__name__)

AUDITED_PREFIX = "/api/v1/sos"
UNLOGGED_PREFIXES = ("/docs", "/redoc", "/openapi", "/favicon", "/health/live")


def request_log_level(path: str, status_code: int) -> Optional[int]:
    """Level for the access line, or None when the path is not logged."""
    if path.startswith(UNLOGGED_PREFIXES):
        return None
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO if path.startswith(AUDITED_PREFIX) else logging.DEBUG


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
        client_ip = request.client.host if request.client else "unknown"
        path = request.url.path
        set_request_context(
            request_id=request_id, client_ip=client_ip,
            endpoint=path, method=request.method,
        )

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            elapsed_ms = (time.perf_counter() - started) * 1000
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{elapsed_ms:.1f}ms"
            return response
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            level = request_log_level(path, status_code)
            if level is not None:
                logger.log(
                    level,
                    "%s %s → %d (%.1fms) [%s]",
                    request.method, path, status_code, elapsed_ms, client_ip,
                    extra={"duration_ms": elapsed_ms, "status_code": status_code, "endpoint": path},
                )
            set_request_context()
