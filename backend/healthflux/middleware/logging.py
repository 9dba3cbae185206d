"""
HealthFlux Backend — Request Logging Middleware
================================================

What:  One access-log line per request: method, path, status, duration,
       request ID, client IP and, once authenticated, the caller's user id.
How:   Log level follows the status class (5xx ERROR, 4xx WARNING, else INFO).
       The same fields are attached as `extra` for structured log handlers.

What we never log: request bodies (health data), uploaded file contents,
Authorization headers or session cookies.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from healthflux.middleware.request_id import request_id_var

logger = logging.getLogger("healthflux.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access logging. GET /health is skipped (probes run every few seconds)."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()

        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        path = request.url.path
        rid = request_id_var.get("")

        if path == "/health":
            return await call_next(request)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        user_id = getattr(request.state, "user_id", None) or "-"

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] user=%s from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            user_id,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
                "user_id": user_id,
            },
        )

        return response
