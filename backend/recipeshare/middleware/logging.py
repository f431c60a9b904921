"""
RecipeShare Backend - Request Logging Middleware
==================================================

What:  One access log line per HTTP request.
Why:   Request volume, latency and error rates, correlated by request ID.
How:   Measures time around call_next and logs method, path, status and
       duration on the `recipeshare.access` logger.

Log level by status:
    5xx → ERROR, 4xx → WARNING, everything else → INFO

Request bodies are never logged: recipe forms carry user content and images.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from recipeshare.middleware.request_id import request_id_var

logger = logging.getLogger("recipeshare.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and duration of each request.

    Typical durations:
        - GET /api/recipes:          10-50ms (two queries)
        - POST /api/recipes + image: 200-1500ms (resize and two S3 uploads)
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        path = request.url.path

        # Health probes run every few seconds
        if path == "/health":
            return await call_next(request)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        rid = request_id_var.get("")

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
