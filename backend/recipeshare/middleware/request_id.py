"""
RecipeShare Backend - Request ID Middleware
=============================================

What:  Assigns a short correlation ID to every request and echoes it back.
Why:   Log lines from one request (access log, pipeline stages, orphaned-blob
       warnings) can be grouped by this ID, and clients can quote it in bug reports.
How:   Uses the client's X-Request-ID when present, otherwise generates one.
       The ID is stored in a ContextVar (read by loggers and exception
       handlers) and in request.state, and returned as X-Request-ID.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Sets request_id_var for the duration of the request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]

        # Not reset afterwards: the catch-all 500 handler runs outside this
        # middleware and still reports the ID.
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
