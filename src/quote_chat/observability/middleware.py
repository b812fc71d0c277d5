"""Request context middleware for HTTP request tracing.

Every response carries an ``X-Request-ID`` header (echoed from the gateway or
generated here).  The request ID and, when present, the acting user from
``X-User-Id`` are bound into structlog contextvars so every log line of a
provisioning request can be correlated.
"""

from __future__ import annotations

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

SERVICE_NAME = "quote-chat"
REQUEST_ID_HEADER = "X-Request-ID"
USER_ID_HEADER = "X-User-Id"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind request-scoped logging context for each HTTP request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Bind ``request_id`` (and ``acting_user_id``) then call the route.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            The HTTP response with ``X-Request-ID`` set.
        """
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        context = {"request_id": request_id, "service": SERVICE_NAME}
        acting_user_id = request.headers.get(USER_ID_HEADER)
        if acting_user_id:
            context["acting_user_id"] = acting_user_id
        structlog.contextvars.bind_contextvars(**context)

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
