"""Request context middleware for HTTP request tracing.

Every response carries an ``X-Request-ID`` header (echoed from the client or
generated).  The request id, and the caller's owner id when the identity
headers are present, are bound into structlog contextvars so every log entry
for the request can be correlated with the rate card owner.
"""

from __future__ import annotations

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

SERVICE_NAME = "ratecard-engine"
REQUEST_ID_HEADER = "X-Request-ID"
OWNER_ID_HEADER = "X-Owner-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request id and owner id to the logging context of each request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Bind context for the duration of the request and tag the response.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            The HTTP response with ``X-Request-ID`` header set.
        """
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        context = {"request_id": request_id, "service": SERVICE_NAME}
        owner_id = request.headers.get(OWNER_ID_HEADER)
        if owner_id:
            context["owner_id"] = owner_id
        structlog.contextvars.bind_contextvars(**context)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
