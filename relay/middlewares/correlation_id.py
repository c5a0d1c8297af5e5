"""
Correlation ID tracking for HTTP requests and WebSocket sessions.

HTTP requests get their id from the X-Correlation-ID header (or a fresh
one); WebSocket sessions bind the leading characters of their client id
through ``bind_correlation_id`` once the connection is registered.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from relay.constants import CORRELATION_ID_LENGTH

# Context variable for storing correlation ID per request or session
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add correlation IDs to HTTP requests.

    This middleware:
    - Extracts correlation ID from X-Correlation-ID header or generates a new one
    - Limits all correlation IDs to 8 characters for consistency
    - Stores correlation ID in context variable for access in logging
    - Adds correlation ID to response headers for client tracking

    BaseHTTPMiddleware only wraps ``http`` scopes; WebSocket traffic passes
    through untouched.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        """
        Process request and add correlation ID.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or endpoint handler.

        Returns:
            Response with X-Correlation-ID header added.
        """
        cid = request.headers.get("X-Correlation-ID", uuid.uuid4().hex)
        cid = bind_correlation_id(cid)

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid

        return response


def bind_correlation_id(value: str) -> str:
    """
    Store a (truncated) correlation ID in the current context.

    Args:
        value: Raw correlation id, e.g. a header value or a client id.

    Returns:
        The truncated id that was stored.
    """
    cid = value[:CORRELATION_ID_LENGTH]
    correlation_id.set(cid)
    return cid


def get_correlation_id() -> str:
    """
    Get the correlation ID for the current request or session context.

    Returns:
        The correlation ID string, or empty string if not set.
    """
    return correlation_id.get()
