"""Correlation ID middleware for request tracing."""

import uuid
from contextvars import ContextVar

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

CORRELATION_HEADER = "X-Correlation-ID"

# Readable from anywhere inside the request's task
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """
    Get the current correlation ID from context.

    Returns empty string if called outside of a request context.
    """
    return correlation_id_var.get()


def generate_correlation_id() -> str:
    """Generate a short unique correlation ID."""
    return uuid.uuid4().hex[:16]


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with a correlation ID.

    The ID comes from the X-Correlation-ID request header when the caller
    sends one, otherwise a new one is generated. It is echoed back in the
    response header and exposed to log records through get_correlation_id().
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or generate_correlation_id()
        token = correlation_id_var.set(correlation_id)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            return response
        finally:
            correlation_id_var.reset(token)
