"""
Request Middleware

Provides middleware for:
1. Correlation ID - Assigns a unique ID to each request for log tracing.
   The advance controller forwards it to the stage endpoints, so one
   scheduler tick can be followed across every stage call it causes.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.shared.core.logging import set_correlation_id, bind_pipeline_job

CORRELATION_HEADER = "X-Request-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Assigns a correlation ID to each request.

    - Accepts an incoming X-Request-ID header (stage calls from the controller)
    - Otherwise generates req-xxxxxxxx
    - Echoes the ID back in the response headers
    - Clears any pipeline job binding left from a previous request
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = set_correlation_id(request.headers.get(CORRELATION_HEADER))
        bind_pipeline_job(None)

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id

        return response
