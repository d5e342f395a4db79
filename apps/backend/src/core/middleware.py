"""Request correlation and access logging middleware."""

import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.error_handler import StructuredLogger, set_correlation_id


CORRELATION_HEADER = "X-Correlation-ID"

access_logger = StructuredLogger("support_relay.access")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Attach a correlation ID to every request and echo it on the response.

    The voice runtime may pass its own ``X-Correlation-ID`` so that a turn can
    be followed across both services; otherwise a fresh UUID is generated.
    The ID is stored in the logging context var and on ``request.state``.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        started = time.perf_counter()
        response = await call_next(request)
        # For SSE responses this measures time-to-headers, not stream length.
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers[CORRELATION_HEADER] = correlation_id
        access_logger.info(
            "Request handled",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(elapsed_ms, 2),
        )
        return response
