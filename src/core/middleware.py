"""
FastAPI middleware for request tracing.

Every request gets a short request id (taken from X-Request-ID when the
caller sends one), a start/finish log line with timing, and a clean
structlog context afterwards.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging import bind_context, clear_context, get_logger


logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Recommendation requests make up to three LLM round trips; flag the slow tail.
SLOW_REQUEST_MS = 15000.0


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """
    Bind request_id/method/path for the request's logs and echo the id back.

    Usage:
        app.add_middleware(RequestTracingMiddleware)
    """

    def __init__(self, app, slow_request_ms: float = SLOW_REQUEST_MS):
        super().__init__(app)
        self.slow_request_ms = slow_request_ms

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]

        bind_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start_time = time.perf_counter()
        logger.info(
            "Request started",
            client=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise
        else:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            log = logger.warning if duration_ms >= self.slow_request_ms else logger.info
            log(
                "Request completed",
                status_code=response.status_code,
                duration_ms=duration_ms,
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()
