"""Request logging and correlation id propagation.

The upstream auth layer forwards its request id in X-Request-ID. That id
becomes the correlation id for every log line and ledger entry written
while the request is served. X-Correlation-ID is accepted as a fallback.
If neither is present a new id is generated.

Usage:
    from fastapi import FastAPI
    from custody.api.middleware.logging_middleware import LoggingMiddleware

    app = FastAPI()
    app.add_middleware(LoggingMiddleware)
"""

import time
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from custody.infrastructure.observability.correlation import (
    generate_correlation_id,
    set_correlation_id,
)

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADER = "X-Correlation-ID"


def resolve_request_id(request: Request) -> str:
    return (
        request.headers.get(REQUEST_ID_HEADER)
        or request.headers.get(CORRELATION_HEADER)
        or generate_correlation_id()
    )


class LoggingMiddleware(BaseHTTPMiddleware):
    """Sets the correlation id for the request scope and logs timing.

    The id is stored on `request.state.request_id` so that route
    dependencies build command contexts with the same value, and echoed
    back in both response headers.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        request_id = resolve_request_id(request)
        set_correlation_id(request_id)
        request.state.request_id = request_id

        log = structlog.get_logger().bind(
            correlation_id=request_id,
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        )
        log.info("request_started")

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            log.exception(
                "request_failed",
                duration_ms=round(duration_ms, 2),
                error_type=type(exc).__name__,
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        log.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[CORRELATION_HEADER] = request_id
        return response
