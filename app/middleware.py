"""Middleware for request/response logging."""

import time
from typing import Callable
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.logging_config import get_request_logger

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with a request id and attach a request-scoped logger.

    The logger is stored on ``request.state.logger``; route handlers extend it
    with the collection and user they act on. A caller-supplied X-Request-ID
    is reused so log lines can be matched across services.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Health checks are polled constantly
        if request.url.path == "/health":
            return await call_next(request)

        start_time = time.time()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex[:12]
        logger = get_request_logger(request_id=request_id)
        request.state.logger = logger

        logger.info(f"{request.method} {request.url.path}")

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Unhandled error: {request.method} {request.url.path} - "
                f"{e} - {time.time() - start_time:.3f}s",
                exc_info=True,
            )
            raise

        process_time = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} - {response.status_code} - {process_time:.3f}s"
        )
        response.headers["X-Process-Time"] = str(process_time)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
