"""Global exception handlers for the FastAPI application."""

from http import HTTPStatus

from fastapi import Request
from fastapi.responses import JSONResponse
import sentry_sdk
from starlette.exceptions import HTTPException

from app.errors import APIError
from app.logging_config import get_logger, log_error

logger = get_logger()


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Render an APIError as ``{"message", "id"}``; the cause is only logged."""
    if exc.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
        log_error(exc, request, error_id=exc.error_id)
        sentry_sdk.capture_exception(exc)
    else:
        logger.warning(
            f"{int(exc.status_code)} error: {request.method} {request.url.path} - "
            f"{exc} (id {exc.error_id})"
        )

    return JSONResponse(status_code=int(exc.status_code), content=exc.to_dict())


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Keep framework errors (404 route, 401 auth) in the same JSON shape."""
    logger.warning(f"{exc.status_code} error: {request.url} - {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def internal_server_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions as 500 Internal Server Error."""
    logger.error(f"Internal server error: {request.url} - {str(exc)}", exc_info=True)
    sentry_sdk.capture_exception(exc)

    return JSONResponse(status_code=500, content={"message": "internal server error"})
