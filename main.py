"""Main FastAPI application entry point.

This module initializes the collections service, which publishes user-curated
collections of dataset DOIs to the Discover catalog.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.errors import APIError
from app.exception_handlers import (
    api_error_handler,
    http_exception_handler,
    internal_server_error_handler,
)
from app.logging_config import get_logger
from app.middleware import LoggingMiddleware
from app.routes import collections


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Handles startup and shutdown events for the FastAPI application.
    """
    logger = get_logger()
    logger.info("Starting collections service")

    yield
    logger.info("Shutting down collections service")


app = FastAPI(
    title="Collections Service",
    description="Curated collections of dataset DOIs, published to Discover",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(LoggingMiddleware)

# Exception handlers
app.add_exception_handler(APIError, api_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, internal_server_error_handler)


# Health check endpoint for monitoring
@app.get("/health")
def health_check():
    """Fast health check endpoint for load balancers and monitoring."""
    return {"status": "ok", "service": "collections-service"}


# Include routers
app.include_router(collections.router)
