"""Centralized logging configuration for the collections service."""

import logging
import os
import sys
from typing import Optional

from fastapi import Request

LOGGER_NAME = "collections_service"


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)

    if logger.handlers:
        return logger

    level = getattr(logging, log_level.upper(), logging.INFO)
    logger.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Prevent duplicate logs
    logger.propagate = False

    return logger


def get_logger() -> logging.Logger:
    """Get the application logger instance."""
    return logging.getLogger(LOGGER_NAME)


class RequestContextAdapter(logging.LoggerAdapter):
    """Logger adapter that prefixes every message with request-scoped context.

    Each request gets its own adapter so that context such as the collection
    node id never leaks onto the shared application logger.
    """

    def process(self, msg, kwargs):
        if not self.extra:
            return msg, kwargs
        context = " ".join(f"{key}={value}" for key, value in self.extra.items())
        return f"[{context}] {msg}", kwargs

    def with_context(self, **context) -> "RequestContextAdapter":
        """Return a new adapter carrying this adapter's context plus ``context``."""
        merged = dict(self.extra or {})
        merged.update(context)
        return RequestContextAdapter(self.logger, merged)


def get_request_logger(**context) -> RequestContextAdapter:
    """Get a logger bound to the given request-scoped context fields."""
    return RequestContextAdapter(get_logger(), context)


def log_publish_event(
    event_type: str,
    collection_node_id: str,
    user_node_id: Optional[str] = None,
    extra_data: Optional[dict] = None,
) -> None:
    """Log publication lifecycle events.

    Args:
        event_type: Type of event (publish, unpublish, finalize)
        collection_node_id: Public node id of the collection
        user_node_id: Node id of the user performing the action
        extra_data: Optional additional data to log
    """
    logger = get_logger()

    log_data = {
        "event_type": event_type,
        "collection_node_id": collection_node_id,
    }

    if user_node_id:
        log_data["user_node_id"] = user_node_id

    if extra_data:
        log_data.update(extra_data)

    logger.info(f"Publish event: {log_data}")


def log_error(
    error: Exception,
    request: Request,
    error_id: Optional[str] = None,
    context: Optional[str] = None,
) -> None:
    """Log application errors.

    Args:
        error: Exception that occurred
        request: FastAPI request object
        error_id: Optional id returned to the caller with the error response
        context: Optional context description
    """
    logger = get_logger()

    log_data = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "path": request.url.path,
        "method": request.method,
    }

    if error_id:
        log_data["error_id"] = error_id

    if context:
        log_data["context"] = context

    logger.error(f"Application error: {log_data}", exc_info=error.__cause__ is not None)


# Initialize logging on import
_log_level = os.getenv("LOG_LEVEL", "INFO")
setup_logging(_log_level)
