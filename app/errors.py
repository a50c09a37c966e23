"""API error taxonomy returned to callers."""

from http import HTTPStatus
from typing import List, Optional
import uuid


class APIError(Exception):
    """Base class for errors that map to an HTTP response.

    ``user_message`` is what the caller sees; the underlying cause is chained
    with ``raise ... from`` and only ever logged. Compensation failures that
    happened while unwinding after this error are recorded as secondary detail.
    """

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, user_message: str, status_code: Optional[int] = None):
        super().__init__(user_message)
        self.user_message = user_message
        if status_code is not None:
            self.status_code = status_code
        self.error_id = str(uuid.uuid4())
        self.compensation_errors: List[str] = []

    def add_compensation_failures(self, failures: List[str]) -> None:
        """Annotate this error with compensation failures; never replaces it."""
        self.compensation_errors.extend(failures)

    def __str__(self) -> str:
        message = self.user_message
        if self.__cause__ is not None:
            message = f"{message}: {self.__cause__}"
        if self.compensation_errors:
            joined = "; ".join(
                f"in addition an error occurred when running cleanup: {failure}"
                for failure in self.compensation_errors
            )
            message = f"{message}; {joined}"
        return message

    def to_dict(self) -> dict:
        return {"message": self.user_message, "id": self.error_id}


class BadRequestError(APIError):
    status_code = HTTPStatus.BAD_REQUEST


class ForbiddenError(APIError):
    status_code = HTTPStatus.FORBIDDEN


class NotFoundError(APIError):
    status_code = HTTPStatus.NOT_FOUND


class CollectionNotFoundError(NotFoundError):
    def __init__(self, node_id: str):
        super().__init__(f"collection {node_id} not found")
        self.node_id = node_id


class ConflictError(APIError):
    status_code = HTTPStatus.CONFLICT


class InternalError(APIError):
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
