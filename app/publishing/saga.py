"""Compensating-action stack for multi-system publish operations.

There is no transaction spanning the database, the catalog and the object
store. Each side-effecting step registers an undo action once it has
completed; on failure the registered actions run in reverse order.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
import logging
from typing import Awaitable, Callable, List

import sentry_sdk

from app.errors import APIError, InternalError

Undo = Callable[[], Awaitable[object]]


@dataclass(frozen=True)
class Compensation:
    description: str
    undo: Undo


class CompensationStack:
    """LIFO list of undo actions for the steps that actually completed."""

    def __init__(self, logger: logging.LoggerAdapter):
        self.logger = logger
        self._compensations: List[Compensation] = []

    def __len__(self) -> int:
        return len(self._compensations)

    @property
    def descriptions(self) -> List[str]:
        return [compensation.description for compensation in self._compensations]

    def push(self, description: str, undo: Undo) -> None:
        """Register the undo action of a step that has just completed."""
        self._compensations.append(Compensation(description, undo))

    @asynccontextmanager
    async def step(self, description: str):
        """Run a saga step, turning unexpected failures into InternalError.

        APIErrors raised inside the step pass through unchanged.
        """
        try:
            yield
        except APIError:
            raise
        except Exception as e:
            raise InternalError(f"error {description}") from e

    async def unwind(self, error: APIError) -> APIError:
        """Run every registered compensation, most recent first.

        Compensation failures are logged and attached to ``error`` as secondary
        detail; they never replace it and are not retried. Returns ``error``.
        """
        failures = []
        while self._compensations:
            compensation = self._compensations.pop()
            try:
                await compensation.undo()
            except Exception as e:
                failures.append(f"{compensation.description}: {e}")
                self.logger.warning(
                    f"Compensation '{compensation.description}' failed while handling "
                    f"error {error.error_id}: {e}"
                )
                sentry_sdk.capture_exception(e)
            else:
                self.logger.info(f"Compensation '{compensation.description}' completed")

        if failures:
            error.add_compensation_failures(failures)
        return error
