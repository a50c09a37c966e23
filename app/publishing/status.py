"""Publish status bookkeeping.

The conditional claim below is the only concurrency primitive for publishing:
it is enforced by the database, so it holds across independent request
handlers on different hosts.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.logging_config import get_logger
from app.models.publish_status import PublishStatus, PublishStatusType, PublishStatusValue

# Catalog status strings that mean the catalog-side operation went through
CATALOG_SUCCESS_STATUSES = {"PublishSucceeded", "Unpublished"}


class PublishInProgressError(Exception):
    """Raised by claim when another publish of the collection is in progress."""

    def __init__(self, collection_id: int):
        super().__init__("publish already in progress")
        self.collection_id = collection_id


class NoPublishStatusError(Exception):
    """Raised by finish when asked to finish a status that was never claimed."""

    def __init__(self, collection_id: int):
        super().__init__(f"no publish status found for collection {collection_id}")
        self.collection_id = collection_id


def from_catalog_status(catalog_status: Optional[str]) -> PublishStatusValue:
    """Map a catalog publish status to the terminal status we record.

    Anything other than a known success status is treated as a failure.
    """
    if catalog_status in CATALOG_SUCCESS_STATUSES:
        return PublishStatusValue.COMPLETED
    return PublishStatusValue.FAILED


class PublishStatusStore:
    """Reads and writes the one-row-per-collection publish status table."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = get_logger()

    def _insert(self):
        if self.db.bind.dialect.name == "postgresql":
            return postgresql_insert
        return sqlite_insert

    async def get(self, collection_id: int) -> Optional[PublishStatus]:
        result = await self.db.execute(
            select(PublishStatus).where(PublishStatus.collection_id == collection_id)
        )
        return result.scalar_one_or_none()

    async def claim(
        self,
        collection_id: int,
        user_id: int,
        publish_type: PublishStatusType = PublishStatusType.PUBLICATION,
    ) -> None:
        """Mark a publish of the collection as in progress.

        Inserts the status row, or overwrites an existing one only if it is in a
        terminal state. Raises PublishInProgressError without changing anything
        if the existing row is InProgress.
        """
        insert = self._insert()
        stmt = insert(PublishStatus).values(
            collection_id=collection_id,
            status=PublishStatusValue.IN_PROGRESS.value,
            type=publish_type.value,
            user_id=user_id,
            started_at=datetime.now(timezone.utc),
            finished_at=None,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[PublishStatus.collection_id],
            set_={
                "status": stmt.excluded.status,
                "type": stmt.excluded.type,
                "user_id": stmt.excluded.user_id,
                "started_at": stmt.excluded.started_at,
                "finished_at": None,
            },
            where=PublishStatus.status != PublishStatusValue.IN_PROGRESS.value,
        )

        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            await self.db.rollback()
            raise PublishInProgressError(collection_id)
        await self.db.commit()

        self.logger.debug(
            f"Claimed publish status for collection {collection_id}: "
            f"type={publish_type.value} user_id={user_id}"
        )

    async def finish(
        self, collection_id: int, status: PublishStatusValue, must_exist: bool
    ) -> None:
        """Set a terminal status and stamp finished_at.

        If must_exist is True and there is no status row for the collection,
        raises NoPublishStatusError and creates nothing.
        """
        if not status.is_terminal:
            raise ValueError(f"cannot finish publish with non-terminal status {status.value}")

        # Earlier failed statements may have left the transaction unusable
        if self.db.in_transaction():
            await self.db.rollback()

        result = await self.db.execute(
            update(PublishStatus)
            .where(PublishStatus.collection_id == collection_id)
            .values(status=status.value, finished_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            if must_exist:
                raise NoPublishStatusError(collection_id)
            return
        await self.db.commit()

        self.logger.debug(f"Finished publish of collection {collection_id} as {status.value}")
