"""Database access for collections and the users who publish them."""

from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.collections.dois import DOIEntry, DOIUpdate
from app.logging_config import get_logger
from app.models.collection import Collection, CollectionDOI, CollectionUser, Datasource, Role
from app.models.publish_status import PublishStatus, PublishStatusType, PublishStatusValue
from app.models.user import User


class CollectionNotFound(Exception):
    """No such collection, or the user has no access to it."""


class UserNotFound(Exception):
    pass


@dataclass
class Publication:
    type: PublishStatusType
    status: PublishStatusValue


@dataclass
class CollectionView:
    """A collection as seen by one user."""

    id: int
    node_id: str
    name: str
    description: str
    user_role: Role
    license: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    dois: List[DOIEntry] = field(default_factory=list)
    publication: Optional[Publication] = None

    @property
    def size(self) -> int:
        return len(self.dois)

    @property
    def doi_values(self) -> List[str]:
        return [doi.value for doi in self.dois]


class CollectionStore:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = get_logger()

    def _insert(self):
        if self.db.bind.dialect.name == "postgresql":
            return postgresql_insert
        return sqlite_insert

    async def get_collection(self, user_id: int, node_id: str) -> CollectionView:
        """Return the collection if the user has at least guest access to it.

        Raises:
            CollectionNotFound: If there is no such collection for this user
        """
        result = await self.db.execute(
            select(Collection, CollectionUser.role)
            .join(CollectionUser, CollectionUser.collection_id == Collection.id)
            .where(Collection.node_id == node_id, CollectionUser.user_id == user_id)
            .options(selectinload(Collection.dois))
            .execution_options(populate_existing=True)
        )
        row = result.one_or_none()
        if row is None:
            raise CollectionNotFound(node_id)

        collection, role_value = row
        role = Role(role_value)
        if not role.implies(Role.GUEST):
            raise CollectionNotFound(node_id)

        status_result = await self.db.execute(
            select(PublishStatus)
            .where(PublishStatus.collection_id == collection.id)
            .execution_options(populate_existing=True)
        )
        status = status_result.scalar_one_or_none()
        publication = None
        if status is not None:
            publication = Publication(
                type=PublishStatusType(status.type), status=PublishStatusValue(status.status)
            )

        return CollectionView(
            id=collection.id,
            node_id=collection.node_id,
            name=collection.name,
            description=collection.description or "",
            user_role=role,
            license=collection.license,
            tags=list(collection.tags or []),
            dois=[DOIEntry(doi.doi, Datasource(doi.datasource)) for doi in collection.dois],
            publication=publication,
        )

    async def update_collection(
        self,
        user_id: int,
        collection: CollectionView,
        name: Optional[str] = None,
        description: Optional[str] = None,
        doi_update: Optional[DOIUpdate] = None,
    ) -> CollectionView:
        """Apply name, description and DOI changes in one transaction.

        DOIs that are already members are skipped rather than failing the insert.
        """
        values = {}
        if name is not None:
            values["name"] = name
        if description is not None:
            values["description"] = description

        try:
            if values:
                result = await self.db.execute(
                    update(Collection)
                    .where(Collection.id == collection.id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise CollectionNotFound(collection.node_id)

            if doi_update and doi_update.remove:
                await self.db.execute(
                    delete(CollectionDOI).where(
                        CollectionDOI.collection_id == collection.id,
                        CollectionDOI.doi.in_(doi_update.remove),
                    )
                )

            if doi_update and doi_update.add:
                insert = self._insert()
                await self.db.execute(
                    insert(CollectionDOI)
                    .values(
                        [
                            {
                                "collection_id": collection.id,
                                "doi": doi,
                                "datasource": Datasource.PENNSIEVE.value,
                            }
                            for doi in doi_update.add
                        ]
                    )
                    .on_conflict_do_nothing(index_elements=["collection_id", "doi"])
                )

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        self.logger.debug(
            f"Updated collection {collection.node_id}: fields={sorted(values)} "
            f"added={len(doi_update.add) if doi_update else 0} "
            f"removed={len(doi_update.remove) if doi_update else 0}"
        )
        return await self.get_collection(user_id, collection.node_id)


class UserStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: int) -> User:
        """Raises UserNotFound if there is no such user."""
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFound(user_id)
        return user
