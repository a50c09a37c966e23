"""Collection operations that do not touch publication."""

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.auth.schemas import UserClaim
from app.collections import validate
from app.collections.dois import compute_doi_update, validate_catalog_response
from app.collections.store import CollectionNotFound, CollectionStore, CollectionView
from app.errors import CollectionNotFoundError, ForbiddenError, InternalError
from app.integrations.discover import CatalogError, CatalogPublisher
from app.logging_config import RequestContextAdapter, get_request_logger
from app.models.collection import Role


async def load_collection(
    store: CollectionStore,
    user: UserClaim,
    node_id: str,
    required_role: Role,
    action: str,
) -> CollectionView:
    """Look up a collection and check the caller's role on it.

    Raises:
        CollectionNotFoundError: If the caller cannot see the collection
        ForbiddenError: If the caller's role is below ``required_role``
        InternalError: If the lookup itself fails
    """
    try:
        collection = await store.get_collection(user.id, node_id)
    except CollectionNotFound as e:
        raise CollectionNotFoundError(node_id) from e
    except SQLAlchemyError as e:
        raise InternalError(f"error querying store for collection to be {action}") from e

    if not collection.user_role.implies(required_role):
        raise ForbiddenError(
            f"collection {node_id} not {action}; requires user role: {required_role}"
        )
    return collection


class CollectionService:
    def __init__(
        self,
        collections: CollectionStore,
        catalog: CatalogPublisher,
        doi_prefix: str,
        logger: Optional[RequestContextAdapter] = None,
    ):
        self.collections = collections
        self.catalog = catalog
        self.doi_prefix = doi_prefix
        self.logger = logger or get_request_logger()

    async def update_collection(
        self,
        user: UserClaim,
        node_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        add_dois: Optional[List[str]] = None,
        remove_dois: Optional[List[str]] = None,
    ) -> CollectionView:
        """Rename, redescribe and change the DOIs of a collection.

        Requires the editor role. DOIs being added must be published,
        non-collection Pennsieve datasets.
        """
        log = self.logger.with_context(node_id=node_id, user_node_id=user.node_id)

        if name is not None:
            name = name.strip()
            validate.collection_name(name)
        if description is not None:
            description = description.strip()
            validate.collection_description(description)

        collection = await load_collection(self.collections, user, node_id, Role.EDITOR, "updated")

        doi_update = compute_doi_update(
            self.doi_prefix, collection.doi_values, add=add_dois, remove=remove_dois
        )
        if doi_update.add:
            try:
                resolved = await self.catalog.resolve_dois(doi_update.add)
            except CatalogError as e:
                raise InternalError("error getting DOI info from Discover") from e
            validate_catalog_response(resolved)

        if name == collection.name:
            name = None
        if description == collection.description:
            description = None
        if name is None and description is None and not doi_update:
            log.info("Update request changes nothing")
            return collection

        try:
            updated = await self.collections.update_collection(
                user.id, collection, name=name, description=description, doi_update=doi_update
            )
        except CollectionNotFound as e:
            raise CollectionNotFoundError(node_id) from e
        except SQLAlchemyError as e:
            raise InternalError("error updating collection") from e

        log.info(
            f"Updated collection: added {len(doi_update.add)} DOIs, "
            f"removed {len(doi_update.remove)} DOIs"
        )
        return updated
