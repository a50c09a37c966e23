"""Collection publishing and update routes."""

from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
import sentry_sdk
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.schemas import UserClaim
from app.collections.schemas import CollectionResponse, PatchCollectionBody
from app.collections.service import CollectionService
from app.collections.store import CollectionStore, UserStore
from app.config import get_doi_prefix
from app.database import get_db
from app.errors import InternalError
from app.integrations.discover import CatalogPublisher, get_catalog_publisher
from app.logging_config import RequestContextAdapter
from app.publishing.orchestrator import PublicationOrchestrator
from app.publishing.schemas import (
    PublishCollectionBody,
    PublishCollectionResult,
    UnpublishCollectionResult,
)
from app.publishing.status import PublishStatusStore
from app.storage.manifests import ManifestArtifactStore, get_manifest_store

router = APIRouter(prefix="/collections")


async def get_catalog() -> AsyncIterator[CatalogPublisher]:
    try:
        catalog = get_catalog_publisher()
    except ValueError as e:
        raise InternalError("error getting Discover dependency") from e
    try:
        yield catalog
    finally:
        await catalog.close()


def get_manifests() -> ManifestArtifactStore:
    try:
        return get_manifest_store()
    except ValueError as e:
        raise InternalError("error getting manifest store dependency") from e


def get_pennsieve_doi_prefix() -> str:
    try:
        return get_doi_prefix()
    except ValueError as e:
        raise InternalError("error getting DOI prefix") from e


def request_logger(request: Request, node_id: str, user: UserClaim) -> RequestContextAdapter:
    """The request logger from LoggingMiddleware, bound to the collection and caller."""
    return request.state.logger.with_context(node_id=node_id, user_node_id=user.node_id)


@router.post(
    "/{node_id}/publish",
    response_model=PublishCollectionResult,
    response_model_by_alias=True,
)
async def publish_collection(
    request: Request,
    node_id: str,
    body: PublishCollectionBody,
    current_user: UserClaim = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    catalog: CatalogPublisher = Depends(get_catalog),
    manifests: ManifestArtifactStore = Depends(get_manifests),
):
    """Publish a collection to Discover and write its manifest."""
    sentry_sdk.set_tag("operation", "collection_publish")
    sentry_sdk.set_context("collection", {"node_id": node_id})

    orchestrator = PublicationOrchestrator(
        collections=CollectionStore(db),
        users=UserStore(db),
        statuses=PublishStatusStore(db),
        catalog=catalog,
        manifests=manifests,
        logger=request_logger(request, node_id, current_user),
    )
    return await orchestrator.publish(current_user, node_id, body.license, body.tags)


@router.post(
    "/{node_id}/unpublish",
    response_model=UnpublishCollectionResult,
    response_model_by_alias=True,
)
async def unpublish_collection(
    request: Request,
    node_id: str,
    current_user: UserClaim = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    catalog: CatalogPublisher = Depends(get_catalog),
    manifests: ManifestArtifactStore = Depends(get_manifests),
):
    """Remove a collection's publication from Discover."""
    sentry_sdk.set_tag("operation", "collection_unpublish")
    sentry_sdk.set_context("collection", {"node_id": node_id})

    orchestrator = PublicationOrchestrator(
        collections=CollectionStore(db),
        users=UserStore(db),
        statuses=PublishStatusStore(db),
        catalog=catalog,
        manifests=manifests,
        logger=request_logger(request, node_id, current_user),
    )
    return await orchestrator.unpublish(current_user, node_id)


@router.patch("/{node_id}", response_model=CollectionResponse, response_model_by_alias=True)
async def update_collection(
    request: Request,
    node_id: str,
    body: PatchCollectionBody,
    current_user: UserClaim = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    catalog: CatalogPublisher = Depends(get_catalog),
    doi_prefix: str = Depends(get_pennsieve_doi_prefix),
):
    """Change a collection's name, description or DOIs."""
    sentry_sdk.set_tag("operation", "collection_update")
    sentry_sdk.set_context("collection", {"node_id": node_id})

    service = CollectionService(CollectionStore(db), catalog, doi_prefix, request.state.logger)
    updated = await service.update_collection(
        current_user,
        node_id,
        name=body.name,
        description=body.description,
        add_dois=body.dois.add if body.dois else None,
        remove_dois=body.dois.remove if body.dois else None,
    )
    return CollectionResponse.from_view(updated)
