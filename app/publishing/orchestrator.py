"""Publication saga: publish and unpublish a collection.

A publish moves state forward in three systems that share no transaction: the
publish status row, the Discover catalog and the manifest bucket. Each step
that changes one of them registers its undo on a CompensationStack; if a later
step fails, the registered undos run most recent first and the original
error is returned to the caller.

Steps of a publish:

1. load the collection and require the owner role
2. claim the publish status (undo: mark it Failed)
3. validate description, license and tags
4. resolve the collection's DOIs with Discover and collect banners
5. load the publishing user's profile
6. start the publish on Discover (undo: finalize it as failed)
7. build the manifest and save it (undo: delete that manifest version)
8. finalize the publish on Discover with the manifest details
9. finish the publish status with the status Discover returned
"""

from functools import partial
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.auth.schemas import UserClaim
from app.collections import validate
from app.collections.dois import collect_banners, group_by_datasource
from app.collections.service import load_collection
from app.collections.store import CollectionStore, CollectionView, UserStore
from app.errors import APIError, BadRequestError, ConflictError, InternalError
from app.integrations.discover import (
    CatalogPublisher,
    CollectionNeverPublishedError,
    FinalizeCollectionPublishRequest,
    PublishCollectionRequest,
    PublishCollectionResponse,
)
from app.logging_config import log_publish_event
from app.models.collection import Role
from app.models.publish_status import PublishStatusType, PublishStatusValue
from app.models.user import User
from app.publishing.manifest import ManifestBuilder, PublishedContributor
from app.publishing.saga import CompensationStack
from app.publishing.schemas import PublishCollectionResult, UnpublishCollectionResult
from app.publishing.status import (
    PublishInProgressError,
    PublishStatusStore,
    from_catalog_status,
)
from app.storage.manifests import ManifestArtifactStore


def creator_from_user(user: User) -> PublishedContributor:
    return PublishedContributor(
        first_name=user.first_name,
        last_name=user.last_name,
        orcid=user.orcid,
        middle_initial=user.middle_initial,
        degree=user.degree,
    )


def validate_publication_for_unpublish(collection: CollectionView) -> None:
    """Only a collection whose last publication went through can be unpublished.

    Raises:
        ConflictError: If never published, busy, or already unpublished
    """
    publication = collection.publication
    if publication is None:
        raise ConflictError("error unpublishing: collection has not been published")
    if publication.status == PublishStatusValue.IN_PROGRESS:
        raise ConflictError(
            "error unpublishing: another publication process is already in progress: "
            f"{publication.type.value}"
        )
    if (
        publication.type == PublishStatusType.REMOVAL
        and publication.status == PublishStatusValue.COMPLETED
    ):
        raise ConflictError("error unpublishing: collection already unpublished")


class PublicationOrchestrator:
    """Drives the publish and unpublish sagas.

    All collaborators are passed in; nothing is looked up globally, so each
    request gets its own orchestrator and its own request-scoped logger.
    """

    def __init__(
        self,
        collections: CollectionStore,
        users: UserStore,
        statuses: PublishStatusStore,
        catalog: CatalogPublisher,
        manifests: ManifestArtifactStore,
        logger,
    ):
        self.collections = collections
        self.users = users
        self.statuses = statuses
        self.catalog = catalog
        self.manifests = manifests
        self.logger = logger

    async def publish(
        self,
        user: UserClaim,
        node_id: str,
        license: str,
        tags: Optional[List[str]],
    ) -> PublishCollectionResult:
        license = (license or "").strip()
        tags = tags or []

        collection = await load_collection(self.collections, user, node_id, Role.OWNER, "published")
        await self._claim(collection, user, PublishStatusType.PUBLICATION, "publish")

        saga = CompensationStack(self.logger)
        saga.push("mark publish status failed", self._mark_failed(collection))
        try:
            result = await self._publish_steps(saga, user, collection, license, tags)
        except APIError as e:
            self.logger.warning(
                f"Publish failed ({e.user_message}); running {len(saga)} compensations"
            )
            await saga.unwind(e)
            raise

        log_publish_event(
            "publish",
            collection.node_id,
            user.node_id,
            {
                "published_dataset_id": result.published_dataset_id,
                "published_version": result.published_version,
                "status": result.status,
            },
        )
        return result

    async def _publish_steps(
        self,
        saga: CompensationStack,
        user: UserClaim,
        collection: CollectionView,
        license: str,
        tags: List[str],
    ) -> PublishCollectionResult:
        validate.published_description(collection.description)
        validate.license(license, required=True)
        validate.tags(tags, required=True)

        pennsieve_dois, external_dois = group_by_datasource(collection.dois)
        if external_dois:
            raise BadRequestError(
                f"collection contains non-Pennsieve DOIs: {', '.join(external_dois)}"
            )

        banners = []
        if pennsieve_dois:
            async with saga.step("getting DOI info from Discover"):
                resolved = await self.catalog.resolve_dois(pennsieve_dois)
            if resolved.unpublished:
                raise BadRequestError(
                    f"collection contains unpublished DOIs: {', '.join(resolved.unpublished)}"
                )
            banners = collect_banners(pennsieve_dois, resolved.published)

        async with saga.step("getting user information"):
            profile = await self.users.get_user(user.id)

        request = PublishCollectionRequest(
            name=collection.name,
            description=collection.description,
            banners=banners,
            dois=collection.doi_values,
            license=license,
            tags=tags,
            owner_id=user.id,
            owner_node_id=user.node_id,
            owner_first_name=profile.first_name,
            owner_last_name=profile.last_name,
            owner_orcid=profile.orcid,
            collection_node_id=collection.node_id,
        )
        async with saga.step("publishing to Discover"):
            published = await self.catalog.publish_collection(
                collection.id, collection.user_role, request
            )
        saga.push(
            "finalize Discover publish as failed",
            partial(self._finalize_failure, collection, published),
        )
        self.logger.info(
            f"Publish started on Discover: publishedDatasetId={published.published_dataset_id} "
            f"publishedVersion={published.published_version} status={published.status}"
        )

        async with saga.step("creating manifest"):
            manifest = ManifestBuilder(
                doi=published.public_id,
                published_dataset_id=published.published_dataset_id,
                version=published.published_version,
                name=collection.name,
                description=collection.description,
                creator=creator_from_user(profile),
                license=license,
                keywords=tags,
                references=pennsieve_dois,
            ).build()

        key = manifest.s3_key()
        async with saga.step("publishing manifest"):
            version_id = await self.manifests.save_manifest(key, manifest)
        saga.push(
            "delete manifest version",
            partial(self.manifests.delete_manifest_version, key, version_id),
        )
        self.logger.info(f"Wrote manifest {key} (version {version_id})")

        finalize_request = FinalizeCollectionPublishRequest(
            published_dataset_id=published.published_dataset_id,
            published_version=published.published_version,
            publish_success=True,
            file_count=len(manifest.files),
            total_size=manifest.total_size(),
            manifest_key=key,
            manifest_version_id=version_id,
        )
        async with saga.step("finalizing publish with Discover"):
            finalized = await self.catalog.finalize_collection_publish(
                collection.id, collection.node_id, collection.user_role, finalize_request
            )

        async with saga.step("marking publish as complete"):
            await self.statuses.finish(
                collection.id, from_catalog_status(finalized.status), must_exist=True
            )

        return PublishCollectionResult(
            published_dataset_id=published.published_dataset_id,
            published_version=published.published_version,
            status=finalized.status,
        )

    async def unpublish(self, user: UserClaim, node_id: str) -> UnpublishCollectionResult:
        collection = await load_collection(
            self.collections, user, node_id, Role.OWNER, "unpublished"
        )
        validate_publication_for_unpublish(collection)
        await self._claim(collection, user, PublishStatusType.REMOVAL, "unpublish")

        saga = CompensationStack(self.logger)
        saga.push("mark unpublish status failed", self._mark_failed(collection))
        try:
            async with saga.step("unpublishing with Discover"):
                try:
                    response = await self.catalog.unpublish_collection(
                        collection.id, collection.node_id, collection.user_role
                    )
                except CollectionNeverPublishedError as e:
                    raise ConflictError("Discover reports collection not published") from e

            self.logger.info(
                f"Unpublished on Discover: publishedDatasetId={response.published_dataset_id} "
                f"versions={response.published_version_count} status={response.status}"
            )

            async with saga.step("marking unpublish as complete"):
                await self.statuses.finish(
                    collection.id, from_catalog_status(response.status), must_exist=True
                )
        except APIError as e:
            self.logger.warning(
                f"Unpublish failed ({e.user_message}); running {len(saga)} compensations"
            )
            await saga.unwind(e)
            raise

        log_publish_event(
            "unpublish",
            collection.node_id,
            user.node_id,
            {"published_dataset_id": response.published_dataset_id, "status": response.status},
        )
        return UnpublishCollectionResult(
            published_dataset_id=response.published_dataset_id,
            published_version=response.published_version_count,
            status=response.status,
        )

    async def _claim(
        self,
        collection: CollectionView,
        user: UserClaim,
        publish_type: PublishStatusType,
        operation: str,
    ) -> None:
        try:
            await self.statuses.claim(collection.id, user.id, publish_type)
        except PublishInProgressError as e:
            raise ConflictError(str(e)) from e
        except SQLAlchemyError as e:
            error = InternalError(f"error registering start of {operation}")
            # The claim may have committed even though the client saw an error
            try:
                await self.statuses.finish(
                    collection.id, PublishStatusValue.FAILED, must_exist=False
                )
            except Exception as cleanup_error:
                self.logger.warning(
                    f"Could not mark {operation} status failed after claim error: {cleanup_error}"
                )
                error.add_compensation_failures(
                    [f"mark {operation} status failed: {cleanup_error}"]
                )
            raise error from e

    def _mark_failed(self, collection: CollectionView):
        return partial(
            self.statuses.finish, collection.id, PublishStatusValue.FAILED, must_exist=True
        )

    async def _finalize_failure(
        self, collection: CollectionView, published: PublishCollectionResponse
    ) -> None:
        request = FinalizeCollectionPublishRequest(
            published_dataset_id=published.published_dataset_id,
            published_version=published.published_version,
            publish_success=False,
        )
        await self.catalog.finalize_collection_publish(
            collection.id, collection.node_id, collection.user_role, request
        )
