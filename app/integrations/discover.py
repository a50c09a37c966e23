"""HTTP client for the Discover catalog service.

Discover is the source of truth for publication: it assigns the permanent
dataset id, version and DOI, and records whether a publish finally succeeded.
"""

import asyncio
import os
from datetime import datetime
from typing import Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import sentry_sdk

from app.config import (
    MAX_BANNERS_PER_COLLECTION,
    get_collections_namespace_id,
    get_discover_service_url,
)
from app.integrations.service_token import create_service_token
from app.logging_config import get_logger
from app.models.collection import Role

COLLECTION_DATASET_TYPE = "collection"


class CatalogConfig(BaseModel):
    """Configuration for the Discover client."""

    base_url: str
    jwt_secret: str
    collections_namespace_id: int
    timeout: int = 30
    max_retries: int = 3


class CatalogError(Exception):
    """Base exception for Discover API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CollectionNeverPublishedError(CatalogError):
    """Discover reports that there is nothing to unpublish (204 No Content)."""

    def __init__(self, collection_id: int, collection_node_id: str):
        super().__init__(
            f"collection {collection_node_id} ({collection_id}) has not been published",
            status_code=204,
        )
        self.collection_id = collection_id
        self.collection_node_id = collection_node_id


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PublicDataset(_CamelModel):
    id: int
    name: str = ""
    doi: str = ""
    status: str = ""
    version: int = 0
    banner: Optional[str] = None
    dataset_type: Optional[str] = Field(None, alias="datasetType")


class Tombstone(_CamelModel):
    id: int
    version: int = 0
    name: str = ""
    tags: List[str] = []
    status: str = ""
    doi: str = ""
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class DatasetsByDOIResponse(_CamelModel):
    published: Dict[str, PublicDataset] = {}
    unpublished: Dict[str, Tombstone] = {}

    @field_validator("published", "unpublished", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return {} if value is None else value


class PublishCollectionRequest(_CamelModel):
    name: str
    description: str
    banners: List[str] = Field(default_factory=list, max_length=MAX_BANNERS_PER_COLLECTION)
    dois: List[str] = Field(default_factory=list)
    license: str
    tags: List[str] = Field(default_factory=list)
    owner_id: int = Field(alias="ownerId")
    owner_node_id: str = Field(alias="ownerNodeId")
    owner_first_name: str = Field("", alias="ownerFirstName")
    owner_last_name: str = Field("", alias="ownerLastName")
    owner_orcid: str = Field("", alias="ownerOrcid")
    collection_node_id: str = Field(alias="collectionNodeId")

    @field_validator("banners", "dois", "tags", mode="before")
    @classmethod
    def none_to_empty_list(cls, value):
        # Discover rejects null for required arrays
        return [] if value is None else value

    @field_validator("owner_first_name", "owner_last_name", "owner_orcid", mode="before")
    @classmethod
    def none_to_empty_string(cls, value):
        return "" if value is None else value


class PublishCollectionResponse(_CamelModel):
    published_dataset_id: int = Field(alias="publishedDatasetId")
    published_version: int = Field(alias="publishedVersion")
    status: str
    public_id: str = Field("", alias="publicId")


class FinalizeCollectionPublishRequest(_CamelModel):
    published_dataset_id: int = Field(alias="publishedDatasetId")
    published_version: int = Field(alias="publishedVersion")
    publish_success: bool = Field(alias="publishSuccess")
    file_count: int = Field(0, alias="fileCount")
    total_size: int = Field(0, alias="totalSize")
    manifest_key: str = Field("", alias="manifestKey")
    manifest_version_id: str = Field("", alias="manifestVersionId")


class FinalizeCollectionPublishResponse(_CamelModel):
    status: str


class UnpublishCollectionResponse(_CamelModel):
    published_dataset_id: int = Field(alias="publishedDatasetId")
    published_version_count: int = Field(0, alias="publishedVersionCount")
    status: str


class CatalogPublisher:
    """Async HTTP client for Discover.

    The public DOI lookup is unauthenticated and safe to retry. The internal
    collection endpoints carry a fresh service token and are never retried.
    """

    def __init__(self, config: CatalogConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.logger = get_logger()
        self.client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=config.timeout,
            transport=transport,
        )

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    async def resolve_dois(self, dois: List[str]) -> DatasetsByDOIResponse:
        """Look up DOIs, splitting them into published datasets and tombstones.

        Raises:
            CatalogError: If the lookup fails
        """
        params = [("doi", doi) for doi in dois]
        response = await self._call(
            "GET", "/datasets/doi", "resolve DOIs", retry=True, params=params
        )
        return self._parse(response, DatasetsByDOIResponse, "resolve DOIs")

    async def publish_collection(
        self,
        collection_id: int,
        user_role: Role,
        request: PublishCollectionRequest,
    ) -> PublishCollectionResponse:
        """Start a publish; Discover assigns the dataset id, version and DOI."""
        response = await self._call(
            "POST",
            f"/collection/{collection_id}/publish",
            "publish collection",
            headers=self._auth_headers(collection_id, request.collection_node_id, user_role),
            json=request.model_dump(by_alias=True),
        )
        return self._parse(response, PublishCollectionResponse, "publish collection")

    async def finalize_collection_publish(
        self,
        collection_id: int,
        collection_node_id: str,
        user_role: Role,
        request: FinalizeCollectionPublishRequest,
    ) -> FinalizeCollectionPublishResponse:
        """Tell Discover whether the publish succeeded, with manifest details."""
        response = await self._call(
            "POST",
            f"/collection/{collection_id}/finalize",
            "finalize collection publish",
            headers=self._auth_headers(collection_id, collection_node_id, user_role),
            json=request.model_dump(by_alias=True),
        )
        return self._parse(
            response, FinalizeCollectionPublishResponse, "finalize collection publish"
        )

    async def unpublish_collection(
        self, collection_id: int, collection_node_id: str, user_role: Role
    ) -> UnpublishCollectionResponse:
        """Remove the publication; Discover also removes the published objects.

        Raises:
            CollectionNeverPublishedError: If Discover has nothing to unpublish
            CatalogError: On any other failure
        """
        response = await self._call(
            "POST",
            f"/collection/{collection_id}/unpublish",
            "unpublish collection",
            headers=self._auth_headers(collection_id, collection_node_id, user_role),
        )
        if response.status_code == httpx.codes.NO_CONTENT:
            raise CollectionNeverPublishedError(collection_id, collection_node_id)
        return self._parse(response, UnpublishCollectionResponse, "unpublish collection")

    def _auth_headers(self, collection_id: int, collection_node_id: str, user_role: Role) -> dict:
        token = create_service_token(
            self.config.jwt_secret,
            self.config.collections_namespace_id,
            collection_id,
            collection_node_id,
            user_role,
        )
        return {"Authorization": f"Bearer {token}"}

    def _parse(self, response: httpx.Response, model, operation: str):
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise CatalogError(
                f"error unmarshalling response [{response.text}] to {operation}: {e}",
                status_code=response.status_code,
            ) from e

    async def _call(
        self, method: str, url: str, operation: str, retry: bool = False, **kwargs
    ) -> httpx.Response:
        try:
            attempts = self.config.max_retries if retry else 1
            return await self._request_with_retry(method, url, attempts, **kwargs)
        except httpx.HTTPStatusError as e:
            self._handle_http_error(e, operation)
        except httpx.HTTPError as e:
            self.logger.error(f"Unexpected error trying to {operation} with Discover: {e}")
            sentry_sdk.capture_exception(e)
            raise CatalogError(f"Failed to {operation}: {e}") from e

    async def _request_with_retry(
        self, method: str, url: str, attempts: int, **kwargs
    ) -> httpx.Response:
        """Make HTTP request with exponential backoff retry logic.

        Raises:
            httpx.HTTPStatusError: On final failure after retries
        """
        for attempt in range(attempts):
            try:
                response = await self.client.request(method, url, **kwargs)
                response.raise_for_status()
                return response

            except httpx.HTTPStatusError as e:
                # Don't retry client errors (4xx) except 429 (rate limit)
                if 400 <= e.response.status_code < 500 and e.response.status_code != 429:
                    raise

                if attempt < attempts - 1:
                    wait_time = 2**attempt  # Exponential backoff: 1s, 2s, 4s
                    self.logger.warning(
                        f"Discover API error {e.response.status_code} on {method} {url}, "
                        f"retrying in {wait_time}s (attempt {attempt + 1}/{attempts})"
                    )
                    await asyncio.sleep(wait_time)
                else:
                    raise

    def _handle_http_error(self, error: httpx.HTTPStatusError, operation: str):
        """Convert HTTP errors to CatalogError with proper classification.

        Raises:
            CatalogError: With a message classifying the failure
        """
        status_code = error.response.status_code

        try:
            error_data = error.response.json()
            message = error_data.get("message", str(error))
        except ValueError:
            message = error.response.text or str(error)

        if status_code == 429:
            error_msg = f"Rate limit exceeded while trying to {operation}: {message}"
        elif 500 <= status_code < 600:
            error_msg = f"Discover server error while trying to {operation}: {message}"
        else:
            error_msg = f"Discover API error while trying to {operation}: {message}"

        self.logger.error(f"{error_msg} (status {status_code})")
        sentry_sdk.capture_exception(error)

        raise CatalogError(error_msg, status_code=status_code) from error


def get_catalog_publisher() -> CatalogPublisher:
    """Get a Discover client configured from the environment.

    Raises:
        ValueError: If required settings are missing
    """
    jwt_secret = os.getenv("DISCOVER_JWT_SECRET")
    if not jwt_secret:
        raise ValueError("DISCOVER_JWT_SECRET must be set")

    config = CatalogConfig(
        base_url=get_discover_service_url(),
        jwt_secret=jwt_secret,
        collections_namespace_id=get_collections_namespace_id(),
        timeout=int(os.getenv("CATALOG_TIMEOUT", "30")),
    )
    return CatalogPublisher(config)
