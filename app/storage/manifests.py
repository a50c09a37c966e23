"""Versioned S3 storage for published manifests."""

import asyncio
import os
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict

from app.logging_config import get_logger
from app.publishing.manifest import Manifest


class ManifestStoreConfig(BaseModel):
    """Configuration settings for the manifest store."""

    model_config = ConfigDict(from_attributes=True)

    bucket: str
    region: str
    endpoint_url: Optional[str] = None


class ManifestStoreError(Exception):
    """Raised when the object store rejects a manifest write or delete."""


class ManifestArtifactStore:
    """Saves manifests to a versioned bucket.

    Keys are deterministic per published dataset; every save creates a new
    object version whose id is returned to the caller.
    """

    def __init__(self, config: ManifestStoreConfig, client=None) -> None:
        self.config = config
        self.logger = get_logger()
        self._client = client

    def _get_client(self):
        """Get or create the S3 client."""
        if self._client is None:
            client_kwargs = {"region_name": self.config.region}
            if self.config.endpoint_url:
                client_kwargs["endpoint_url"] = self.config.endpoint_url

            self._client = boto3.client("s3", **client_kwargs)
        return self._client

    async def save_manifest(self, key: str, manifest: Manifest) -> str:
        """Write the manifest under ``key`` and return the new version id."""
        body = manifest.marshal()

        try:
            response = await asyncio.to_thread(
                self._get_client().put_object,
                Bucket=self.config.bucket,
                Key=key,
                Body=body,
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as e:
            raise ManifestStoreError(
                f"error writing manifest to {self.config.bucket}/{key}: {e}"
            ) from e

        version_id = response.get("VersionId")
        if not version_id:
            # The object was written but cannot be deleted by version; leave it for an operator
            self.logger.warning(
                f"Manifest written to unversioned object {self.config.bucket}/{key}; "
                "it will not be removed if the publish is rolled back"
            )
            raise ManifestStoreError(
                f"no version id returned for manifest {self.config.bucket}/{key}; "
                "is bucket versioning enabled?"
            )

        self.logger.debug(
            f"Wrote manifest to {self.config.bucket}/{key} (version {version_id}, {len(body)} bytes)"
        )
        return version_id

    async def delete_manifest_version(self, key: str, version_id: str) -> None:
        """Delete exactly one version of the manifest at ``key``."""
        try:
            await asyncio.to_thread(
                self._get_client().delete_object,
                Bucket=self.config.bucket,
                Key=key,
                VersionId=version_id,
            )
        except (ClientError, BotoCoreError) as e:
            raise ManifestStoreError(
                f"error deleting manifest version {version_id} at {self.config.bucket}/{key}: {e}"
            ) from e

        self.logger.debug(f"Deleted manifest version {version_id} at {self.config.bucket}/{key}")


def get_manifest_store() -> ManifestArtifactStore:
    """Get a manifest store configured from the environment.

    Raises:
        ValueError: If PUBLISH_BUCKET is missing
    """
    bucket = os.getenv("PUBLISH_BUCKET")
    if not bucket:
        raise ValueError("PUBLISH_BUCKET must be set")

    config = ManifestStoreConfig(
        bucket=bucket,
        region=os.getenv("AWS_REGION", "us-east-1"),
        endpoint_url=os.getenv("S3_ENDPOINT_URL") or None,
    )
    return ManifestArtifactStore(config)
