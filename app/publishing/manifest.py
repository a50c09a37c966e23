"""Self-describing JSON manifest published alongside a collection.

The manifest lists itself as a file whose declared size is the byte length of
the manifest's own serialized form. Building is two-phase: serialize with a
one-digit placeholder size, then patch in the fixed-point size computed by
``compute_self_size``.
"""

from datetime import date, datetime, timezone
import json
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MANIFEST_FILE_NAME = "manifest.json"
MANIFEST_FILE_TYPE = "Json"

PUBLISHER = "The University of Pennsylvania"
SCHEMA_CONTEXT = "http://schema.org/"
SCHEMA_TYPE = "Collection"
SCHEMA_VERSION = "http://schema.org/version/3.7/"
PENNSIEVE_SCHEMA_VERSION = "5.0"
SOURCE_ORGANIZATION = "Pennsieve"

SIZE_PLACEHOLDER = 0

# Optional keys dropped from the document when empty
_OMIT_IF_EMPTY = ("revision", "name", "license", "collections", "relatedPublications")
_CONTRIBUTOR_OMIT_IF_EMPTY = ("orcid", "middle_initial", "degree")
_FILE_OMIT_IF_EMPTY = ("name", "sourcePackageId", "s3VersionId", "sha256")


def _digit_count(value: int) -> int:
    return len(str(value))


def compute_self_size(placeholder_length: int) -> int:
    """Return the size a document must declare to describe its own length.

    ``placeholder_length`` is the byte length of the document serialized with
    the single-digit placeholder ``0`` in the size field. The returned size
    ``s`` satisfies ``s == placeholder_length - 1 + digits(s)``.
    """
    if placeholder_length < 1:
        raise ValueError(f"placeholder length must be positive: {placeholder_length}")

    base = placeholder_length - 1
    digits = _digit_count(base)
    size = base + digits
    if _digit_count(size) > digits:
        # Crossed a power of ten, e.g. 999 -> 1000
        size += 1
    return size


def _drop_empty(data: dict, keys) -> dict:
    for key in keys:
        if key in data and not data[key]:
            del data[key]
    return data


class PublishedContributor(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_name: str = ""
    last_name: str = ""
    orcid: str = ""
    middle_initial: str = ""
    degree: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return "" if value is None else value

    def to_dict(self) -> dict:
        return _drop_empty(self.model_dump(), _CONTRIBUTOR_OMIT_IF_EMPTY)


class FileManifest(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = ""
    path: str
    size: int
    file_type: str = Field(alias="fileType")
    source_package_id: str = Field("", alias="sourcePackageId")
    s3_version_id: str = Field("", alias="s3VersionId")
    sha256: str = ""

    def to_dict(self) -> dict:
        return _drop_empty(self.model_dump(by_alias=True), _FILE_OMIT_IF_EMPTY)


class PublishedCollection(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str


class PublishedExternalPublication(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    doi: str
    relationship_type: str = Field("", alias="relationshipType")

    def to_dict(self) -> dict:
        return _drop_empty(self.model_dump(by_alias=True), ("relationshipType",))


class Manifest(BaseModel):
    """Version 5 manifest document. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    pennsieve_dataset_id: int = 0
    version: int = 0
    revision: int = 0
    name: str = ""
    description: str = ""
    creator: PublishedContributor = PublishedContributor()
    contributors: List[PublishedContributor] = []
    source_organization: str = SOURCE_ORGANIZATION
    keywords: List[str] = []
    date_published: date
    license: str = ""
    id: str = ""
    publisher: str = PUBLISHER
    context: str = SCHEMA_CONTEXT
    type: str = SCHEMA_TYPE
    schema_version: str = SCHEMA_VERSION
    collections: List[PublishedCollection] = []
    related_publications: List[PublishedExternalPublication] = []
    files: List[FileManifest] = []
    references: List[str] = []
    pennsieve_schema_version: str = PENNSIEVE_SCHEMA_VERSION

    @field_validator("contributors", "keywords", "collections", "related_publications",
                     "files", "references", mode="before")
    @classmethod
    def none_to_empty_list(cls, value):
        return [] if value is None else value

    def to_dict(self) -> dict:
        """Return the document in wire order with wire key names."""
        data = {
            "pennsieveDatasetId": self.pennsieve_dataset_id,
            "version": self.version,
            "revision": self.revision,
            "name": self.name,
            "description": self.description,
            "creator": self.creator.to_dict(),
            "contributors": [contributor.to_dict() for contributor in self.contributors],
            "sourceOrganization": self.source_organization,
            "keywords": list(self.keywords),
            "datePublished": self.date_published.isoformat(),
            "license": self.license,
            "@id": self.id,
            "publisher": self.publisher,
            "@context": self.context,
            "@type": self.type,
            "schemaVersion": self.schema_version,
            "collections": [collection.model_dump() for collection in self.collections],
            "relatedPublications": [pub.to_dict() for pub in self.related_publications],
            "files": [file.to_dict() for file in self.files],
            "references": list(self.references),
            "pennsieveSchemaVersion": self.pennsieve_schema_version,
        }
        return _drop_empty(data, _OMIT_IF_EMPTY)

    def marshal(self) -> bytes:
        """Serialize to compact UTF-8 JSON; the bytes that get stored."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False).encode(
            "utf-8"
        )

    def total_size(self) -> int:
        return sum(file.size for file in self.files)

    def s3_key(self) -> str:
        return manifest_key(self.pennsieve_dataset_id)


def manifest_key(published_dataset_id: int) -> str:
    """Object key of the manifest; versions are kept by the object store."""
    return f"{published_dataset_id}/{MANIFEST_FILE_NAME}"


def _manifest_entry(size: int) -> FileManifest:
    return FileManifest(
        name=MANIFEST_FILE_NAME,
        path=MANIFEST_FILE_NAME,
        size=size,
        file_type=MANIFEST_FILE_TYPE,
    )


class ManifestBuilder:
    """Builds a Manifest whose single file entry describes the manifest itself."""

    def __init__(
        self,
        doi: str = "",
        published_dataset_id: int = 0,
        version: int = 0,
        name: str = "",
        description: str = "",
        creator: Optional[PublishedContributor] = None,
        contributors: Optional[List[PublishedContributor]] = None,
        license: str = "",
        keywords: Optional[List[str]] = None,
        references: Optional[List[str]] = None,
        date_published: Optional[date] = None,
    ):
        self.doi = doi
        self.published_dataset_id = published_dataset_id
        self.version = version
        self.name = name
        self.description = description
        self.creator = creator or PublishedContributor()
        self.contributors = contributors or []
        self.license = license
        self.keywords = keywords or []
        self.references = references or []
        self.date_published = date_published or datetime.now(timezone.utc).date()

    def _manifest(self, self_size: int) -> Manifest:
        return Manifest(
            pennsieve_dataset_id=self.published_dataset_id,
            version=self.version,
            name=self.name,
            description=self.description,
            creator=self.creator,
            # Creator always leads the contributor list
            contributors=[self.creator, *self.contributors],
            keywords=list(self.keywords),
            date_published=self.date_published,
            license=self.license,
            id=self.doi,
            files=[_manifest_entry(self_size)],
            references=list(self.references),
        )

    def build(self) -> Manifest:
        placeholder = self._manifest(SIZE_PLACEHOLDER)
        size = compute_self_size(len(placeholder.marshal()))
        return self._manifest(size)
