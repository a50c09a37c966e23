"""Validation of user-supplied collection fields."""

from typing import List, Optional

from app.config import MAX_COLLECTION_DESCRIPTION_LENGTH, MAX_COLLECTION_NAME_LENGTH
from app.errors import BadRequestError

VALID_LICENSES = [
    "Apache 2.0",
    "Apache License 2.0",
    "BSD 2-Clause \"Simplified\" License",
    "BSD 3-Clause \"New\" or \"Revised\" License",
    "Community Data License Agreement – Permissive",
    "Community Data License Agreement – Sharing",
    "Creative Commons Zero 1.0 Universal",
    "Creative Commons Attribution",
    "Creative Commons Attribution - ShareAlike",
    "Creative Commons Attribution - NonCommercial-ShareAlike",
    "GNU General Public License v3.0",
    "GNU Lesser General Public License",
    "MIT",
    "Mozilla Public License 2.0",
    "Open Data Commons Open Database",
    "Open Data Commons Attribution",
    "Open Data Commons Public Domain Dedication and License",
]


def collection_name(value: str) -> None:
    if len(value) == 0:
        raise BadRequestError("collection name cannot be empty")
    if len(value) > MAX_COLLECTION_NAME_LENGTH:
        raise BadRequestError(
            f"collection name cannot have more than {MAX_COLLECTION_NAME_LENGTH} characters"
        )


def collection_description(value: str) -> None:
    if len(value) > MAX_COLLECTION_DESCRIPTION_LENGTH:
        raise BadRequestError(
            f"collection description cannot have more than "
            f"{MAX_COLLECTION_DESCRIPTION_LENGTH} characters"
        )


def published_description(value: str) -> None:
    if len(value.strip()) == 0:
        raise BadRequestError("published description cannot be empty")


def license(value: Optional[str], required: bool) -> None:
    if not value:
        if required:
            raise BadRequestError("missing required license")
        return
    if value not in VALID_LICENSES:
        raise BadRequestError(f"invalid license: {value!r}")


def tags(value: Optional[List[str]], required: bool) -> None:
    # Catalog stores tags as a text array, so individual tags have no max length
    if not value:
        if required:
            raise BadRequestError("tags array cannot be empty")
        return
    if any(len(tag.strip()) == 0 for tag in value):
        raise BadRequestError("tags array cannot contain empty values")
