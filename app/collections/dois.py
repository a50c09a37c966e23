"""DOI categorization, validation and membership diffing."""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from app.config import MAX_BANNERS_PER_COLLECTION
from app.errors import BadRequestError
from app.integrations.discover import (
    COLLECTION_DATASET_TYPE,
    DatasetsByDOIResponse,
    PublicDataset,
)
from app.models.collection import Datasource


@dataclass(frozen=True)
class DOIEntry:
    """A DOI stored on a collection."""

    value: str
    datasource: Datasource


@dataclass
class DOIUpdate:
    """DOIs to add to and remove from a collection."""

    add: List[str] = field(default_factory=list)
    remove: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.add or self.remove)


def categorize_dois(doi_prefix: str, dois: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Split DOIs into (Pennsieve, external) by prefix.

    Whitespace is trimmed and duplicates dropped; the first occurrence of a DOI
    keeps its position.
    """
    prefix_and_slash = f"{doi_prefix}/"
    pennsieve_dois = []
    external_dois = []
    seen = set()

    for doi in dois:
        doi = doi.strip()
        if doi in seen:
            continue
        seen.add(doi)
        if doi.startswith(prefix_and_slash):
            pennsieve_dois.append(doi)
        else:
            external_dois.append(doi)

    return pennsieve_dois, external_dois


def group_by_datasource(dois: Iterable[DOIEntry]) -> Tuple[List[str], List[str]]:
    """Split stored DOI entries into (Pennsieve, external), keeping order."""
    pennsieve_dois = []
    external_dois = []
    for doi in dois:
        if doi.datasource == Datasource.PENNSIEVE:
            pennsieve_dois.append(doi.value)
        else:
            external_dois.append(doi.value)
    return pennsieve_dois, external_dois


def validate_catalog_response(results: DatasetsByDOIResponse) -> None:
    """Reject unpublished DOIs and DOIs that are themselves collections.

    Raises:
        BadRequestError: If any DOI fails either check
    """
    if results.unpublished:
        details = [
            f"{tombstone.doi or doi} status is {tombstone.status}"
            for doi, tombstone in results.unpublished.items()
        ]
        raise BadRequestError(f"request contains unpublished DOIs: {', '.join(details)}")

    collection_dois = [
        doi
        for doi, dataset in results.published.items()
        if dataset.dataset_type == COLLECTION_DATASET_TYPE
    ]
    if collection_dois:
        raise BadRequestError(f"request contains collection DOIs: {', '.join(collection_dois)}")


def collect_banners(requested_dois: List[str], datasets_by_doi: dict) -> List[str]:
    """Banner URLs of the first published DOIs, in collection order.

    At most MAX_BANNERS_PER_COLLECTION entries; DOIs not found are skipped and a
    found dataset without a banner contributes an empty string.
    """
    banners = []
    for doi in requested_dois:
        if len(banners) >= MAX_BANNERS_PER_COLLECTION:
            break
        dataset: Optional[PublicDataset] = datasets_by_doi.get(doi)
        if dataset is not None:
            banners.append(dataset.banner or "")
    return banners


def compute_doi_update(
    doi_prefix: str,
    current_dois: Iterable[str],
    add: Optional[List[str]] = None,
    remove: Optional[List[str]] = None,
) -> DOIUpdate:
    """Diff requested additions and removals against current membership.

    Removing a DOI that is not present, or adding one that already is, is a
    no-op. External DOIs cannot be added.

    Raises:
        BadRequestError: If ``add`` contains non-Pennsieve DOIs
    """
    existing = set(current_dois)
    update = DOIUpdate()

    for doi in remove or []:
        doi = doi.strip()
        if doi in existing and doi not in update.remove:
            update.remove.append(doi)

    pennsieve_dois, external_dois = categorize_dois(doi_prefix, add or [])
    if external_dois:
        # TODO: allow external DOIs once they can be resolved for publishing
        raise BadRequestError(
            f"request contains non-Pennsieve DOIs: {', '.join(external_dois)}"
        )

    update.add = [doi for doi in pennsieve_dois if doi not in existing]
    return update
