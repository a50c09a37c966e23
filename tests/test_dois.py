"""Tests for DOI categorization, validation and update diffing."""

import pytest

from app.collections.dois import (
    DOIEntry,
    categorize_dois,
    collect_banners,
    compute_doi_update,
    group_by_datasource,
    validate_catalog_response,
)
from app.errors import BadRequestError
from app.integrations.discover import DatasetsByDOIResponse, PublicDataset, Tombstone
from app.models.collection import Datasource

PREFIX = "10.1111"


class TestCategorizeDOIs:
    def test_first_occurrence_wins(self):
        pennsieve, external = categorize_dois(
            PREFIX, ["10.1111/A", "10.1111/B", "10.9999/X", "10.1111/A"]
        )

        assert pennsieve == ["10.1111/A", "10.1111/B"]
        assert external == ["10.9999/X"]

    def test_prefix_must_be_followed_by_slash(self):
        """A DOI that merely starts with the same digits is external."""
        pennsieve, external = categorize_dois(PREFIX, ["10.11112/A", "10.1111/B"])

        assert pennsieve == ["10.1111/B"]
        assert external == ["10.11112/A"]

    def test_whitespace_trimmed_before_dedup(self):
        pennsieve, external = categorize_dois(PREFIX, [" 10.1111/A", "10.1111/A\n"])

        assert pennsieve == ["10.1111/A"]
        assert external == []

    def test_empty_input(self):
        assert categorize_dois(PREFIX, []) == ([], [])


class TestGroupByDatasource:
    def test_keeps_collection_order(self):
        entries = [
            DOIEntry("10.1111/B", Datasource.PENNSIEVE),
            DOIEntry("10.9999/X", Datasource.EXTERNAL),
            DOIEntry("10.1111/A", Datasource.PENNSIEVE),
        ]

        assert group_by_datasource(entries) == (["10.1111/B", "10.1111/A"], ["10.9999/X"])


class TestComputeDOIUpdate:
    """Test diffing requested changes against current membership."""

    def test_adding_present_doi_is_noop(self):
        update = compute_doi_update(PREFIX, ["10.1111/A"], add=["10.1111/A"])

        assert update.add == []
        assert not update

    def test_removing_absent_doi_is_noop(self):
        update = compute_doi_update(PREFIX, ["10.1111/A"], remove=["10.1111/Z"])

        assert update.remove == []
        assert not update

    def test_add_and_remove(self):
        update = compute_doi_update(
            PREFIX,
            ["10.1111/A", "10.1111/B"],
            add=["10.1111/C", "10.1111/A", "10.1111/C"],
            remove=["10.1111/B", "10.1111/B"],
        )

        assert update.add == ["10.1111/C"]
        assert update.remove == ["10.1111/B"]
        assert update

    def test_external_add_rejected(self):
        with pytest.raises(BadRequestError) as exc_info:
            compute_doi_update(PREFIX, [], add=["10.1111/A", "10.9999/X"])

        assert "10.9999/X" in exc_info.value.user_message
        assert exc_info.value.status_code == 400

    def test_external_remove_allowed(self):
        update = compute_doi_update(PREFIX, ["10.9999/X"], remove=["10.9999/X"])

        assert update.remove == ["10.9999/X"]


class TestValidateCatalogResponse:
    def test_published_datasets_pass(self):
        response = DatasetsByDOIResponse(
            published={"10.1111/A": PublicDataset(id=1, doi="10.1111/A", dataset_type="research")}
        )

        validate_catalog_response(response)

    def test_unpublished_rejected(self):
        response = DatasetsByDOIResponse(
            unpublished={"10.1111/A": Tombstone(id=1, doi="10.1111/A", status="Unpublished")}
        )

        with pytest.raises(BadRequestError) as exc_info:
            validate_catalog_response(response)

        assert "unpublished DOIs" in exc_info.value.user_message
        assert "10.1111/A" in exc_info.value.user_message

    def test_collection_doi_rejected(self):
        response = DatasetsByDOIResponse(
            published={
                "10.1111/C": PublicDataset(id=3, doi="10.1111/C", dataset_type="collection")
            }
        )

        with pytest.raises(BadRequestError) as exc_info:
            validate_catalog_response(response)

        assert exc_info.value.user_message == "request contains collection DOIs: 10.1111/C"


class TestCollectBanners:
    def test_at_most_four_in_collection_order(self):
        dois = [f"10.1111/{i}" for i in range(6)]
        published = {
            doi: PublicDataset(id=i, doi=doi, banner=f"https://banners/{i}.jpg")
            for i, doi in enumerate(dois)
        }

        banners = collect_banners(list(reversed(dois)), published)

        assert banners == [f"https://banners/{i}.jpg" for i in (5, 4, 3, 2)]

    def test_missing_banner_is_empty_string(self):
        published = {"10.1111/A": PublicDataset(id=1, doi="10.1111/A")}

        assert collect_banners(["10.1111/A", "10.1111/missing"], published) == [""]
