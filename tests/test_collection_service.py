"""Tests for collection updates."""

import pytest

from app.collections.service import CollectionService
from app.collections.store import CollectionStore
from app.errors import BadRequestError, CollectionNotFoundError, ForbiddenError, InternalError
from app.models.collection import Role
from tests.conftest import DOI_PREFIX, create_collection

A = f"{DOI_PREFIX}/aaaa-1111"
B = f"{DOI_PREFIX}/bbbb-2222"
C = f"{DOI_PREFIX}/cccc-3333"


@pytest.fixture
def service(test_db, fake_catalog):
    return CollectionService(CollectionStore(test_db), fake_catalog, DOI_PREFIX)


class TestUpdateCollection:
    @pytest.mark.asyncio
    async def test_rename_and_describe(self, service, user_claim, test_collection):
        updated = await service.update_collection(
            user_claim, test_collection.node_id, name="  Renamed ", description="New description"
        )

        assert updated.name == "Renamed"
        assert updated.description == "New description"
        assert updated.doi_values == [A, B]

    @pytest.mark.asyncio
    async def test_add_and_remove_dois(self, service, user_claim, test_collection, calls):
        updated = await service.update_collection(
            user_claim, test_collection.node_id, add_dois=[C, A], remove_dois=[B]
        )

        assert updated.doi_values == [A, C]
        assert updated.size == 2
        # Only the DOI that is actually new is checked with Discover
        assert calls == [("resolve", [C])]

    @pytest.mark.asyncio
    async def test_noop_update(self, service, user_claim, test_collection, calls):
        updated = await service.update_collection(
            user_claim,
            test_collection.node_id,
            name="Test Collection",
            add_dois=[A],
            remove_dois=[f"{DOI_PREFIX}/not-a-member"],
        )

        assert updated.doi_values == [A, B]
        assert calls == []

    @pytest.mark.asyncio
    async def test_editor_can_update(self, test_db, service, user_claim, test_user):
        collection = await create_collection(test_db, test_user, role=Role.EDITOR)

        updated = await service.update_collection(user_claim, collection.node_id, name="Edited")

        assert updated.name == "Edited"

    @pytest.mark.asyncio
    async def test_viewer_cannot_update(self, test_db, service, user_claim, test_user):
        collection = await create_collection(test_db, test_user, role=Role.VIEWER)

        with pytest.raises(ForbiddenError) as exc_info:
            await service.update_collection(user_claim, collection.node_id, name="Edited")

        assert "requires user role: editor" in exc_info.value.user_message

    @pytest.mark.asyncio
    async def test_unknown_collection(self, service, user_claim):
        with pytest.raises(CollectionNotFoundError):
            await service.update_collection(user_claim, "N:collection:missing", name="x")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name,description,message",
        [
            ("", None, "collection name cannot be empty"),
            ("n" * 256, None, "collection name cannot have more than 255 characters"),
            (None, "d" * 256, "collection description cannot have more than 255 characters"),
        ],
    )
    async def test_invalid_fields(self, service, user_claim, test_collection, name, description, message):
        with pytest.raises(BadRequestError) as exc_info:
            await service.update_collection(
                user_claim, test_collection.node_id, name=name, description=description
            )

        assert exc_info.value.user_message == message

    @pytest.mark.asyncio
    async def test_external_doi_rejected(self, service, user_claim, test_collection):
        with pytest.raises(BadRequestError) as exc_info:
            await service.update_collection(
                user_claim, test_collection.node_id, add_dois=["10.9999/external"]
            )

        assert "non-Pennsieve DOIs" in exc_info.value.user_message

    @pytest.mark.asyncio
    async def test_unpublished_doi_rejected(self, service, user_claim, test_collection, fake_catalog):
        fake_catalog.unpublished.add(C)

        with pytest.raises(BadRequestError) as exc_info:
            await service.update_collection(user_claim, test_collection.node_id, add_dois=[C])

        assert "unpublished DOIs" in exc_info.value.user_message

    @pytest.mark.asyncio
    async def test_collection_doi_rejected(
        self, service, user_claim, test_collection, fake_catalog
    ):
        fake_catalog.collection_dois.add(C)

        with pytest.raises(BadRequestError) as exc_info:
            await service.update_collection(user_claim, test_collection.node_id, add_dois=[C])

        assert exc_info.value.user_message == f"request contains collection DOIs: {C}"

    @pytest.mark.asyncio
    async def test_catalog_failure(self, service, user_claim, test_collection, fake_catalog):
        fake_catalog.fail_on.add("resolve")

        with pytest.raises(InternalError) as exc_info:
            await service.update_collection(user_claim, test_collection.node_id, add_dois=[C])

        assert exc_info.value.user_message == "error getting DOI info from Discover"
