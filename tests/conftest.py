import os
import sys
from typing import List, Optional

import httpx
from httpx import AsyncClient
import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set testing environment variable
os.environ["TESTING"] = "1"

# Add the project root to the path so imports work
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.auth.schemas import UserClaim
from app.auth.utils import create_access_token
from app.database import Base, get_db
from app.integrations.discover import (
    CatalogError,
    CollectionNeverPublishedError,
    DatasetsByDOIResponse,
    FinalizeCollectionPublishResponse,
    PublicDataset,
    PublishCollectionResponse,
    Tombstone,
    UnpublishCollectionResponse,
)
from app.models.collection import Collection, CollectionDOI, CollectionUser, Datasource, Role
from app.models.publish_status import PublishStatusType
from app.models.user import User
from app.publishing.status import PublishStatusStore
from app.storage.manifests import ManifestStoreError
from main import app

# Test database URL - use PostgreSQL in CI, SQLite locally
# Check if we're in CI by looking for CI environment variable
if os.getenv("CI") and os.getenv("DATABASE_URL"):
    TEST_DATABASE_URL = os.getenv("DATABASE_URL")
else:
    TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

DOI_PREFIX = "10.1111"
PUBLISHED_DATASET_ID = 5069
PUBLISHED_VERSION = 1
PUBLISHED_DOI = f"{DOI_PREFIX}/collection-5069"
MANIFEST_VERSION_ID = "3HL4kqtJlcpXroDTDmJ-rmSpXd3dIbrHY"


@pytest_asyncio.fixture
async def test_db():
    """Create a test database session."""
    # Different connection args for SQLite vs PostgreSQL
    if "sqlite" in TEST_DATABASE_URL:
        connect_args = {"check_same_thread": False}
        poolclass = StaticPool
    else:
        connect_args = {}
        poolclass = None

    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=poolclass,
        connect_args=connect_args,
        echo=False,
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Create session
    TestSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    session = TestSessionLocal()
    try:
        yield session
    finally:
        await session.close()
        # Clean up
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest_asyncio.fixture
async def client(test_db):
    """Create a test client with dependency override."""

    def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    # Use httpx AsyncClient with the app's ASGI callable
    async with AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_user(test_db):
    """Create a test user in the database."""
    user = User(
        node_id="N:user:4b8c9f2e-1d3a-4e5f-8a7b-6c5d4e3f2a1b",
        email="test@example.com",
        first_name="Ada",
        last_name="Lovelace",
        orcid="0000-0002-1825-0097",
    )

    test_db.add(user)
    await test_db.commit()
    await test_db.refresh(user)
    # Detach so rollbacks inside the code under test cannot expire it
    test_db.expunge(user)

    return user


@pytest.fixture
def user_claim(test_user) -> UserClaim:
    return UserClaim(id=test_user.id, node_id=test_user.node_id)


@pytest.fixture
def auth_headers(test_user) -> dict:
    token = create_access_token({"sub": test_user.node_id, "user_id": test_user.id})
    return {"Authorization": f"Bearer {token}"}


async def create_collection(
    test_db,
    user: User,
    role: Role = Role.OWNER,
    node_id: str = "N:collection:7f3a2b1c-0d9e-4f8a-b7c6-d5e4f3a2b1c0",
    name: str = "Test Collection",
    description: str = "A collection of test datasets",
    dois: Optional[List[str]] = None,
    external_dois: Optional[List[str]] = None,
) -> Collection:
    """Helper function to create a collection the user has ``role`` on."""
    if dois is None:
        dois = [f"{DOI_PREFIX}/aaaa-1111", f"{DOI_PREFIX}/bbbb-2222"]

    collection = Collection(node_id=node_id, name=name, description=description, tags=[])
    test_db.add(collection)
    await test_db.flush()

    test_db.add(CollectionUser(collection_id=collection.id, user_id=user.id, role=role.value))
    for doi in dois:
        test_db.add(
            CollectionDOI(
                collection_id=collection.id, doi=doi, datasource=Datasource.PENNSIEVE.value
            )
        )
        await test_db.flush()
    for doi in external_dois or []:
        test_db.add(
            CollectionDOI(collection_id=collection.id, doi=doi, datasource=Datasource.EXTERNAL.value)
        )
        await test_db.flush()

    await test_db.commit()
    await test_db.refresh(collection)
    test_db.expunge(collection)
    return collection


@pytest_asyncio.fixture
async def test_collection(test_db, test_user):
    """Create a collection owned by the test user."""
    return await create_collection(test_db, test_user)


class FakeCatalog:
    """Stand-in for CatalogPublisher that records calls into a shared list.

    Every DOI resolves to a published dataset unless listed in ``unpublished``
    or ``collection_dois``. Operations named in ``fail_on`` raise CatalogError;
    ``finalize`` only fails the success call so the failure compensation can
    still be observed.
    """

    def __init__(self, calls: list):
        self.calls = calls
        self.fail_on = set()
        self.unpublished = set()
        self.collection_dois = set()
        self.never_published = False
        self.finalize_status = "PublishSucceeded"
        self.unpublish_status = "Unpublished"
        self.publish_requests = []
        self.finalize_requests = []

    async def resolve_dois(self, dois):
        self.calls.append(("resolve", list(dois)))
        if "resolve" in self.fail_on:
            raise CatalogError("Discover unavailable", status_code=503)
        published = {}
        unpublished = {}
        for i, doi in enumerate(dois, start=1):
            if doi in self.unpublished:
                unpublished[doi] = Tombstone(id=i, doi=doi, status="Unpublished")
            else:
                published[doi] = PublicDataset(
                    id=i,
                    doi=doi,
                    name=f"Dataset {i}",
                    banner=f"https://assets.example.com/{i}/banner.jpg",
                    dataset_type="collection" if doi in self.collection_dois else "research",
                )
        return DatasetsByDOIResponse(published=published, unpublished=unpublished)

    async def publish_collection(self, collection_id, user_role, request):
        self.calls.append(("publish", collection_id))
        self.publish_requests.append(request)
        if "publish" in self.fail_on:
            raise CatalogError("Discover rejected publish", status_code=500)
        return PublishCollectionResponse(
            published_dataset_id=PUBLISHED_DATASET_ID,
            published_version=PUBLISHED_VERSION,
            status="PublishInProgress",
            public_id=PUBLISHED_DOI,
        )

    async def finalize_collection_publish(self, collection_id, collection_node_id, user_role, request):
        self.calls.append(("finalize", request.publish_success))
        self.finalize_requests.append(request)
        if request.publish_success and "finalize" in self.fail_on:
            raise CatalogError("Discover finalize failed", status_code=500)
        if not request.publish_success and "finalize_failure" in self.fail_on:
            raise CatalogError("Discover finalize failed", status_code=500)
        status = self.finalize_status if request.publish_success else "PublishFailed"
        return FinalizeCollectionPublishResponse(status=status)

    async def unpublish_collection(self, collection_id, collection_node_id, user_role):
        self.calls.append(("unpublish", collection_id))
        if self.never_published:
            raise CollectionNeverPublishedError(collection_id, collection_node_id)
        if "unpublish" in self.fail_on:
            raise CatalogError("Discover unpublish failed", status_code=500)
        return UnpublishCollectionResponse(
            published_dataset_id=PUBLISHED_DATASET_ID,
            published_version_count=1,
            status=self.unpublish_status,
        )

    async def close(self):
        pass


class FakeManifestStore:
    """Stand-in for ManifestArtifactStore that keeps manifests in memory."""

    def __init__(self, calls: list):
        self.calls = calls
        self.fail_save = False
        self.fail_delete = False
        self.saved = {}

    async def save_manifest(self, key, manifest):
        self.calls.append(("save", key))
        if self.fail_save:
            raise ManifestStoreError(f"error writing manifest to bucket/{key}")
        self.saved[(key, MANIFEST_VERSION_ID)] = manifest
        return MANIFEST_VERSION_ID

    async def delete_manifest_version(self, key, version_id):
        self.calls.append(("delete", key, version_id))
        if self.fail_delete:
            raise ManifestStoreError(f"error deleting manifest version {version_id}")
        self.saved.pop((key, version_id), None)


class RecordingStatusStore(PublishStatusStore):
    """PublishStatusStore that records finish calls and can be made to fail.

    ``claim_error`` is raised by claim, after committing the claim when
    ``commit_before_claim_error`` is set. Statuses in ``fail_finish`` make
    finish raise after recording the call.
    """

    def __init__(self, db, calls: list):
        super().__init__(db)
        self.calls = calls
        self.claim_error = None
        self.commit_before_claim_error = False
        self.fail_finish = set()

    async def claim(self, collection_id, user_id, publish_type=PublishStatusType.PUBLICATION):
        if self.claim_error is None:
            return await super().claim(collection_id, user_id, publish_type)
        if self.commit_before_claim_error:
            await super().claim(collection_id, user_id, publish_type)
        raise self.claim_error

    async def finish(self, collection_id, status, must_exist):
        self.calls.append(("finish", status))
        if status in self.fail_finish:
            raise OperationalError("UPDATE publish_status", {}, Exception("connection reset"))
        await super().finish(collection_id, status, must_exist)


@pytest.fixture
def calls() -> list:
    return []


@pytest.fixture
def fake_catalog(calls) -> FakeCatalog:
    return FakeCatalog(calls)


@pytest.fixture
def fake_manifests(calls) -> FakeManifestStore:
    return FakeManifestStore(calls)

