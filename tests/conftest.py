"""
Pytest configuration and fixtures.

WHY: Fixtures provide reusable test setup/teardown logic, reducing
duplication and ensuring consistent test environments.
"""

import pytest
import pytest_asyncio
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from helpdesk.main import app
from helpdesk.models.base import Base
from helpdesk.db.session import get_db
from helpdesk.core.deps import get_blob_storage
from tests.factories import UserFactory, PriorityFactory
from tests.fakes import FakeBlobStorage


# In-memory SQLite; StaticPool keeps the single connection (and so the
# schema) alive for the whole test.
TEST_ASYNC_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """
    Create a test database engine.

    WHY: Function scope ensures each test gets a fresh database state.
    """
    engine = create_async_engine(
        TEST_ASYNC_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a test database session.

    Configured like AsyncSessionLocal so flush/refetch behaviour matches
    the running API.
    """
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def blob_storage() -> FakeBlobStorage:
    return FakeBlobStorage()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, blob_storage: FakeBlobStorage) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test HTTP client.

    The API shares the test session, so rows created by factories are
    visible to requests and vice versa.
    """

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_storage] = lambda: blob_storage

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================================
# Users and reference data
# ============================================================================


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession):
    return await UserFactory.create_admin(db_session, email="admin@example.com")


@pytest_asyncio.fixture
async def agent(db_session: AsyncSession):
    return await UserFactory.create_agent(db_session, email="agent@example.com")


@pytest_asyncio.fixture
async def other_agent(db_session: AsyncSession):
    return await UserFactory.create_agent(db_session, email="agent2@example.com")


@pytest_asyncio.fixture
async def customer(db_session: AsyncSession):
    return await UserFactory.create_customer(db_session, email="customer@example.com")


@pytest_asyncio.fixture
async def other_customer(db_session: AsyncSession):
    return await UserFactory.create_customer(db_session, email="customer2@example.com")


@pytest_asyncio.fixture
async def priority(db_session: AsyncSession):
    return await PriorityFactory.create(db_session, name="Medium")


@pytest_asyncio.fixture
async def high_priority(db_session: AsyncSession):
    return await PriorityFactory.create(db_session, name="High")
