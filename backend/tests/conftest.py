"""
Pytest configuration and fixtures.

WHY: Fixtures provide reusable test setup/teardown logic, reducing
duplication and ensuring consistent test environments.
"""

import os

# Settings are read at import time, so the environment must be in place
# before anything from the app package is imported.
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-unit-tests-only")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from typing import AsyncGenerator, Callable, Dict
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import ASGITransport, AsyncClient

from app.main import app
from app.models.base import Base
from app.models.user import User
from app.db import session as session_module
from app.db.session import get_db
from app.core.auth import create_access_token
from app.core.roles import AccessPolicy, build_access_policy
from tests.factories import OrganizationFactory, UserFactory


# Test database URL
# WHY: Using SQLite for tests eliminates external database dependencies
# and makes tests faster.
TEST_ASYNC_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """
    Create a test database engine.

    WHY: Function scope ensures each test gets a fresh database state,
    preventing test pollution and ensuring test isolation.
    """
    engine = create_async_engine(TEST_ASYNC_DATABASE_URL, echo=False, poolclass=StaticPool)

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

    Yields:
        AsyncSession: Database session for the test
    """
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test HTTP client.

    WHY: AsyncClient allows testing FastAPI endpoints without running
    a real server, making tests faster and more reliable.

    Yields:
        AsyncClient: HTTP client for making test requests
    """

    async def override_get_db():
        """Override database dependency with test session."""
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def committing_client(db_engine, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client that goes through the real get_db dependency.

    WHY: The default client shares one session that is never committed or
    rolled back, so it cannot show what survives a failed request. Here
    each request gets its own session on the test engine: committed when
    the handler returns, rolled back when it raises.
    """
    monkeypatch.setattr(
        session_module,
        "AsyncSessionLocal",
        async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False),
    )
    app.dependency_overrides.clear()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def policy() -> AccessPolicy:
    return build_access_policy()


@pytest.fixture
def auth_headers() -> Callable[[User], Dict[str, str]]:
    """
    Build an Authorization header for a user.

    Example:
        response = await client.get("/api/auth/me", headers=auth_headers(user))
    """

    def _headers(user: User) -> Dict[str, str]:
        token = create_access_token({"user_id": user.id, "email": user.email})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def org_owner(db_session: AsyncSession) -> User:
    """An organization owner with a fresh organization."""
    owner = await UserFactory.create(db_session, email="owner@example.com", display_name="Olivia Owner")
    await OrganizationFactory.create(db_session, owner=owner, name="Acme")
    return owner


@pytest_asyncio.fixture
async def org_admin(db_session: AsyncSession, org_owner: User) -> User:
    return await UserFactory.create(
        db_session,
        email="admin@example.com",
        display_name="Adam Admin",
        organization_id=org_owner.organization_id,
        organization_role="org_admin",
    )


@pytest_asyncio.fixture
async def org_member(db_session: AsyncSession, org_owner: User) -> User:
    return await UserFactory.create(
        db_session,
        email="member@example.com",
        display_name="Mia Member",
        organization_id=org_owner.organization_id,
        organization_role="member",
    )
