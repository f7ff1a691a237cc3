"""
Pytest configuration and fixtures.
Provides test app client, async DB session replacement and profile factories.
"""

import uuid

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from timesheets_api.main import app
from timesheets_api.core.rate_limit import limiter
from timesheets_api.core.security import create_access_token
from timesheets_api.db.base import Base
from timesheets_api.db.session import get_db
from timesheets_api.deps.di_container import get_identity_client
from timesheets_api.models.profile import Profile, UserRole
from timesheets_api.models.site import Site, Department, PurchaseOrder, user_sites


# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

limiter.enabled = False


class FakeIdentityClient:
    """Records identity provider calls instead of making them."""

    def __init__(self):
        self.created = []
        self.deleted = []

    async def create_user(self, email: str, name: str) -> uuid.UUID:
        user_id = uuid.uuid4()
        self.created.append((user_id, email, name))
        return user_id

    async def delete_user(self, user_id: uuid.UUID) -> None:
        self.deleted.append(user_id)

    async def close(self) -> None:
        pass


@pytest.fixture(scope="function")
async def test_session_maker():
    """
    Create a test engine and sessionmaker.
    Uses in-memory SQLite for fast tests.
    """
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture(scope="function")
async def test_db_session(test_session_maker):
    """Create a test database session."""
    async with test_session_maker() as session:
        yield session


@pytest.fixture
def identity_client():
    return FakeIdentityClient()


@pytest.fixture
def make_profile(test_db_session):
    """Factory for committed profiles."""

    async def _make_profile(role: UserRole = UserRole.EMPLOYEE, name: str = None, **relations) -> Profile:
        user_id = uuid.uuid4()
        profile = Profile(
            id=user_id,
            email=f"{user_id.hex[:12]}@example.com",
            name=name or f"{role.value.title()} {user_id.hex[:4]}",
            role=role,
            **relations,
        )
        test_db_session.add(profile)
        await test_db_session.commit()
        return profile

    return _make_profile


@pytest.fixture
def make_site(test_db_session):
    """Factory for a committed site with one department and one purchase order."""

    async def _make_site(name: str = "North Plant", assigned_to=()):
        site = Site(id=uuid.uuid4(), name=name, code=name[:3].upper())
        test_db_session.add(site)
        await test_db_session.flush()
        department = Department(id=uuid.uuid4(), site_id=site.id, name=f"{name} Maintenance")
        purchase_order = PurchaseOrder(id=uuid.uuid4(), site_id=site.id, po_number=f"PO-{site.id.hex[:6]}")
        test_db_session.add_all([department, purchase_order])
        await test_db_session.flush()
        for user_id in assigned_to:
            await test_db_session.execute(user_sites.insert().values(user_id=user_id, site_id=site.id))
        await test_db_session.commit()
        return site, department, purchase_order

    return _make_site


@pytest.fixture
def auth_headers():
    """Bearer header for a profile, signed like the identity provider's tokens."""

    def _auth_headers(profile: Profile) -> dict:
        token = create_access_token({"sub": str(profile.id), "email": profile.email})
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture(scope="function")
async def test_client(test_session_maker, identity_client):
    """
    Create a test HTTP client backed by the test database.
    """

    async def override_get_db():
        async with test_session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_client] = lambda: identity_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
