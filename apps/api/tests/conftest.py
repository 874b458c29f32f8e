"""
Pytest fixtures for testing.

Provides:
- In-memory SQLite engine, session and session factory per test
- Test client with the request session and audit session factory overridden
- User factory with role/tenant defaults
- Token and principal helpers
"""

import os

os.environ.setdefault("ENVIRONMENT", "testing")

from datetime import datetime
from typing import AsyncGenerator, Callable
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from campus_access.main import app
from campus_access.models.base import Base
from campus_access.models.user import User
from campus_access.api.dependencies.database import get_db
from campus_access.core.auth.dependencies import get_audit_session_factory
from campus_access.core.auth.principal import Principal
from campus_access.core.auth.roles import RoleScope, role_hierarchy
from campus_access.core.auth.tokens import create_access_token
from campus_access.services.audit import AuditTrail
from campus_access.services.auth import hash_password


# Test database URL (SQLite in-memory for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

DEFAULT_PASSWORD = "testpassword123"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Database session for the test (and for requests made by ``client``)."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def audit(db: AsyncSession, session_factory) -> AuditTrail:
    return AuditTrail(db, session_factory=session_factory)


@pytest_asyncio.fixture(scope="function")
async def client(db: AsyncSession, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with database session override.
    """

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_audit_session_factory] = lambda: session_factory

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ============ Factory Fixtures ============


class UserFactory:
    """Factory for creating test users."""

    # bcrypt is slow; hash the default password once
    _default_hash: str | None = None

    def __init__(self, db: AsyncSession):
        self.db = db

    def _hash(self, password: str) -> str:
        if password != DEFAULT_PASSWORD:
            return hash_password(password)
        if UserFactory._default_hash is None:
            UserFactory._default_hash = hash_password(DEFAULT_PASSWORD)
        return UserFactory._default_hash

    async def create(
        self,
        role: str = "teacher",
        tenant: str = "school-A",
        email: str | None = None,
        password: str = DEFAULT_PASSWORD,
        first_name: str = "Test",
        last_name: str = "User",
        role_scope: str | None = None,
        managed_tenants: list[str] | None = None,
        is_active: bool = True,
        password_changed_at: datetime | None = None,
        login_attempts: int = 0,
        locked_until: datetime | None = None,
    ) -> User:
        """Create a user in the database."""
        user = User(
            email=email or f"{role}-{uuid4().hex[:8]}@example.com",
            password_hash=self._hash(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            tenant=tenant,
            role_scope=role_scope or role_hierarchy.scope_for_role(role).value,
            managed_tenants=managed_tenants or [],
            permission_overrides=[],
            is_active=is_active,
            password_changed_at=password_changed_at,
            login_attempts=login_attempts,
            locked_until=locked_until,
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user


@pytest_asyncio.fixture
async def user_factory(db: AsyncSession) -> UserFactory:
    """Fixture that provides UserFactory."""
    return UserFactory(db)


@pytest_asyncio.fixture
async def super_admin(user_factory: UserFactory) -> User:
    return await user_factory.create(role="super_admin", tenant="hq", email="root@example.com")


@pytest_asyncio.fixture
async def tenant_admin(user_factory: UserFactory) -> User:
    return await user_factory.create(role="tenant_admin", email="head@example.com")


@pytest_asyncio.fixture
async def teacher(user_factory: UserFactory) -> User:
    return await user_factory.create(role="teacher", email="teacher@example.com")


# ============ Auth Helpers ============


def auth_headers_for(
    user: User,
    issued_at: datetime | None = None,
    tenant: str | None = None,
) -> dict[str, str]:
    """Bearer headers for any user, optionally pinned to a tenant."""
    token = create_access_token(
        user.id, issued_at=issued_at, password_changed_at=user.password_changed_at
    )
    headers = {"Authorization": f"Bearer {token}"}
    if tenant:
        headers["X-Tenant-ID"] = tenant
    return headers


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    return auth_headers_for


@pytest.fixture
def make_principal() -> Callable[..., Principal]:
    """Build a principal without touching the database."""

    def _make(
        role: str = "teacher",
        tenant: str = "school-A",
        scope: RoleScope | None = None,
        managed: tuple[str, ...] = (),
    ) -> Principal:
        user = User(
            id=uuid4(),
            email=f"{role}@example.com",
            first_name=role.title(),
            last_name="",
            role=role,
            tenant=tenant,
            role_scope=(scope or role_hierarchy.scope_for_role(role)).value,
            managed_tenants=list(managed),
            permission_overrides=[],
        )
        return Principal.from_user(user)

    return _make
