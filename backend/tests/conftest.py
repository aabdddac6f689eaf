"""
Guildhall Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Each test gets its own SQLite database file (aiosqlite) built from
       Base.metadata, so the partial unique indexes are real.

Fixture Hierarchy:
    ├── db_engine:        async engine on a fresh SQLite file
    ├── session_factory:  async_sessionmaker bound to db_engine
    ├── db_session:       one AsyncSession for service-level tests
    ├── make_member:      factory inserting members (active by default)
    ├── alice/bob/carol:  three active members
    ├── mock_db_session:  AsyncMock session for storage-failure paths
    ├── api_client:       HTTPX AsyncClient against a fresh app whose
    │                     get_db_session uses session_factory
    └── auth_headers:     bearer header builder for a member
"""

import os

# Override settings for testing BEFORE any guildhall imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-not-for-production"
os.environ["LOG_LEVEL"] = "WARNING"

from typing import AsyncGenerator, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from guildhall.database import Base, get_db_session
from guildhall.middleware.jwt_session import create_access_token
from guildhall.models.member import Member, MemberRole, MemberStatus
from guildhall.models.connection_request import ConnectionRequest  # noqa: F401
from guildhall.models.notification import Notification  # noqa: F401


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'guildhall_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def make_member(db_session):
    """
    Factory for member rows.

    Usage:
        dave = await make_member("Dave Kumar", status="suspended")
    """
    async def _make(
        full_name: str,
        status: str = MemberStatus.ACTIVE.value,
        role: str = MemberRole.MEMBER.value,
        **profile,
    ) -> Member:
        member = Member(full_name=full_name, status=status, role=role, **profile)
        db_session.add(member)
        await db_session.flush()
        return member

    return _make


@pytest_asyncio.fixture
async def alice(make_member) -> Member:
    return await make_member("Alice Fernandes", profession="Architect", district="Kannur")


@pytest_asyncio.fixture
async def bob(make_member) -> Member:
    return await make_member("Bob Mathew", profession="Engineer", district="Thrissur")


@pytest_asyncio.fixture
async def carol(make_member) -> Member:
    return await make_member("Carol Nair", profession="Physician", district="Kochi")


@pytest.fixture
def mock_db_session():
    """
    An AsyncMock standing in for AsyncSession.

    Usage:
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.get = AsyncMock()
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# API Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def api_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX AsyncClient talking to a fresh app instance.

    get_db_session is overridden with the same commit/rollback contract as
    production, bound to the per-test database. Rows created through
    db_session must be committed before the API can see them.
    """
    from guildhall.main import create_app

    app = create_app()

    async def _test_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _test_db_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers():
    """
    Builds a bearer header for a member.

    Usage:
        await api_client.get("/api/connections", headers=auth_headers(alice))
    """
    def _headers(member: Member) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(member)}"}

    return _headers
