"""
Guildhall Backend — Database Session Management
=================================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
How:   Creates an async engine with connection pooling, provides a session
       dependency that commits on success and rolls back on error.
Who:   Used by route handlers via FastAPI's dependency injection system.
When:  Engine is created at module import; sessions are created per-request.

Unit of Work:
    One session == one transaction == one HTTP request. Services only ever
    `flush()`. Mutating route handlers call commit_unit_of_work() before
    building their response, so a failed commit reaches the client as a
    500 instead of a success. A ledger transition and the notification it
    emits persist together or not at all.

    The commit in get_db_session() covers read-only routes; it runs after
    the response is sent and finds nothing left to write.
"""

import logging
from typing import Any, AsyncGenerator, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from guildhall.config import settings
from guildhall.exceptions import PersistenceError

logger = logging.getLogger(__name__)


def _engine_options() -> Dict[str, Any]:
    """Pool options for the configured backend; SQLite pools take none of them."""
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


# ── Engine Configuration ──────────────────────────────────────────────────
engine = create_async_engine(settings.database_url, **_engine_options())

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: returned ORM objects stay readable after commit,
# which route handlers rely on when serializing the response.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object, which Alembic reads for autogenerate
    and the test suite uses to build a throwaway schema per test.
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back, then re-raises for the global handlers
        5. Always: closes the session (returns connection to pool)

    Example usage in a route:
        @router.get("/connections")
        async def list_connections(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            # Includes failures after the last flush, e.g. response serialization
            await session.rollback()
            raise
        finally:
            await session.close()


async def commit_unit_of_work(db: AsyncSession) -> None:
    """
    Commit the request's transaction before the handler returns.

    Raises:
        PersistenceError: the commit failed; nothing from this request is
                          persisted and get_db_session() rolls back
    """
    try:
        await db.commit()
    except SQLAlchemyError as e:
        logger.error("Commit failed: %s", str(e), exc_info=True)
        raise PersistenceError(context={"operation": "commit"}) from e


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """Closes all pooled connections; called from the application lifespan."""
    await engine.dispose()
