"""
AppHub Backend — Database Session Management
=============================================

What:  Async SQLAlchemy engine, session factory, unit-of-work helper and
       FastAPI dependency.
How:   Creates an async engine with connection pooling, provides a session
       dependency per request and a `unit_of_work` context that commits a
       service operation atomically or rolls it back.
Who:   Engine/session used by routes via Depends(); `unit_of_work` used by
       every service method that writes.

Transaction Model:
    A service operation reads current state, decides, writes, then leaves
    `unit_of_work`, which commits. Any exception inside rolls the whole
    operation back, so multi-row writes (e.g. request approval + role
    elevation) are all-or-nothing. Notifications are dispatched only after
    the block exits successfully.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from apphub.config import settings


def utc_now() -> datetime:
    """Default clock for services: timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    # SQLite ships with FK enforcement off; turn it on per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, **kwargs: Any) -> AsyncEngine:
    """
    Create an async engine for `url`.

    Pool sizing only applies to server databases; SQLite (used by the test
    suite) gets its driver defaults plus foreign key enforcement.
    """
    if url.startswith("sqlite"):
        engine = create_async_engine(url, **kwargs)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_async_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=3600,
        **kwargs,
    )


# ── Engine Configuration ──────────────────────────────────────────────────
engine = build_engine(
    settings.database_url,
    # SQL logging is noisy; only in DEBUG
    echo=settings.log_level == "DEBUG",
)

# expire_on_commit=False: services return ORM rows after committing them
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object, read by Alembic for migrations and by
    the test suite to create the schema.
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    Services commit their own unit of work; the commit here only flushes
    whatever a read-only handler may have left pending. On error the session
    is rolled back and the exception re-raised to the global handlers.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def unit_of_work(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Commit everything written inside the block, or nothing.

    Example:
        async with unit_of_work(db):
            request.status = DeveloperRequestStatus.APPROVED
            user.role = UserRole.DEVELOPER
        # both rows committed here
    """
    try:
        yield db
        await db.commit()
    except BaseException:
        await db.rollback()
        raise


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """Gracefully closes all connections in the pool (application shutdown)."""
    await engine.dispose()
