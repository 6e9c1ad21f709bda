"""
AppHub Backend — Test Configuration (conftest.py)
==================================================

What:  Shared pytest fixtures for the test suite.
How:   Every test gets its own SQLite database file (aiosqlite) with the full
       schema, so services run against real constraints and real transactions.

Fixture Hierarchy (all function-scoped):
    ├── engine:           async engine on tmp_path/test.db, schema created
    ├── session_factory:  async_sessionmaker bound to that engine
    ├── db:               one AsyncSession, the "request session" under test
    ├── clock:            deterministic clock, one second per call
    ├── notifier:         MagicMock standing in for the NotificationDispatcher
    ├── make_user / make_app: async factories committing seed rows
    └── test_client:      httpx AsyncClient on the FastAPI app, sessions from the test DB
"""

import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from unittest.mock import MagicMock
from uuid import uuid4

# Override settings BEFORE any apphub import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./apphub_test.db"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["MAIL_TRANSPORT"] = "log"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "0"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import apphub.models  # noqa: F401  registers every table
from apphub.database import Base, build_engine, get_db_session
from apphub.models import App, AppStatus, User, UserRole
from apphub.services.notification_service import NotificationDispatcher


class TickingClock:
    """Returns a strictly increasing time on every call (1s apart)."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Collaborators
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def notifier():
    """
    Usage:
        service = AppStatusService(notifier=notifier)
        ...
        notifier.notify.assert_called_once_with(email, name, kind, context)
    """
    return MagicMock(spec=NotificationDispatcher)


# ══════════════════════════════════════════════════════════════════════════
# Seed Data
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_user(session_factory):
    async def _make(name: str = "Ada Lovelace", role: UserRole = UserRole.USER, **fields) -> User:
        async with session_factory() as session:
            user = User(
                email=fields.pop("email", f"{uuid4().hex[:10]}@example.com"),
                name=name,
                role=role,
                **fields,
            )
            session.add(user)
            await session.commit()
            return user
    return _make


@pytest.fixture
def make_app(session_factory, make_user):
    async def _make(creator: User = None, status: AppStatus = AppStatus.DRAFT, name: str = "Prompt Studio") -> App:
        creator = creator or await make_user(name="Grace Hopper")
        async with session_factory() as session:
            app = App(creator_id=creator.id, name=name, status=status)
            session.add(app)
            await session.commit()
            return app
    return _make


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory):
    """
    HTTPX AsyncClient talking to the FastAPI app in-process.

    The request session dependency is overridden to use the test database.
    Notifications scheduled by the routes are drained before teardown.
    """
    from apphub.main import app
    from apphub.services.notification_service import notification_dispatcher

    async def _test_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _test_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await notification_dispatcher.drain()
    app.dependency_overrides.clear()
