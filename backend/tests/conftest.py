from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from leavetrack.db import get_session
from leavetrack.main import app
from leavetrack.models import SQLModel
from leavetrack.services.clock import FixedClock, set_clock
from leavetrack.services.employee import (
    InMemoryEmployeeDirectory,
    get_employee_directory,
    set_employee_directory,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """File-backed SQLite database, created fresh for each test.

    Separate sessions share the same database, so tests can exercise
    concurrent transitions the way independent request handlers would.
    """
    _engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'leave.db'}")
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clock() -> Iterator[FixedClock]:
    """Pin "now" to 2026-10-17 09:30 UTC; tests may move it with ``clock.set``."""
    fixed = FixedClock(datetime(2026, 10, 17, 9, 30, tzinfo=UTC))
    set_clock(fixed)
    yield fixed
    set_clock(None)


@pytest.fixture(autouse=True)
def directory() -> Iterator[InMemoryEmployeeDirectory]:
    """Fresh in-memory employee directory; test modules seed their own people."""
    previous = get_employee_directory()
    fresh = InMemoryEmployeeDirectory()
    set_employee_directory(fresh)
    yield fresh
    set_employee_directory(previous)
