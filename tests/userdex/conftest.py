"""Shared fixtures for the directory, favorites and API tests."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from tests.userdex.support import FakeDirectorySource
from userdex.db.connection import create_engine, create_session_factory, init_models
from userdex.services.favorites import SqlFavoriteStore


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Provide a file-backed SQLite engine with the favorites table created."""
    pytest.importorskip("aiosqlite")
    db_engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'favorites.db'}")
    await init_models(db_engine)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> SqlFavoriteStore:
    return SqlFavoriteStore(session_factory)


@pytest.fixture
def source() -> FakeDirectorySource:
    """Endless unfiltered directory; 23 French and 10 Irish records."""
    return FakeDirectorySource(totals={"FR": 23, "IE": 10})
