"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from herald.common.storage import init_storage

if typ.TYPE_CHECKING:
    from pathlib import Path


def sqlite_url(tmp_path: Path) -> str:
    """Return an aiosqlite URL for a database file under ``tmp_path``."""
    return f"sqlite+aiosqlite:///{tmp_path / 'herald_test.db'}"


async def _setup_sqlite(tmp_path: Path) -> AsyncEngine:
    """Create a SQLite engine and initialise every Herald table."""
    engine = create_async_engine(sqlite_url(tmp_path))
    try:
        await init_storage(engine)
    except Exception:
        await engine.dispose()
        raise
    return engine


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Return the SQLite URL shared by the ``session_factory`` fixture."""
    return sqlite_url(tmp_path)


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = await _setup_sqlite(tmp_path)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()
