"""Pytest configuration and shared fixtures.

Organization:
    - Database Fixtures: file-backed SQLite engine (so that concurrently
      opened sessions see the same data), session factory and session
    - Executor Fixtures: every paginator test runs against both executors
    - Data Fixtures: user rows matching the documented pagination scenarios
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from keyset_paginator.core.pagination import SessionExecutor, SessionFactoryExecutor
from keyset_paginator.core.settings import clear_all_caches
from tests.models import Base, User, insert_users

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch: pytest.MonkeyPatch):
    """Isolate tests from PAGINATION_* variables and cached settings."""
    for name in ("PAGINATION_DEFAULT_LIMIT", "PAGINATION_MAX_LIMIT", "PAGINATION_CURSOR_CODEC"):
        monkeypatch.delenv(name, raising=False)
    clear_all_caches()
    yield
    clear_all_caches()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Create async SQLAlchemy engine on a temporary SQLite file with all tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_maker(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    async with session_maker() as session:
        yield session


# ============================================================================
# Executor Fixtures
# ============================================================================


@pytest.fixture(params=["session", "session_factory"])
def executor(request, db_session, session_maker):
    """Both executors: one shared session, or one session per statement."""
    if request.param == "session":
        return SessionExecutor(db_session)
    return SessionFactoryExecutor(session_maker)


# ============================================================================
# Data Fixtures
# ============================================================================


@pytest.fixture
async def six_users(db_session: AsyncSession) -> list[User]:
    """Six users with ids 1..6; names a, b, b, c, c, c."""
    return await insert_users(
        db_session,
        [
            ("a", 1600000000),
            ("b", 1600000001),
            ("b", 1600000002),
            ("c", 1600000003),
            ("c", 1600000004),
            ("c", 1600000005),
        ],
    )
