"""Statement executors.

The paginators build statements; executors run them. Each page needs two
reads, the page rows and the total count, which do not depend on each
other. An ``AsyncSession`` cannot run two statements at once, so
:class:`SessionExecutor` runs them one after the other, while
:class:`SessionFactoryExecutor` opens a session per statement and runs
them concurrently.

Executors do not catch database errors; they propagate to the caller.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


@runtime_checkable
class QueryExecutor(Protocol):
    """Runs page and count statements."""

    async def fetch_rows(self, statement: Select[Any], *, raw: bool = False) -> Sequence[Any]:
        """Return ORM entities, or row mappings when ``raw`` is true."""
        ...

    async def fetch_count(self, statement: Select[tuple[int]]) -> int:
        """Return the scalar result of a count statement."""
        ...

    async def fetch_page(
        self,
        rows_statement: Select[Any],
        count_statement: Select[tuple[int]],
        *,
        raw: bool = False,
    ) -> tuple[Sequence[Any], int]:
        """Run both statements and return ``(rows, count)``."""
        ...


async def _fetch_rows(session: AsyncSession, statement: Select[Any], *, raw: bool) -> Sequence[Any]:
    result = await session.execute(statement)
    if raw:
        return result.mappings().all()
    return result.scalars().all()


async def _fetch_count(session: AsyncSession, statement: Select[tuple[int]]) -> int:
    return (await session.execute(statement)).scalar_one()


class SessionExecutor:
    """Executes statements on one caller-owned ``AsyncSession``.

    Example:
        async with session_maker() as session:
            page = await paginator.paginate(SessionExecutor(session), stmt, limit=20)
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def fetch_rows(self, statement: Select[Any], *, raw: bool = False) -> Sequence[Any]:
        return await _fetch_rows(self.session, statement, raw=raw)

    async def fetch_count(self, statement: Select[tuple[int]]) -> int:
        return await _fetch_count(self.session, statement)

    async def fetch_page(
        self,
        rows_statement: Select[Any],
        count_statement: Select[tuple[int]],
        *,
        raw: bool = False,
    ) -> tuple[Sequence[Any], int]:
        rows = await self.fetch_rows(rows_statement, raw=raw)
        count = await self.fetch_count(count_statement)
        return rows, count


class SessionFactoryExecutor:
    """Executes each statement in its own session from ``session_maker``.

    Page and count statements run concurrently. Fetched ORM instances belong
    to a session that is closed on return, so configure the factory with
    ``expire_on_commit=False`` and avoid lazy-loading relationships on them.

    Example:
        executor = SessionFactoryExecutor(async_sessionmaker(engine, expire_on_commit=False))
        page = await paginator.paginate(executor, stmt, limit=20)
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    async def fetch_rows(self, statement: Select[Any], *, raw: bool = False) -> Sequence[Any]:
        async with self.session_maker() as session:
            return await _fetch_rows(session, statement, raw=raw)

    async def fetch_count(self, statement: Select[tuple[int]]) -> int:
        async with self.session_maker() as session:
            return await _fetch_count(session, statement)

    async def fetch_page(
        self,
        rows_statement: Select[Any],
        count_statement: Select[tuple[int]],
        *,
        raw: bool = False,
    ) -> tuple[Sequence[Any], int]:
        rows, count = await asyncio.gather(
            self.fetch_rows(rows_statement, raw=raw),
            self.fetch_count(count_statement),
        )
        return rows, count


__all__ = [
    "QueryExecutor",
    "SessionExecutor",
    "SessionFactoryExecutor",
]
