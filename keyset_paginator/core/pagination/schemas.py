"""Pagination result and request shapes.

Results come in two shapes:

1. Eager (``CursorPage``, ``NumberedPage``): pydantic models with every
   field resolved, returned by ``paginate()``.
2. Lazy (``LazyCursorPage``, ``LazyNumberedPage``): every field is an
   awaitable computed on first access and memoized, returned by
   ``lazy_paginate()``. The page fetch is shared by all fields derived from
   the page rows; the count runs only if ``total_count`` is awaited.

Requests (``CursorPageRequest``, ``PageRequest``) are the fully-built
statements a paginator will run, returned by ``build()`` without touching
the database.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from sqlalchemy import Select

T = TypeVar("T")
R = TypeVar("R")


class CursorPage(BaseModel, Generic[T]):
    """One page of a cursor-paginated result.

    Attributes:
        total_count: Rows matching the base statement, ignoring pagination
        nodes: Rows of this page, in the paginator's order
        has_prev_page: Whether rows exist before this page
        has_next_page: Whether rows exist after this page
        prev_page_cursor: Cursor for the page before the first node
        next_page_cursor: Cursor for the page after the last node

    ``has_prev_page``/``has_next_page`` for the side a cursor came from
    are assumed true without a query, so they can be stale if every row on
    that side was deleted after the cursor was issued.
    """

    total_count: int = Field(description="Total number of matching rows")
    nodes: list[T] = Field(default_factory=list, description="Rows of this page")
    has_prev_page: bool = Field(description="Whether previous rows exist")
    has_next_page: bool = Field(description="Whether more rows exist")
    prev_page_cursor: str | None = Field(
        default=None,
        description="Cursor to fetch the previous page",
    )
    next_page_cursor: str | None = Field(
        default=None,
        description="Cursor to fetch the next page",
    )

    model_config = {"frozen": True, "arbitrary_types_allowed": True}


class NumberedPage(BaseModel, Generic[T]):
    """One page of an offset-paginated result.

    Attributes:
        total_count: Rows matching the base statement, ignoring pagination
        nodes: Rows of this page
        has_next_page: Whether rows exist after this page
        page: 1-based page number that was served
        limit: Page size that was applied
    """

    total_count: int = Field(description="Total number of matching rows")
    nodes: list[T] = Field(default_factory=list, description="Rows of this page")
    has_next_page: bool = Field(description="Whether more rows exist")
    page: int = Field(ge=1, description="Page number (1-indexed)")
    limit: int = Field(ge=1, description="Page size")

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @property
    def pages(self) -> int:
        """Total number of pages."""
        return max(1, (self.total_count + self.limit - 1) // self.limit)


@dataclass(slots=True, frozen=True)
class CursorWindow(Generic[T]):
    """Everything a cursor page derives from its row fetch."""

    nodes: list[T]
    has_prev_page: bool
    has_next_page: bool
    prev_page_cursor: str | None
    next_page_cursor: str | None


@dataclass(slots=True, frozen=True)
class NumberedWindow(Generic[T]):
    """Everything a numbered page derives from its row fetch."""

    nodes: list[T]
    has_next_page: bool


@dataclass(slots=True, frozen=True)
class CursorPageRequest:
    """Statements and state for one cursor page.

    Attributes:
        rows_statement: Base statement + seek condition + ORDER BY + LIMIT
        count_statement: COUNT over the base statement only
        limit: Requested page size (None: no limit)
        direction: ``next`` or ``prev``
        cursor_supplied: Whether a page cursor was given
        raw: Fetch row mappings instead of ORM entities
    """

    rows_statement: Select[Any]
    count_statement: Select[tuple[int]]
    limit: int | None
    direction: Literal["next", "prev"]
    cursor_supplied: bool
    raw: bool = False

    @property
    def is_next(self) -> bool:
        return self.direction == "next"


@dataclass(slots=True, frozen=True)
class PageRequest:
    """Statements and state for one numbered page."""

    rows_statement: Select[Any]
    count_statement: Select[tuple[int]]
    page: int
    limit: int
    raw: bool = False

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class _Deferred(Generic[R]):
    """Runs ``factory`` once, when ``get()`` is first awaited, and shares the task."""

    __slots__ = ("_factory", "_task")

    def __init__(self, factory: Callable[[], Awaitable[R]]) -> None:
        self._factory = factory
        self._task: asyncio.Future[R] | None = None

    async def get(self) -> R:
        if self._task is None:
            self._task = asyncio.ensure_future(self._factory())
        return await self._task

    async def field(self, getter: Callable[[R], Any]) -> Any:
        return getter(await self.get())


class LazyCursorPage(Generic[T]):
    """Cursor page whose fields are computed on demand.

    Example:
        page = paginator.lazy_paginate(executor, stmt, limit=20)
        nodes = await page.nodes            # runs the page query
        has_next = await page.has_next_page  # reuses it
        total = await page.total_count      # runs the count query
    """

    def __init__(
        self,
        count: Callable[[], Awaitable[int]],
        window: Callable[[], Awaitable[CursorWindow[T]]],
    ) -> None:
        self._count = _Deferred(count)
        self._window = _Deferred(window)

    @property
    def total_count(self) -> Awaitable[int]:
        return self._count.get()

    @property
    def nodes(self) -> Awaitable[list[T]]:
        return self._window.field(lambda w: w.nodes)

    @property
    def has_prev_page(self) -> Awaitable[bool]:
        return self._window.field(lambda w: w.has_prev_page)

    @property
    def has_next_page(self) -> Awaitable[bool]:
        return self._window.field(lambda w: w.has_next_page)

    @property
    def prev_page_cursor(self) -> Awaitable[str | None]:
        return self._window.field(lambda w: w.prev_page_cursor)

    @property
    def next_page_cursor(self) -> Awaitable[str | None]:
        return self._window.field(lambda w: w.next_page_cursor)

    async def resolve(self) -> CursorPage[T]:
        """Await every field and return the eager page."""
        window = await self._window.get()
        return CursorPage(
            total_count=await self._count.get(),
            nodes=window.nodes,
            has_prev_page=window.has_prev_page,
            has_next_page=window.has_next_page,
            prev_page_cursor=window.prev_page_cursor,
            next_page_cursor=window.next_page_cursor,
        )


class LazyNumberedPage(Generic[T]):
    """Numbered page whose fields are computed on demand."""

    def __init__(
        self,
        count: Callable[[], Awaitable[int]],
        window: Callable[[], Awaitable[NumberedWindow[T]]],
        *,
        page: int,
        limit: int,
    ) -> None:
        self._count = _Deferred(count)
        self._window = _Deferred(window)
        self.page = page
        self.limit = limit

    @property
    def total_count(self) -> Awaitable[int]:
        return self._count.get()

    @property
    def nodes(self) -> Awaitable[list[T]]:
        return self._window.field(lambda w: w.nodes)

    @property
    def has_next_page(self) -> Awaitable[bool]:
        return self._window.field(lambda w: w.has_next_page)

    async def resolve(self) -> NumberedPage[T]:
        """Await every field and return the eager page."""
        window = await self._window.get()
        return NumberedPage(
            total_count=await self._count.get(),
            nodes=window.nodes,
            has_next_page=window.has_next_page,
            page=self.page,
            limit=self.limit,
        )


__all__ = [
    "CursorPage",
    "CursorPageRequest",
    "CursorWindow",
    "LazyCursorPage",
    "LazyNumberedPage",
    "NumberedPage",
    "NumberedWindow",
    "PageRequest",
]
