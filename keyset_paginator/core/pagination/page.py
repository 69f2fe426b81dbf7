"""Page-number (LIMIT/OFFSET) paginator.

The simpler sibling of ``CursorPaginator``: no cursors and no seek
condition, just an ordering and ``OFFSET (page - 1) * limit``. Rows shift
between pages when rows are inserted or deleted concurrently.

    paginator = PagePaginator(User, order_by={"id": "ASC"}, limit=20)
    page = await paginator.paginate(executor, select(User), page=2)
    page.nodes, page.has_next_page, page.total_count
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from keyset_paginator.core.database import (
    LimitOffset,
    Ordering,
    count_statement,
    expand_entities,
    resolve_column,
)
from keyset_paginator.core.exceptions import InvalidArgumentError, UnexpectedResultCountError
from keyset_paginator.core.ordering import OrderBy, normalize_order_by
from keyset_paginator.core.pagination.paginator import validate_limit
from keyset_paginator.core.pagination.schemas import (
    LazyNumberedPage,
    NumberedPage,
    NumberedWindow,
    PageRequest,
)
from keyset_paginator.core.settings import PaginationSettings, get_pagination_settings
from keyset_paginator.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.orm import InstrumentedAttribute

    from keyset_paginator.core.pagination.executor import QueryExecutor


@dataclass(slots=True, frozen=True)
class PageSizeOptions:
    """Page size bounds for a ``PagePaginator``.

    Attributes:
        default: Size used when a call gives no limit
        min: Smallest size a call may request (requests below are raised to it)
        max: Largest size a call may request (requests above are lowered to it)
    """

    default: int
    min: int = 1
    max: int | None = None

    def __post_init__(self) -> None:
        validate_limit(self.default)
        validate_limit(self.min)
        if self.max is not None:
            validate_limit(self.max)
        upper = self.max if self.max is not None else self.default
        if not self.min <= self.default <= upper:
            msg = "page size options must satisfy min <= default <= max"
            raise InvalidArgumentError(
                msg, argument="limit", value=(self.min, self.default, self.max)
            )

    def clamp(self, limit: int | None) -> int:
        """Apply the bounds to a requested ``limit`` (None: the default)."""
        size = self.default if limit is None else limit
        if self.max is not None:
            size = min(size, self.max)
        return max(self.min, size)


class PagePaginator[T]:
    """Paginates select statements over ``model`` by page number.

    Provides:
        - build(statement, ...) -> PageRequest (no I/O)
        - resolve(executor, request) -> NumberedPage[T]
        - paginate(executor, statement, ...) -> NumberedPage[T]
        - lazy_paginate(executor, statement, ...) -> LazyNumberedPage[T]
    """

    __slots__ = ("model", "size", "_columns", "_logger", "_lazy")

    def __init__(
        self,
        model: type[T],
        *,
        order_by: OrderBy | Sequence[OrderBy],
        limit: int | PageSizeOptions | None = None,
        settings: PaginationSettings | None = None,
    ) -> None:
        """Initialize paginator.

        Args:
            model: Mapped class being paginated
            order_by: Default order specification, overridable per call
            limit: Default page size, or full page size options. When an int
                or None, the maximum comes from settings.
            settings: Settings to use instead of the cached environment settings
        """
        settings = settings or get_pagination_settings()

        self.model = model
        if isinstance(limit, PageSizeOptions):
            self.size = limit
        elif limit is None:
            self.size = PageSizeOptions(default=settings.default_limit, max=settings.max_limit)
        else:
            validate_limit(limit)
            self.size = PageSizeOptions(default=limit, max=max(limit, settings.max_limit))

        self._columns = self._resolve(order_by)
        self._logger = logging.getLogger(f"{__name__}.{model.__name__}")
        self._lazy = get_lazy_logger(f"{__name__}.{model.__name__}")

    def _resolve(
        self, order_by: OrderBy | Sequence[OrderBy]
    ) -> list[tuple[InstrumentedAttribute[Any], bool]]:
        return [
            (resolve_column(self.model, key), ascending)
            for key, ascending in normalize_order_by(order_by)
        ]

    def build(
        self,
        statement: Select[Any],
        *,
        page: int | None = None,
        limit: int | None = None,
        order_by: OrderBy | Sequence[OrderBy] | None = None,
        raw: bool = False,
    ) -> PageRequest:
        """Build the page and count statements without executing them.

        Args:
            statement: Base select with the caller's filters; not modified
            page: 1-based page number; None and values below 1 mean page 1
            limit: Page size, clamped to the paginator's bounds
            order_by: Ordering for this call instead of the paginator's
            raw: Fetch row mappings instead of ORM entities; selected entities
                are expanded to their column attributes

        Raises:
            InvalidArgumentError: If ``page`` is not an integer or ``limit``
                is not a positive integer
        """
        if page is not None and (isinstance(page, bool) or not isinstance(page, int)):
            msg = "page must be an integer"
            raise InvalidArgumentError(msg, argument="page", value=page)
        validate_limit(limit)

        page_number = max(page or 1, 1)
        size = self.size.clamp(limit)
        columns = self._columns if order_by is None else self._resolve(order_by)

        rows_statement = Ordering(columns).apply(expand_entities(statement) if raw else statement)
        # One extra row tells whether a further page exists.
        rows_statement = LimitOffset(limit=size + 1, offset=(page_number - 1) * size).apply(
            rows_statement
        )

        return PageRequest(
            rows_statement=rows_statement,
            count_statement=count_statement(statement),
            page=page_number,
            limit=size,
            raw=raw,
        )

    async def resolve(self, executor: QueryExecutor, request: PageRequest) -> NumberedPage[T]:
        """Execute a built request and assemble the page."""
        rows, total_count = await executor.fetch_page(
            request.rows_statement, request.count_statement, raw=request.raw
        )
        window = self._window(rows, request)

        self._lazy.debug(
            lambda: f"paginate.page: {self.model.__name__}(page={request.page}, "
            f"limit={request.limit}) -> {len(window.nodes)}/{total_count} rows, "
            f"has_next={window.has_next_page}",
            extra={"entity": self.model.__name__, "operation": "paginate.page"},
        )
        return NumberedPage(
            total_count=total_count,
            nodes=window.nodes,
            has_next_page=window.has_next_page,
            page=request.page,
            limit=request.limit,
        )

    async def paginate(
        self,
        executor: QueryExecutor,
        statement: Select[Any],
        *,
        page: int | None = None,
        limit: int | None = None,
        order_by: OrderBy | Sequence[OrderBy] | None = None,
        raw: bool = False,
    ) -> NumberedPage[T]:
        """Fetch page ``page`` of ``statement``."""
        request = self.build(statement, page=page, limit=limit, order_by=order_by, raw=raw)
        return await self.resolve(executor, request)

    def lazy_paginate(
        self,
        executor: QueryExecutor,
        statement: Select[Any],
        *,
        page: int | None = None,
        limit: int | None = None,
        order_by: OrderBy | Sequence[OrderBy] | None = None,
        raw: bool = False,
    ) -> LazyNumberedPage[T]:
        """Like ``paginate()`` but each field runs its query on first await."""
        request = self.build(statement, page=page, limit=limit, order_by=order_by, raw=raw)

        async def count() -> int:
            return await executor.fetch_count(request.count_statement)

        async def window() -> NumberedWindow[T]:
            rows = await executor.fetch_rows(request.rows_statement, raw=request.raw)
            return self._window(rows, request)

        return LazyNumberedPage(count, window, page=request.page, limit=request.limit)

    def _window(self, rows: Sequence[Any], request: PageRequest) -> NumberedWindow[T]:
        if len(rows) > request.limit + 1:
            self._logger.error(
                "Unexpected page row count",
                extra={
                    "entity": self.model.__name__,
                    "count": len(rows),
                    "limit": request.limit,
                    "operation": "paginate.page",
                },
            )
            raise UnexpectedResultCountError(len(rows), request.limit)
        return NumberedWindow(
            nodes=list(rows[: request.limit]),
            has_next_page=len(rows) > request.limit,
        )


__all__ = ["PagePaginator", "PageSizeOptions"]
