"""Cursor (keyset) paginator.

A ``CursorPaginator`` is built once per ordering and reused across calls:

    paginator = CursorPaginator(User, order_by=[{"name": "ASC"}, {"id": "DESC"}])

    first = await paginator.paginate(executor, select(User), limit=20)
    second = await paginator.paginate(
        executor, select(User), limit=20, page_cursor=first.next_page_cursor
    )
    back = await paginator.paginate(
        executor, select(User), limit=20, page_cursor=second.prev_page_cursor
    )

Caution: the order keys together must be unique per row, otherwise rows
sharing the boundary values can be skipped or repeated between pages.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from keyset_paginator.core.database import (
    count_statement,
    expand_entities,
    node_value,
    resolve_column,
)
from keyset_paginator.core.exceptions import (
    CursorValidationError,
    InvalidArgumentError,
    UnexpectedResultCountError,
)
from keyset_paginator.core.ordering import OrderBy, normalize_order_by
from keyset_paginator.core.pagination.cursor import (
    CursorCodec,
    Direction,
    DirectionalCursor,
    get_cursor_codec,
    parse_page_cursor,
    stringify_page_cursor,
)
from keyset_paginator.core.pagination.filters import CursorFilter
from keyset_paginator.core.pagination.schemas import (
    CursorPage,
    CursorPageRequest,
    CursorWindow,
    LazyCursorPage,
)
from keyset_paginator.core.pagination.values import ValueCodec, codec_for_column
from keyset_paginator.core.settings import PaginationSettings, get_pagination_settings
from keyset_paginator.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.orm import InstrumentedAttribute

    from keyset_paginator.core.pagination.executor import QueryExecutor


def validate_limit(limit: Any) -> None:
    """Reject a ``limit`` that is given but is not a positive integer."""
    if limit is None:
        return
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        msg = "limit must be a positive integer"
        raise InvalidArgumentError(msg, argument="limit", value=limit)


class CursorPaginator[T]:
    """Paginates select statements over ``model`` by cursor.

    Provides:
        - build(statement, ...) -> CursorPageRequest (no I/O)
        - resolve(executor, request) -> CursorPage[T]
        - paginate(executor, statement, ...) -> CursorPage[T]
        - lazy_paginate(executor, statement, ...) -> LazyCursorPage[T]
        - cursor_for(node, direction) -> str

    Each call runs two reads, the page rows and the total count of the
    base statement, and nothing else.

    Attributes:
        model: Mapped class whose attributes the order keys name
        codec: Cursor codec used for page cursors
    """

    __slots__ = ("model", "codec", "_orders", "_columns", "_value_codecs", "_logger", "_lazy")

    def __init__(
        self,
        model: type[T],
        *,
        order_by: OrderBy | Sequence[OrderBy],
        codec: CursorCodec | None = None,
        value_codecs: Mapping[str, ValueCodec] | None = None,
        settings: PaginationSettings | None = None,
    ) -> None:
        """Initialize paginator.

        Args:
            model: Mapped class being paginated
            order_by: Order specification, e.g. ``[{"name": "ASC"}, {"id": "DESC"}]``
            codec: Cursor codec; defaults to the one named by settings
            value_codecs: Per-key overrides for converting cursor values
            settings: Settings to use instead of the cached environment settings

        Raises:
            InvalidArgumentError: Empty ordering, unknown order key or direction,
                or a value codec for a key that is not ordered on.
        """
        self.model = model
        self._orders = normalize_order_by(order_by)
        if not self._orders:
            msg = "order_by must name at least one column"
            raise InvalidArgumentError(msg, argument="order_by", value=order_by)

        self._columns: list[tuple[InstrumentedAttribute[Any], bool]] = [
            (resolve_column(model, key), ascending) for key, ascending in self._orders
        ]

        if codec is None:
            codec = get_cursor_codec((settings or get_pagination_settings()).cursor_codec)
        self.codec = codec

        overrides = dict(value_codecs or {})
        unknown = set(overrides) - set(self.order_keys)
        if unknown:
            msg = "value_codecs has keys that are not in order_by"
            raise InvalidArgumentError(msg, argument="value_codecs", value=sorted(unknown))
        self._value_codecs: dict[str, ValueCodec] = {
            column.key: overrides.get(column.key) or codec_for_column(column)
            for column, _ in self._columns
        }

        self._logger = logging.getLogger(f"{__name__}.{model.__name__}")
        self._lazy = get_lazy_logger(f"{__name__}.{model.__name__}")

    @property
    def order_keys(self) -> list[str]:
        """Order keys in precedence order."""
        return [key for key, _ in self._orders]

    @property
    def orders(self) -> list[tuple[str, bool]]:
        """Normalized ``(key, ascending)`` pairs."""
        return list(self._orders)

    def build(
        self,
        statement: Select[Any],
        *,
        page_cursor: str | None = None,
        limit: int | None = None,
        raw: bool = False,
    ) -> CursorPageRequest:
        """Build the page and count statements without executing them.

        Args:
            statement: Base select with the caller's filters; not modified
            page_cursor: Cursor from a previous page, or None for the first page
            limit: Page size; None returns every row in the direction
            raw: Fetch row mappings instead of ORM entities; selected entities
                are expanded to their column attributes

        Returns:
            CursorPageRequest ready for ``resolve()``

        Raises:
            InvalidArgumentError: If ``limit`` is not a positive integer
            CursorValidationError: If ``page_cursor`` is malformed or was not
                minted for this ordering
        """
        validate_limit(limit)

        cursor = self._parse_cursor(page_cursor) if page_cursor else None
        direction: Direction = cursor.direction if cursor else "next"

        cursor_filter = CursorFilter(
            self._columns,
            self._load_values(cursor) if cursor else None,
            is_next=direction == "next",
            limit=limit,
        )
        return CursorPageRequest(
            rows_statement=cursor_filter.apply(expand_entities(statement) if raw else statement),
            count_statement=count_statement(statement),
            limit=limit,
            direction=direction,
            cursor_supplied=cursor is not None,
            raw=raw,
        )

    async def resolve(self, executor: QueryExecutor, request: CursorPageRequest) -> CursorPage[T]:
        """Execute a built request and assemble the page."""
        rows, total_count = await executor.fetch_page(
            request.rows_statement, request.count_statement, raw=request.raw
        )
        window = self._window(rows, request)

        self._lazy.debug(
            lambda: f"paginate.cursor: {self.model.__name__}(direction={request.direction}, "
            f"limit={request.limit}) -> {len(window.nodes)}/{total_count} rows, "
            f"has_prev={window.has_prev_page}, has_next={window.has_next_page}",
            extra={"entity": self.model.__name__, "operation": "paginate.cursor"},
        )
        return CursorPage(
            total_count=total_count,
            nodes=window.nodes,
            has_prev_page=window.has_prev_page,
            has_next_page=window.has_next_page,
            prev_page_cursor=window.prev_page_cursor,
            next_page_cursor=window.next_page_cursor,
        )

    async def paginate(
        self,
        executor: QueryExecutor,
        statement: Select[Any],
        *,
        page_cursor: str | None = None,
        limit: int | None = None,
        raw: bool = False,
    ) -> CursorPage[T]:
        """Fetch one page of ``statement``.

        Example:
            page = await paginator.paginate(executor, select(User), limit=3)
            page.nodes              # first three users
            page.next_page_cursor   # "next:..."
        """
        request = self.build(statement, page_cursor=page_cursor, limit=limit, raw=raw)
        return await self.resolve(executor, request)

    def lazy_paginate(
        self,
        executor: QueryExecutor,
        statement: Select[Any],
        *,
        page_cursor: str | None = None,
        limit: int | None = None,
        raw: bool = False,
    ) -> LazyCursorPage[T]:
        """Like ``paginate()`` but each field runs its query on first await.

        Arguments are validated immediately. With a ``SessionExecutor``, await
        the fields one at a time since a session runs one statement at once.
        """
        request = self.build(statement, page_cursor=page_cursor, limit=limit, raw=raw)

        async def count() -> int:
            return await executor.fetch_count(request.count_statement)

        async def window() -> CursorWindow[T]:
            rows = await executor.fetch_rows(request.rows_statement, raw=request.raw)
            return self._window(rows, request)

        return LazyCursorPage(count, window)

    def cursor_for(self, node: Any, direction: Direction = "next") -> str:
        """Mint a page cursor at ``node``.

        A ``next`` cursor pages to the rows after ``node``; a ``prev``
        cursor to the rows before it.
        """
        return stringify_page_cursor(self.codec, self._create_cursor(node), direction)

    def _window(self, rows: Sequence[Any], request: CursorPageRequest) -> CursorWindow[T]:
        nodes = list(rows)
        limit = request.limit

        has_more = False
        if limit is not None:
            if len(nodes) == limit + 1:
                has_more = True
                nodes.pop()
            elif len(nodes) > limit + 1:
                self._logger.error(
                    "Unexpected page row count",
                    extra={
                        "entity": self.model.__name__,
                        "count": len(nodes),
                        "limit": limit,
                        "operation": "paginate.cursor",
                    },
                )
                raise UnexpectedResultCountError(len(nodes), limit)

        if not request.is_next:
            nodes.reverse()

        # The side a cursor came from is assumed to still have rows.
        if request.is_next:
            has_prev_page, has_next_page = request.cursor_supplied, has_more
        else:
            has_prev_page, has_next_page = has_more, request.cursor_supplied

        return CursorWindow(
            nodes=nodes,
            has_prev_page=has_prev_page,
            has_next_page=has_next_page,
            prev_page_cursor=self.cursor_for(nodes[0], "prev") if nodes else None,
            next_page_cursor=self.cursor_for(nodes[-1], "next") if nodes else None,
        )

    def _create_cursor(self, node: Any) -> dict[str, Any]:
        return {
            key: self._value_codecs[key].dump(node_value(node, key)) for key in self.order_keys
        }

    def _parse_cursor(self, page_cursor: str) -> DirectionalCursor:
        try:
            return parse_page_cursor(self.codec, page_cursor, self.order_keys)
        except CursorValidationError as e:
            self._logger.info(
                "Page cursor rejected",
                extra={
                    "entity": self.model.__name__,
                    "reason": e.message,
                    "cursor_length": len(page_cursor),
                    "operation": "paginate.cursor",
                },
            )
            raise

    def _load_values(self, cursor: DirectionalCursor) -> dict[str, Any]:
        values = {}
        for key in self.order_keys:
            try:
                values[key] = self._value_codecs[key].load(cursor.values[key])
            except (TypeError, ValueError) as e:
                msg = f"Cursor property {key} has an invalid value"
                self._logger.info(
                    "Page cursor rejected",
                    extra={
                        "entity": self.model.__name__,
                        "reason": msg,
                        "operation": "paginate.cursor",
                    },
                )
                raise CursorValidationError(msg, details={"key": key}) from e
        return values


async def paginate[T](
    model: type[T],
    executor: QueryExecutor,
    statement: Select[Any],
    *,
    order_by: OrderBy | Sequence[OrderBy],
    page_cursor: str | None = None,
    limit: int | None = None,
    codec: CursorCodec | None = None,
    raw: bool = False,
) -> CursorPage[T]:
    """One-shot cursor pagination without keeping a paginator around.

    Example:
        page = await paginate(
            User, SessionExecutor(session), select(User),
            order_by={"id": "DESC"}, limit=3,
        )
    """
    paginator = CursorPaginator(model, order_by=order_by, codec=codec)
    return await paginator.paginate(
        executor, statement, page_cursor=page_cursor, limit=limit, raw=raw
    )


__all__ = ["CursorPaginator", "paginate", "validate_limit"]
