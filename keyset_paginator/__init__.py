"""Cursor (keyset) and page-number pagination for SQLAlchemy select statements.

Example:
    from sqlalchemy import select
    from keyset_paginator import CursorPaginator, SessionExecutor

    paginator = CursorPaginator(User, order_by=[{"name": "ASC"}, {"id": "DESC"}])
    page = await paginator.paginate(
        SessionExecutor(session),
        select(User).where(User.is_active.is_(True)),
        limit=20,
        page_cursor=request_cursor,
    )
    page.nodes, page.next_page_cursor, page.has_next_page
"""

from keyset_paginator.core.exceptions import (
    CursorDecodeError,
    CursorValidationError,
    InvalidArgumentError,
    PaginationError,
    UnexpectedResultCountError,
)
from keyset_paginator.core.ordering import normalize_order_by
from keyset_paginator.core.pagination import (
    Base64CursorCodec,
    CursorCodec,
    CursorPage,
    CursorPageRequest,
    CursorPaginator,
    DirectionalCursor,
    JsonCursorCodec,
    LazyCursorPage,
    LazyNumberedPage,
    NumberedPage,
    PageRequest,
    PageSizeOptions,
    PagePaginator,
    QueryExecutor,
    SessionExecutor,
    SessionFactoryExecutor,
    ValueCodec,
    paginate,
)

__all__ = [
    "Base64CursorCodec",
    "CursorCodec",
    "CursorDecodeError",
    "CursorPage",
    "CursorPageRequest",
    "CursorPaginator",
    "CursorValidationError",
    "DirectionalCursor",
    "InvalidArgumentError",
    "JsonCursorCodec",
    "LazyCursorPage",
    "LazyNumberedPage",
    "NumberedPage",
    "PagePaginator",
    "PageRequest",
    "PageSizeOptions",
    "PaginationError",
    "QueryExecutor",
    "SessionExecutor",
    "SessionFactoryExecutor",
    "UnexpectedResultCountError",
    "ValueCodec",
    "normalize_order_by",
    "paginate",
]
