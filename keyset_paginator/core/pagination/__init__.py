"""Cursor-based and page-number pagination for SQLAlchemy statements.

Cursor pagination (keyset/seek method) is:
- Stable: concurrent inserts and deletes do not shift rows between pages
- Performant: uses indexed seeks instead of OFFSET scans
- Bidirectional: every page carries ``prev:`` and ``next:`` cursors

Usage:
    paginator = CursorPaginator(User, order_by=[{"created_at": "DESC"}, {"id": "DESC"}])
    page = await paginator.paginate(
        SessionExecutor(session), select(User), limit=50, page_cursor=cursor
    )

Cursors are opaque strings that clients pass back unchanged.
"""

from keyset_paginator.core.pagination.cursor import (
    Base64CursorCodec,
    CursorCodec,
    DirectionalCursor,
    JsonCursorCodec,
    get_cursor_codec,
)
from keyset_paginator.core.pagination.executor import (
    QueryExecutor,
    SessionExecutor,
    SessionFactoryExecutor,
)
from keyset_paginator.core.pagination.filters import CursorFilter
from keyset_paginator.core.pagination.page import PagePaginator, PageSizeOptions
from keyset_paginator.core.pagination.paginator import CursorPaginator, paginate
from keyset_paginator.core.pagination.schemas import (
    CursorPage,
    CursorPageRequest,
    LazyCursorPage,
    LazyNumberedPage,
    NumberedPage,
    PageRequest,
)
from keyset_paginator.core.pagination.values import ValueCodec

__all__ = [
    # Cursor codecs
    "Base64CursorCodec",
    "CursorCodec",
    "DirectionalCursor",
    "JsonCursorCodec",
    "get_cursor_codec",
    # Execution
    "QueryExecutor",
    "SessionExecutor",
    "SessionFactoryExecutor",
    # Filters
    "CursorFilter",
    # Paginators
    "CursorPaginator",
    "PagePaginator",
    "PageSizeOptions",
    "paginate",
    # Results
    "CursorPage",
    "CursorPageRequest",
    "LazyCursorPage",
    "LazyNumberedPage",
    "NumberedPage",
    "PageRequest",
    # Column values
    "ValueCodec",
]
