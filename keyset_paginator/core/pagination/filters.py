"""Cursor filter for SQLAlchemy queries.

The CursorFilter implements the seek/keyset pagination method: instead of
OFFSET it adds a WHERE condition that selects rows strictly beyond the
cursor row in the requested direction.

How it works:
    For ORDER BY created_at DESC, id ASC with a "next" cursor at (t1, id1):
    WHERE (created_at < t1) OR (created_at = t1 AND id > id1)
    ORDER BY created_at DESC, id ASC

    For a "prev" cursor every comparison and every ordering flips, so LIMIT
    keeps the rows closest to the cursor; the paginator reverses them back.

Cursor values are bound as parameters through column comparisons and are
never rendered into the SQL text.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from sqlalchemy import Select, and_, or_

from keyset_paginator.core.database.filters import LimitOffset, Ordering, StatementFilter

if TYPE_CHECKING:
    from sqlalchemy.orm import InstrumentedAttribute
    from sqlalchemy.sql.elements import ColumnElement


class CursorFilter(StatementFilter):
    """Apply cursor-based pagination to a SQLAlchemy query.

    Example:
        stmt = select(User).where(User.is_active.is_(True))
        stmt = CursorFilter(
            order_by=[(User.created_at, False), (User.id, True)],
            values={"created_at": t1, "id": 42},
            is_next=True,
            limit=50,
        ).apply(stmt)

    Attributes:
        order_by: ``(column, ascending)`` pairs in precedence order
        values: Cursor values keyed by column key, or None for the first page
        is_next: Fetch rows after (True) or before (False) the cursor
        limit: Page size, or None for no LIMIT
    """

    def __init__(
        self,
        order_by: Sequence[tuple[InstrumentedAttribute[Any], bool]],
        values: dict[str, Any] | None = None,
        *,
        is_next: bool = True,
        limit: int | None = None,
    ) -> None:
        self.order_by = list(order_by)
        self.values = values
        self.is_next = is_next
        self.limit = limit

    def apply(self, statement: Select[Any]) -> Select[Any]:
        """Apply seek condition, ordering and LIMIT (one extra row) to statement."""
        if self.values is not None:
            statement = statement.where(self.seek_condition())

        ordering = Ordering(self.order_by)
        statement = (ordering if self.is_next else ordering.reversed()).apply(statement)

        # One extra row tells whether another page exists in this direction.
        return LimitOffset(limit=None if self.limit is None else self.limit + 1).apply(statement)

    def seek_condition(self) -> ColumnElement[bool]:
        """Build the lexicographic "beyond the cursor" condition.

        For columns (a, b, c) with cursor values (v1, v2, v3):
            (a op v1) OR
            (a = v1 AND b op v2) OR
            (a = v1 AND b = v2 AND c op v3)

        ``op`` is ``>`` when the column's ascending flag equals ``is_next``,
        ``<`` otherwise.
        """
        if self.values is None:
            msg = "seek_condition requires cursor values"
            raise ValueError(msg)

        or_conditions = []
        eq_conditions: list[ColumnElement[bool]] = []
        for column, ascending in self.order_by:
            value = self.values[column.key]
            compare_cond = column > value if ascending == self.is_next else column < value

            if eq_conditions:
                or_conditions.append(and_(*eq_conditions, compare_cond))
            else:
                or_conditions.append(compare_cond)
            eq_conditions.append(column == value)

        return or_(*or_conditions)

    @property
    def sort_fields(self) -> list[str]:
        """Get list of sort field names."""
        return [column.key for column, _ in self.order_by]


__all__ = ["CursorFilter"]
