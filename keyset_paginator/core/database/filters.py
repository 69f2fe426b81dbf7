"""Statement transforms shared by both paginators.

Each filter takes a ``Select`` and returns a derived one. ``Select`` is
generative, so the statement a caller passes in is never modified and can
be reused for the count query.

    stmt = Ordering([(User.name, True), (User.id, False)]).apply(select(User))
    stmt = LimitOffset(limit=21, offset=40).apply(stmt)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from sqlalchemy import Select, func, select

if TYPE_CHECKING:
    from sqlalchemy.orm import InstrumentedAttribute


class StatementFilter(ABC):
    """A transform from one select statement to another."""

    @abstractmethod
    def apply(self, statement: Select[Any]) -> Select[Any]:
        """Return ``statement`` with this filter applied."""
        ...


class Ordering(StatementFilter):
    """ORDER BY over ``(column, ascending)`` pairs, first pair first.

    Appended after any ORDER BY clause the statement already carries, so
    callers that need the paginator's order alone should not pre-order.
    """

    def __init__(self, columns: Sequence[tuple[InstrumentedAttribute[Any], bool]]):
        self.columns = list(columns)

    def reversed(self) -> Ordering:
        """The same columns with every direction flipped."""
        return Ordering([(column, not ascending) for column, ascending in self.columns])

    def apply(self, statement: Select[Any]) -> Select[Any]:
        return statement.order_by(
            *(column.asc() if ascending else column.desc() for column, ascending in self.columns)
        )


class LimitOffset(StatementFilter):
    """LIMIT and OFFSET; a ``None`` limit leaves the statement unbounded."""

    def __init__(self, limit: int | None, offset: int = 0):
        self.limit = limit
        self.offset = offset

    def apply(self, statement: Select[Any]) -> Select[Any]:
        if self.limit is not None:
            statement = statement.limit(self.limit)
        if self.offset:
            statement = statement.offset(self.offset)
        return statement


def count_statement(statement: Select[Any]) -> Select[tuple[int]]:
    """``SELECT count(*)`` over the rows of ``statement``, ignoring its ordering."""
    return select(func.count()).select_from(statement.order_by(None).subquery())


__all__ = [
    "LimitOffset",
    "Ordering",
    "StatementFilter",
    "count_statement",
]
