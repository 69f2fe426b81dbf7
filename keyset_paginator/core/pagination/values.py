"""Per-column cursor value codecs.

Cursor payloads are JSON, so boundary values must be converted to a
JSON-native form when a cursor is minted and back to the column's Python
type when a cursor is parsed. The loaded value is then compared against the
column through SQLAlchemy, which binds it as a parameter and runs the
column type's own bind processing (including ``TypeDecorator`` transforms).

The default codec is derived from the column's SQLAlchemy type:

    ====================  =====================  ======================
    Python type           dumped as              loaded from
    ====================  =====================  ======================
    datetime/date/time    ISO 8601 string        ISO 8601 string
    UUID                  canonical string       string
    Decimal               string                 string or number
    Enum subclass         member name            member name
    int/float/str/bool    unchanged              same JSON type only
    ====================  =====================  ======================

``TypeDecorator`` columns keep cursor values in their Python form; a
loaded value is checked by running the decorator's ``process_bind_param``
on it, so a value the column cannot bind is rejected before any statement
executes. Types without a ``python_type`` pass values through unchanged;
give such keys an explicit codec when their values are not JSON-native.
"""

from __future__ import annotations

import enum
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy.engine.default import DefaultDialect
from sqlalchemy.types import TypeDecorator

if TYPE_CHECKING:
    from sqlalchemy.orm import InstrumentedAttribute


@runtime_checkable
class ValueCodec(Protocol):
    """Converts one column's values to and from their cursor form.

    ``load`` raises ``ValueError`` or ``TypeError`` for values that do not
    belong to the column; the paginator reports those as cursor validation
    failures.
    """

    def dump(self, value: Any) -> Any:
        """Return a JSON-serializable form of ``value``."""
        ...

    def load(self, raw: Any) -> Any:
        """Return the column value encoded by ``raw``."""
        ...


class PassthroughCodec:
    """Leaves values unchanged in both directions."""

    def dump(self, value: Any) -> Any:
        return value

    def load(self, raw: Any) -> Any:
        return raw


class TypedValueCodec:
    """Codec for a column whose values are instances of ``python_type``."""

    _TEMPORAL = (datetime, date, time)

    def __init__(self, python_type: type[Any]) -> None:
        self.python_type = python_type

    def __repr__(self) -> str:
        return f"TypedValueCodec({self.python_type.__name__})"

    def dump(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, self._TEMPORAL):
            return value.isoformat()
        if isinstance(value, UUID | Decimal):
            return str(value)
        if isinstance(value, enum.Enum):
            return value.name
        return value

    def load(self, raw: Any) -> Any:
        if raw is None:
            return None

        target = self.python_type
        # bool is checked before int since bool is an int subclass.
        if issubclass(target, bool):
            return self._require(raw, bool)
        if issubclass(target, int):
            if isinstance(raw, bool):
                raise TypeError(f"expected int, got {type(raw).__name__}")
            return self._require(raw, int)
        if issubclass(target, float):
            if isinstance(raw, bool):
                raise TypeError(f"expected float, got {type(raw).__name__}")
            return float(self._require(raw, (int, float)))
        if issubclass(target, str):
            return self._require(raw, str)
        if issubclass(target, datetime):
            return datetime.fromisoformat(self._require(raw, str))
        if issubclass(target, date):
            return date.fromisoformat(self._require(raw, str))
        if issubclass(target, time):
            return time.fromisoformat(self._require(raw, str))
        if issubclass(target, UUID):
            return UUID(self._require(raw, str))
        if issubclass(target, Decimal):
            try:
                return Decimal(str(self._require(raw, (str, int, float))))
            except InvalidOperation as e:
                raise ValueError(f"invalid decimal {raw!r}") from e
        if issubclass(target, enum.Enum):
            try:
                return target[self._require(raw, str)]
            except KeyError as e:
                raise ValueError(f"{raw!r} is not a {target.__name__} member") from e
        return raw

    @staticmethod
    def _require(raw: Any, kind: type[Any] | tuple[type[Any], ...]) -> Any:
        if not isinstance(raw, kind):
            raise TypeError(f"unexpected cursor value type {type(raw).__name__}")
        return raw


class DecoratedValueCodec:
    """Codec for a ``TypeDecorator`` column.

    Values are stored in the cursor as the decorator's Python values, which
    must be JSON scalars. ``load`` binds the value through the decorator once
    to reject values the column could not bind at execution time.
    """

    _SCALARS = (str, int, float, bool)

    def __init__(self, column_type: TypeDecorator[Any]) -> None:
        self.column_type = column_type
        self._dialect = DefaultDialect()

    def __repr__(self) -> str:
        return f"DecoratedValueCodec({type(self.column_type).__name__})"

    def dump(self, value: Any) -> Any:
        return value

    def load(self, raw: Any) -> Any:
        if raw is None:
            return None
        if not isinstance(raw, self._SCALARS):
            raise TypeError(f"unexpected cursor value type {type(raw).__name__}")
        if type(self.column_type).process_bind_param is TypeDecorator.process_bind_param:
            return raw
        try:
            self.column_type.process_bind_param(raw, self._dialect)
        except (TypeError, ValueError, ArithmeticError, OSError) as e:
            raise ValueError(f"{raw!r} cannot be bound to {self!r}") from e
        return raw


def codec_for_column(column: InstrumentedAttribute[Any]) -> ValueCodec:
    """Pick the default codec for ``column`` from its SQLAlchemy type."""
    column_type = column.type
    if isinstance(column_type, TypeDecorator):
        return DecoratedValueCodec(column_type)
    try:
        python_type = column_type.python_type
    except NotImplementedError:
        return PassthroughCodec()
    return TypedValueCodec(python_type)


__all__ = [
    "DecoratedValueCodec",
    "PassthroughCodec",
    "TypedValueCodec",
    "ValueCodec",
    "codec_for_column",
]
