"""SQLAlchemy mapper inspection for order keys.

Order keys name mapped attributes (``"created_at"``), not database column
names. These helpers resolve a key to its column attribute and read the
key back from fetched rows, which are ORM instances or, in raw mode, row
mappings.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable

from keyset_paginator.core.exceptions import InvalidArgumentError

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.orm import InstrumentedAttribute


def resolve_column(model: type[Any], key: str) -> InstrumentedAttribute[Any]:
    """Return the column attribute ``model.<key>``.

    Args:
        model: Mapped class
        key: Attribute key of a column property

    Returns:
        The instrumented attribute, usable in ORDER BY and comparisons.

    Raises:
        InvalidArgumentError: If ``model`` is not mapped or ``key`` is not
            a column attribute of it.
    """
    try:
        mapper = sa_inspect(model)
    except NoInspectionAvailable as e:
        msg = f"{model!r} is not a mapped class"
        raise InvalidArgumentError(msg, argument="model", value=model) from e

    if key not in mapper.column_attrs:
        msg = f"{mapper.class_.__name__} has no column attribute {key!r}"
        raise InvalidArgumentError(msg, argument="order_by", value=key)
    return getattr(mapper.class_, key)


def expand_entities(statement: Select[Any]) -> Select[Any]:
    """Replace selected ORM entities with their column attributes.

    ``select(User)`` fetched through ``mappings()`` yields rows keyed by the
    entity name; after expansion each row is keyed by attribute key, as
    ``select(User.id, User.name, ...)`` would be. Statements without
    entities are returned unchanged.
    """
    columns: list[Any] = []
    expanded = False
    for description in statement.column_descriptions:
        expr = description["expr"]
        entity = description["entity"]
        if entity is not None and expr is entity:
            mapper = sa_inspect(entity).mapper
            columns.extend(getattr(entity, attr.key) for attr in mapper.column_attrs)
            expanded = True
        else:
            columns.append(expr)

    if not expanded:
        return statement
    return statement.with_only_columns(*columns, maintain_column_froms=True)


def node_value(node: Any, key: str) -> Any:
    """Read ``key`` from an ORM instance or a row mapping."""
    if isinstance(node, Mapping):
        return node[key]
    return getattr(node, key)


__all__ = ["expand_entities", "node_value", "resolve_column"]
