"""Order specification normalization.

An order specification is one mapping, or a sequence of mappings, from
attribute key to direction. Directions are ``"ASC"``/``"DESC"`` (any case)
or a boolean ascending flag; ``None`` leaves the key out.

    normalize_order_by([{"name": "ASC"}, {"id": "DESC"}])
    # [("name", True), ("id", False)]

Mapping order, then key order within a mapping, is the tie-break
precedence. Duplicate keys are not detected.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Literal

from keyset_paginator.core.exceptions import InvalidArgumentError

type Order = Literal["ASC", "DESC", "asc", "desc"] | bool
type OrderBy = Mapping[str, Order | None]
type OrderSpec = list[tuple[str, bool]]


def _is_ascending(key: str, direction: Order) -> bool:
    if isinstance(direction, bool):
        return direction
    if isinstance(direction, str):
        normalized = direction.upper()
        if normalized == "ASC":
            return True
        if normalized == "DESC":
            return False
    msg = f"Order direction for {key!r} must be 'ASC', 'DESC' or a boolean"
    raise InvalidArgumentError(msg, argument="order_by", value=direction)


def normalize_order_by(order_by: OrderBy | Sequence[OrderBy]) -> OrderSpec:
    """Flatten ``order_by`` into ``(key, ascending)`` pairs.

    Args:
        order_by: A mapping of key to direction, or a sequence of them.

    Returns:
        Ordered list of ``(key, ascending)`` pairs.

    Raises:
        InvalidArgumentError: If a direction is not recognised.
    """
    clauses = [order_by] if isinstance(order_by, Mapping) else list(order_by)

    orders: OrderSpec = []
    for clause in clauses:
        for key, direction in clause.items():
            if direction is None:
                continue
            orders.append((key, _is_ascending(key, direction)))
    return orders


__all__ = ["Order", "OrderBy", "OrderSpec", "normalize_order_by"]
