"""SQLAlchemy helpers used by the paginators.

Query Filters:
    - StatementFilter: Base class for composable statement transforms
    - Ordering: ORDER BY over (column, ascending) pairs
    - LimitOffset: LIMIT/OFFSET helper
    - count_statement: COUNT(*) over an existing select

Inspection:
    - resolve_column: Map an attribute key to a mapped column attribute
    - node_value: Read a key from an ORM instance or a row mapping
    - expand_entities: Select an entity's columns instead of the entity (raw mode)
"""

from keyset_paginator.core.database.filters import (
    LimitOffset,
    Ordering,
    StatementFilter,
    count_statement,
)
from keyset_paginator.core.database.inspection import (
    expand_entities,
    node_value,
    resolve_column,
)

__all__ = [
    "LimitOffset",
    "Ordering",
    "StatementFilter",
    "count_statement",
    "expand_entities",
    "node_value",
    "resolve_column",
]
