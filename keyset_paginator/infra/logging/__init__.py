"""Logging helpers.

The library never installs handlers; applications configure logging.
Components log INFO and above through ``logging.getLogger(__name__)`` and
use a lazy adapter for DEBUG output whose text is expensive to build:

    from keyset_paginator.infra.logging import get_lazy_logger

    lazy_logger = get_lazy_logger(__name__, paginator="cursor")
    lazy_logger.debug(lambda: f"rows={len(rows)} total={total}")
"""

from keyset_paginator.infra.logging.lazy import (
    LazyLoggerAdapter,
    get_lazy_logger,
)

__all__ = [
    "LazyLoggerAdapter",
    "get_lazy_logger",
]
