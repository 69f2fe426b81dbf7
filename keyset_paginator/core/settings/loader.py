"""LRU-cached settings loader.

Settings are loaded and validated once, then cached for the lifetime of
the process. In tests, call ``clear_all_caches()`` after changing the
environment, or pass a ``PaginationSettings`` instance explicitly.
"""

from __future__ import annotations

from functools import lru_cache

from .pagination import PaginationSettings


@lru_cache(maxsize=1)
def get_pagination_settings() -> PaginationSettings:
    """Get cached pagination settings.

    Returns:
        Validated and frozen PaginationSettings instance.
    """
    return PaginationSettings()


def clear_all_caches() -> None:
    """Drop cached settings so the next call re-reads the environment."""
    get_pagination_settings.cache_clear()
