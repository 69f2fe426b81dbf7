"""Pagination settings.

Defaults for both paginators, read from the environment with the
``PAGINATION_`` prefix (or a ``.env`` file).
Example: PAGINATION_DEFAULT_LIMIT=50, PAGINATION_CURSOR_CODEC=json
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PaginationSettings(BaseSettings):
    """Pagination configuration settings.

    Attributes:
        default_limit: Page size used by the page-number paginator when
            neither the constructor nor the call specifies one.
        max_limit: Largest page size the page-number paginator will serve.
        cursor_codec: Cursor codec used when a cursor paginator is built
            without an explicit codec.

    Example:
        settings = PaginationSettings(default_limit=10)
        paginator = PagePaginator(User, order_by={"id": "ASC"}, settings=settings)
    """

    default_limit: int = Field(
        default=20,
        ge=1,
        le=1000,
        description="Default page size when limit not specified",
    )
    max_limit: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Maximum allowed page size (hard limit)",
    )
    cursor_codec: Literal["base64", "json"] = Field(
        default="base64",
        description="Cursor token encoding used when none is configured",
    )

    model_config = SettingsConfigDict(
        env_prefix="PAGINATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _check_limits(self) -> PaginationSettings:
        if self.default_limit > self.max_limit:
            msg = "default_limit must not exceed max_limit"
            raise ValueError(msg)
        return self
