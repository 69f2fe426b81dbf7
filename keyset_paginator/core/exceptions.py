"""Pagination exceptions.

Every error raised by the paginators derives from :class:`PaginationError`
and is raised before any statement executes, except
:class:`UnexpectedResultCountError` which reports a broken invariant after
the page fetch. Errors from the database (``sqlalchemy.exc.SQLAlchemyError``)
are not wrapped; they reach the caller unchanged.
"""

from __future__ import annotations

from typing import Any


class PaginationError(Exception):
    """Base exception for pagination failures.

    Attributes:
        message: Error description
        details: Additional context about the error
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class InvalidArgumentError(PaginationError, ValueError):
    """A pagination argument is out of range or of the wrong kind.

    Raised for a non-positive ``limit``, an unknown order key or direction,
    or an unknown cursor codec name.
    """

    def __init__(self, message: str, argument: str, value: Any = None):
        self.argument = argument
        self.value = value
        super().__init__(message, details={"argument": argument, "value": value})


class CursorValidationError(PaginationError):
    """A page cursor was rejected.

    The cursor's direction tag is unknown, its payload is not a mapping, or
    its keys do not match the paginator's order keys exactly.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details=details)


class CursorDecodeError(CursorValidationError):
    """A cursor token could not be decoded by the cursor codec."""

    def __init__(self, message: str, codec: str):
        self.codec = codec
        super().__init__(message, details={"codec": codec})


class UnexpectedResultCountError(PaginationError):
    """The page query returned more rows than were requested.

    The page statement asks for ``limit + 1`` rows, so this only happens
    when the executor ignores the statement's LIMIT.
    """

    def __init__(self, count: int, limit: int):
        self.count = count
        self.limit = limit
        super().__init__(
            f"Got unexpected number of rows from executing query: {count}. "
            f"Expected from 0 to {limit + 1}",
            details={"count": count, "limit": limit},
        )


__all__ = [
    "CursorDecodeError",
    "CursorValidationError",
    "InvalidArgumentError",
    "PaginationError",
    "UnexpectedResultCountError",
]
