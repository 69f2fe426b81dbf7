"""Cursor encoding and decoding for pagination.

A cursor holds the order-key values of one boundary row. Page cursors are
cursors wrapped in a direction envelope: the codec's token prefixed with
``next:`` (rows strictly after the boundary) or ``prev:`` (rows strictly
before it).

Two codecs ship with the library:

- ``JsonCursorCodec``: compact JSON, readable and reversible.
- ``Base64CursorCodec``: the same JSON, URL-safe base64 encoded so tokens
  are opaque to clients.

Example page cursor for ``order_by=[{"name": "ASC"}, {"id": "DESC"}]``:
    next:eyJuYW1lIjoiYiIsImlkIjo1fQ==
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Mapping, Sequence
from typing import Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from keyset_paginator.core.exceptions import (
    CursorDecodeError,
    CursorValidationError,
    InvalidArgumentError,
)

type Direction = Literal["next", "prev"]
type Cursor = dict[str, Any]

NEXT_PREFIX = "next:"
PREV_PREFIX = "prev:"


class DirectionalCursor(BaseModel):
    """A parsed page cursor.

    Attributes:
        values: Order-key values of the boundary row
        direction: ``next`` for rows after the boundary, ``prev`` for rows before
    """

    values: dict[str, Any] = Field(description="Order-key values of the boundary row")
    direction: Literal["next", "prev"] = Field(default="next", description="Pagination direction")

    model_config = {"frozen": True}

    @property
    def is_next(self) -> bool:
        return self.direction == "next"


@runtime_checkable
class CursorCodec(Protocol):
    """Serializes cursors to tokens and back.

    ``parse`` raises :class:`CursorDecodeError` when a token is not valid
    for the encoding. It does not check which keys the cursor has.
    """

    name: str

    def stringify(self, cursor: Mapping[str, Any]) -> str:
        """Encode ``cursor`` as a token."""
        ...

    def parse(self, token: str) -> Any:
        """Decode a token produced by ``stringify``."""
        ...


class JsonCursorCodec:
    """Cursors as compact JSON objects."""

    name = "json"

    def stringify(self, cursor: Mapping[str, Any]) -> str:
        return json.dumps(dict(cursor), separators=(",", ":"))

    def parse(self, token: str) -> Any:
        try:
            return json.loads(token)
        except json.JSONDecodeError as e:
            raise CursorDecodeError(f"Cursor is not valid JSON: {e.msg}", codec=self.name) from e
        except (RecursionError, ValueError) as e:
            # Nesting past the recursion limit, or an integer past the digit limit.
            raise CursorDecodeError("Cursor is not valid JSON", codec=self.name) from e


class Base64CursorCodec:
    """Cursors as URL-safe base64 encoded JSON."""

    name = "base64"

    def __init__(self) -> None:
        self._json = JsonCursorCodec()

    def stringify(self, cursor: Mapping[str, Any]) -> str:
        return base64.urlsafe_b64encode(self._json.stringify(cursor).encode()).decode()

    def parse(self, token: str) -> Any:
        try:
            raw = base64.urlsafe_b64decode(token.encode("ascii")).decode("utf-8")
        except (binascii.Error, UnicodeError) as e:
            raise CursorDecodeError("Cursor is not valid base64", codec=self.name) from e
        try:
            return self._json.parse(raw)
        except CursorDecodeError as e:
            raise CursorDecodeError(e.message, codec=self.name) from e


_CODECS: dict[str, type[JsonCursorCodec] | type[Base64CursorCodec]] = {
    JsonCursorCodec.name: JsonCursorCodec,
    Base64CursorCodec.name: Base64CursorCodec,
}


def get_cursor_codec(name: str) -> CursorCodec:
    """Instantiate a built-in codec by name (``"json"`` or ``"base64"``)."""
    try:
        return _CODECS[name]()
    except KeyError:
        msg = f"Unknown cursor codec {name!r}"
        raise InvalidArgumentError(msg, argument="cursor_codec", value=name) from None


def stringify_page_cursor(
    codec: CursorCodec, values: Mapping[str, Any], direction: Direction
) -> str:
    """Encode ``values`` with ``codec`` and prefix the direction tag."""
    prefix = NEXT_PREFIX if direction == "next" else PREV_PREFIX
    return prefix + codec.stringify(values)


def parse_page_cursor(
    codec: CursorCodec, token: str, keys: Sequence[str]
) -> DirectionalCursor:
    """Decode a page cursor and check it carries exactly ``keys``.

    Args:
        codec: Codec the token was minted with
        token: Page cursor received from a client
        keys: Order keys, in order

    Returns:
        Parsed cursor with raw (still JSON-form) values

    Raises:
        CursorValidationError: Unknown direction tag, payload that is not an
            object, or a key set that differs from ``keys``.
        CursorDecodeError: Token payload that ``codec`` cannot decode.
    """
    direction: Direction
    if token.startswith(NEXT_PREFIX):
        direction = "next"
    elif token.startswith(PREV_PREFIX):
        direction = "prev"
    else:
        msg = 'Cursor string must start with "next:" or "prev:"'
        raise CursorValidationError(msg)

    payload = codec.parse(token[len(NEXT_PREFIX) :])
    if not isinstance(payload, dict):
        msg = "Cursor payload must be an object"
        raise CursorValidationError(msg, details={"type": type(payload).__name__})

    validate_cursor_keys(payload, keys)
    return DirectionalCursor(values=payload, direction=direction)


def validate_cursor_keys(cursor: Mapping[str, Any], keys: Sequence[str]) -> None:
    """Check that ``cursor`` has every key in ``keys`` and nothing else.

    Raises:
        CursorValidationError: On a count mismatch or an unknown key.
    """
    if len(cursor) != len(keys):
        msg = f"Cursor must have {len(keys)} properties"
        raise CursorValidationError(msg, details={"expected": list(keys), "got": list(cursor)})

    for key in cursor:
        if key not in keys:
            msg = f"Cursor has extra property {key}"
            raise CursorValidationError(msg, details={"key": key})


__all__ = [
    "NEXT_PREFIX",
    "PREV_PREFIX",
    "Base64CursorCodec",
    "Cursor",
    "CursorCodec",
    "Direction",
    "DirectionalCursor",
    "JsonCursorCodec",
    "get_cursor_codec",
    "parse_page_cursor",
    "stringify_page_cursor",
    "validate_cursor_keys",
]
