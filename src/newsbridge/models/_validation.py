"""Shared validation helpers for frozen dataclass models.

Private module. Used by ``__post_init__`` methods in sibling model modules to
enforce runtime type constraints and null-byte safety.
"""

from __future__ import annotations

import datetime
from typing import Any


def validate_instance(value: Any, expected: type, name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        article = "an" if expected.__name__[0] in "AEIOUaeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {type(value).__name__}")


def validate_str_no_null(value: Any, name: str) -> None:
    """Raise if *value* is not a ``str`` or contains null bytes."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")


def validate_str_not_empty(value: Any, name: str) -> None:
    """Raise if *value* is not a non-empty ``str`` without null bytes."""
    validate_str_no_null(value, name)
    if not value:
        raise ValueError(f"{name} must not be empty")


def validate_aware_datetime(value: Any, name: str) -> None:
    """Raise if *value* is not a timezone-aware ``datetime`` (``None`` allowed)."""
    if value is None:
        return
    validate_instance(value, datetime.datetime, name)
    if value.tzinfo is None:
        raise ValueError(f"{name} must be timezone-aware")


def coerce_text(value: Any) -> str:
    """Return *value* as a string, mapping ``None`` to ``""`` and stripping null bytes."""
    if value is None:
        return ""
    return str(value).replace("\x00", "")


def parse_timestamp(value: Any) -> datetime.datetime | None:
    """Parse an Elasticsearch date value into an aware UTC ``datetime``.

    Accepts ISO 8601 strings (a trailing ``Z`` included), epoch milliseconds
    as ``int``/``float``, and ``datetime`` instances. Naive values are taken
    as UTC. Returns ``None`` for anything else, including instants outside
    the range ``datetime`` can represent.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, datetime.datetime):
            parsed = value
        elif isinstance(value, int | float):
            parsed = datetime.datetime.fromtimestamp(value / 1000, tz=datetime.UTC)
        elif isinstance(value, str) and value.strip():
            parsed = datetime.datetime.fromisoformat(value.strip())
        else:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=datetime.UTC)
        return parsed.astimezone(datetime.UTC)
    except (OverflowError, OSError, ValueError):
        return None
