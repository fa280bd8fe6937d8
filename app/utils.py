"""Utility helpers for the CineList service."""

from __future__ import annotations

import re
from typing import Any, Callable, Hashable, Iterable, TypeVar

from .errors import InvalidInput

T = TypeVar("T")

ITEM_ID_RE = re.compile(r"^\s*\d+\s*$")
WHITESPACE_RE = re.compile(r"\s+")
# Largest value a SQLite INTEGER column can hold.
MAX_ITEM_ID = 2**63 - 1


def parse_item_id(value: Any, *, field: str = "itemId") -> int:
    """Return a positive catalog identifier or raise ``InvalidInput``."""

    if value is None:
        raise InvalidInput(f"{field} is required")
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool):
        raise InvalidInput(f"{field} must be a positive integer")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise InvalidInput(f"{field} must be a positive integer")
        parsed = int(value)
    elif isinstance(value, str) and ITEM_ID_RE.match(value):
        parsed = int(value.strip())
    else:
        raise InvalidInput(f"{field} must be a positive integer")
    if parsed < 1:
        raise InvalidInput(f"{field} must be a positive integer")
    if parsed > MAX_ITEM_ID:
        raise InvalidInput(f"{field} is out of range")
    return parsed


def dedupe_by(items: Iterable[T], key: Callable[[T], Hashable]) -> list[T]:
    """Return ``items`` without repeated keys, keeping first occurrences."""

    seen: dict[Hashable, T] = {}
    for item in items:
        seen.setdefault(key(item), item)
    return list(seen.values())


def truncate_text(value: str, limit: int) -> str:
    """Collapse whitespace and cut ``value`` to ``limit`` characters."""

    text = WHITESPACE_RE.sub(" ", value or "").strip()
    if len(text) <= limit:
        return text
    cut = text[: max(limit - 3, 0)].rstrip()
    return f"{cut}..."


def extract_year(date_value: object) -> int | None:
    """Return the year portion of an ISO-like date string."""

    if not isinstance(date_value, str) or len(date_value) < 4:
        return None
    try:
        return int(date_value[:4])
    except ValueError:
        return None
