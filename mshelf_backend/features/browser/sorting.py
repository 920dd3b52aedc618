"""
Listing sort options: ``<key>-<asc|desc>``.

Keys are ``name``, ``views``, each configured counter, ``createdAt`` and
``lastViewed``. Name comparison is case-insensitive and name ascending is the
tiebreak for every other key; missing values sort lowest.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional

from ...config import DEFAULT_SORT_OPTION

NAME_KEY = "name"
TIMESTAMP_KEYS = ("createdAt", "lastViewed")
DIRECTIONS = ("asc", "desc")


def sort_keys(counter_fields: Iterable[str]) -> tuple[str, ...]:
    return (NAME_KEY, "views", *counter_fields, *TIMESTAMP_KEYS)


def parse_sort_option(value: Optional[str], counter_fields: Iterable[str]) -> Optional[tuple[str, bool]]:
    """Return ``(key, descending)`` or None when ``value`` is not a known option."""
    if not value or not isinstance(value, str):
        return None
    key, sep, direction = value.strip().rpartition("-")
    if not sep or direction not in DIRECTIONS:
        return None
    if key not in sort_keys(counter_fields):
        return None
    return key, direction == "desc"


def normalize_sort_option(value: Optional[str], counter_fields: Iterable[str], default: str = DEFAULT_SORT_OPTION) -> Optional[str]:
    """Canonical option string, ``default`` for unknown input, None for no input."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return value.strip() if parse_sort_option(value, counter_fields) else default


def _name_key(item: dict) -> tuple[str, str]:
    name = str(item.get("fullname") or item.get("name") or "")
    return name.casefold(), name


def _value_key(item: dict, key: str) -> tuple[int, Any]:
    meta = item.get("metadata") or {}
    value = meta.get(key)
    if value is None:
        return (0, 0)
    if key in TIMESTAMP_KEYS:
        return (1, str(value))
    try:
        return (1, float(value))
    except (TypeError, ValueError):
        return (0, 0)


def sort_items(items: list[dict], option: str, counter_fields: Iterable[str]) -> list[dict]:
    """Return ``items`` ordered by ``option`` (unknown options sort by name ascending)."""
    parsed = parse_sort_option(option, counter_fields) or (NAME_KEY, False)
    key, descending = parsed
    by_name = sorted(items, key=_name_key)
    if key == NAME_KEY:
        return list(reversed(by_name)) if descending else by_name
    # sorted() is stable with reverse=True, so equal values keep name order
    return sorted(by_name, key=lambda item: _value_key(item, key), reverse=descending)
