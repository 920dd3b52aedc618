"""
Utility helpers shared across backend modules.
"""
from __future__ import annotations

import os
from typing import Any

BOOL_TRUE_VALUES = frozenset({"1", "true", "yes", "on", "enabled"})
BOOL_FALSE_VALUES = frozenset({"0", "false", "no", "off", "disabled"})


def parse_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in BOOL_TRUE_VALUES:
            return True
        if normalized in BOOL_FALSE_VALUES:
            return False
    return default


def env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name) if name else None
    if raw is None:
        return default
    return parse_bool(raw, default)


def parse_int(value: Any, default: int = 0) -> int:
    """Coerce JSON-ish values (``"3"``, ``3.0``, ``None``) to int."""
    if isinstance(value, bool):
        return int(value)
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def parse_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())
