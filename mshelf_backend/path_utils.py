"""
Logical library path normalization and safety helpers.

A logical path names a directory (or item) relative to the library roots using
forward slashes, e.g. ``"a/b"``. The root is the empty string; cache keys use
``"/"`` for the root and ``"/a/b"`` otherwise.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath


def normalize_logical_path(value: str | None) -> str | None:
    """
    Normalize a client-supplied logical path to ``"a/b"`` form.

    Returns None when the value is unsafe (NUL bytes, ``..`` segments, drives).
    """
    if value is None:
        return ""
    raw = str(value).strip().replace("\\", "/")
    if "\x00" in raw:
        return None
    parts = [part for part in raw.split("/") if part and part != "."]
    if any(part == ".." for part in parts):
        return None
    if parts and ":" in parts[0]:
        return None
    return "/".join(parts)


def cache_key(logical_path: str) -> str:
    return "/" + logical_path if logical_path else "/"


def join_logical(parent: str, name: str) -> str:
    return f"{parent}/{name}" if parent else name


def parent_logical(logical_path: str) -> str:
    parent = str(PurePosixPath(logical_path).parent)
    return "" if parent == "." else parent


def safe_item_name(value: str | None) -> str | None:
    """Accept a single path segment that is neither hidden nor a traversal."""
    if value is None:
        return None
    name = str(value).strip()
    if not name or "\x00" in name or name in (".", ".."):
        return None
    if "/" in name or "\\" in name:
        return None
    if name.startswith("."):
        return None
    return name


def resolve_under(root: Path, logical_path: str) -> Path:
    """Map a normalized logical path onto a filesystem root."""
    if not logical_path:
        return root
    return root.joinpath(*logical_path.split("/"))


def is_within_root(candidate: Path, root: Path) -> bool:
    try:
        root_resolved = root.resolve(strict=False)
        cand_resolved = candidate.resolve(strict=False)
    except (OSError, RuntimeError, ValueError):
        return False
    return cand_resolved == root_resolved or cand_resolved.is_relative_to(root_resolved)
