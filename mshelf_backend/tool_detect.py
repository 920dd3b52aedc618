"""
Executable resolution for the external media tools (HandBrakeCLI, ffmpeg, ffprobe).
Detection results are cached so adapters can be constructed cheaply.
"""
from __future__ import annotations

import shutil
from pathlib import Path
from typing import Dict, Optional

from mshelf_backend.shared import get_logger

logger = get_logger(__name__)

_TOOL_CACHE: Dict[str, Optional[str]] = {}


def is_safe_executable_token(raw: str) -> bool:
    if not raw:
        return False
    if "\x00" in raw or "\n" in raw or "\r" in raw:
        return False
    if any(ch in raw for ch in ("&", "|", ";", ">", "<")):
        return False
    return True


def _resolve_executable_path(raw: str) -> Optional[str]:
    resolved = shutil.which(raw)
    if resolved:
        return resolved
    try:
        candidate = Path(raw)
        if candidate.is_file():
            return str(candidate.resolve(strict=True))
    except (OSError, RuntimeError, ValueError):
        return None
    return None


def resolve_tool(bin_name: str, expected_prefix: str) -> Optional[str]:
    """
    Resolve a configured binary to an absolute path.

    The binary name must look like the expected tool (``expected_prefix``), so a
    misconfigured value can never run an arbitrary command.
    """
    raw = (bin_name or "").strip()
    key = f"{expected_prefix}:{raw}"
    if key in _TOOL_CACHE:
        return _TOOL_CACHE[key]

    resolved: Optional[str] = None
    if is_safe_executable_token(raw):
        candidate = _resolve_executable_path(raw)
        if candidate and Path(candidate).name.lower().startswith(expected_prefix.lower()):
            resolved = candidate
    if resolved is None:
        logger.warning("%s not available (configured as %r)", expected_prefix, raw)
    _TOOL_CACHE[key] = resolved
    return resolved


def get_tool_status(config) -> Dict[str, bool]:
    """Availability map for the configured tools."""
    return {
        "handbrake": resolve_tool(config.handbrake_bin, "handbrakecli") is not None,
        "ffmpeg": resolve_tool(config.ffmpeg_bin, "ffmpeg") is not None,
        "ffprobe": resolve_tool(config.ffprobe_bin, "ffprobe") is not None,
    }


def reset_tool_cache() -> None:
    _TOOL_CACHE.clear()
