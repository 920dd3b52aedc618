"""
Configuration for Media Shelf.

Values are resolved once at startup from ``MSHELF_*`` environment variables
into an immutable :class:`ShelfConfig` that is passed to every service.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .utils import env_bool, parse_csv

logger = logging.getLogger(__name__)

DEFAULT_SORT_OPTION = "name-asc"
DEFAULT_COUNTER_FIELDS: tuple[str, ...] = ("favorite", "special")
METADATA_FILENAME = ".metadata.json"
FOLDER_THUMBNAIL_STEM = "_thumbnail"


def _env_raw(*names: str, default: str | None = None) -> str | None:
    for name in names:
        if not name:
            continue
        val = os.getenv(name)
        if val is not None and str(val).strip() != "":
            return str(val).strip()
    return default


def _env_int(default: int, *names: str, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid integer for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_float(default: float, *names: str, min_value: float | None = None, max_value: float | None = None) -> float:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid float for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_bool(default: bool, *names: str) -> bool:
    for name in names:
        if name and name in os.environ:
            return env_bool(name, default)
    return default


def _env_path(default: Path, *names: str) -> Path:
    raw = _env_raw(*names)
    if not raw:
        return default
    try:
        return Path(raw).expanduser().resolve()
    except (OSError, RuntimeError):
        logger.warning("Failed to resolve %s=%s, using fallback %s", names[0] if names else "<unknown>", raw, default)
        return default


def _env_extension(default: str, *names: str) -> str:
    raw = (_env_raw(*names) or default).strip().lstrip(".").lower()
    if not raw or not raw.isalnum():
        logger.warning("Invalid extension for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    return raw


@dataclass(frozen=True)
class ShelfConfig:
    """Immutable runtime configuration threaded through service constructors."""

    input_root: Path
    output_root: Path
    thumbnail_root: Path
    working_root: Path

    delete_source_after_processing: bool = True
    stability_window_s: float = 5.0
    stability_poll_s: float = 1.0
    upload_debounce_s: float = 2.0

    thumbnail_ext: str = "jpg"
    thumbnail_max_width: int = 320
    sprite_frame_count: int = 10
    converted_ext: str = "mp4"

    handbrake_bin: str = "HandBrakeCLI"
    handbrake_preset: str = "Fast 1080p30"
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"
    ffprobe_timeout_s: float = 10.0

    thumbnail_route_suffix: str = "thumb"
    counter_fields: tuple[str, ...] = DEFAULT_COUNTER_FIELDS
    default_sort: str = DEFAULT_SORT_OPTION
    metadata_filename: str = METADATA_FILENAME

    max_upload_bytes: int = 8 * 1024 * 1024 * 1024
    watch_input: bool = False

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def for_base_dir(cls, base: Path, **overrides) -> "ShelfConfig":
        """Build a config whose four roots live side by side under ``base``."""
        base = Path(base)
        values = {
            "input_root": base / "input",
            "output_root": base / "output",
            "thumbnail_root": base / "thumbnails",
            "working_root": base / "working",
        }
        values.update(overrides)
        return cls(**values)

    @property
    def roots(self) -> tuple[Path, Path, Path]:
        """The three parallel library trees (input, output, thumbnails)."""
        return (self.input_root, self.output_root, self.thumbnail_root)


def load_config() -> ShelfConfig:
    """Resolve a :class:`ShelfConfig` from the process environment."""
    base = _env_path(Path.cwd() / "media", "MSHELF_MEDIA_ROOT")
    counters = parse_csv(_env_raw("MSHELF_COUNTER_FIELDS")) or DEFAULT_COUNTER_FIELDS
    reserved = {"views", "createdAt", "lastViewed", "tags", "probe", "name"}
    counters = tuple(name for name in counters if name not in reserved) or DEFAULT_COUNTER_FIELDS

    return ShelfConfig(
        input_root=_env_path(base / "input", "MSHELF_INPUT_DIR"),
        output_root=_env_path(base / "output", "MSHELF_OUTPUT_DIR"),
        thumbnail_root=_env_path(base / "thumbnails", "MSHELF_THUMBNAIL_DIR"),
        working_root=_env_path(base / "working", "MSHELF_WORKING_DIR"),
        delete_source_after_processing=_env_bool(True, "MSHELF_DELETE_SOURCE"),
        stability_window_s=_env_float(5.0, "MSHELF_STABILITY_WINDOW", min_value=0.0, max_value=600.0),
        stability_poll_s=_env_float(1.0, "MSHELF_STABILITY_POLL", min_value=0.05, max_value=60.0),
        upload_debounce_s=_env_float(2.0, "MSHELF_UPLOAD_DEBOUNCE", min_value=0.0, max_value=300.0),
        thumbnail_ext=_env_extension("jpg", "MSHELF_THUMBNAIL_EXT"),
        thumbnail_max_width=_env_int(320, "MSHELF_THUMBNAIL_MAX_WIDTH", min_value=16, max_value=4096),
        sprite_frame_count=_env_int(10, "MSHELF_SPRITE_FRAMES", min_value=1, max_value=100),
        converted_ext=_env_extension("mp4", "MSHELF_CONVERTED_EXT"),
        handbrake_bin=_env_raw("MSHELF_HANDBRAKE_BIN", default="HandBrakeCLI") or "HandBrakeCLI",
        handbrake_preset=_env_raw("MSHELF_HANDBRAKE_PRESET", default="Fast 1080p30") or "Fast 1080p30",
        ffmpeg_bin=_env_raw("MSHELF_FFMPEG_BIN", default="ffmpeg") or "ffmpeg",
        ffprobe_bin=_env_raw("MSHELF_FFPROBE_BIN", default="ffprobe") or "ffprobe",
        ffprobe_timeout_s=_env_float(10.0, "MSHELF_FFPROBE_TIMEOUT", min_value=1.0, max_value=300.0),
        thumbnail_route_suffix=_env_raw("MSHELF_THUMBNAIL_SUFFIX", default="thumb") or "thumb",
        counter_fields=counters,
        default_sort=_env_raw("MSHELF_DEFAULT_SORT", default=DEFAULT_SORT_OPTION) or DEFAULT_SORT_OPTION,
        max_upload_bytes=_env_int(8 * 1024 * 1024 * 1024, "MSHELF_MAX_UPLOAD_BYTES", min_value=1024),
        watch_input=_env_bool(False, "MSHELF_WATCH_INPUT"),
        host=_env_raw("MSHELF_HOST", default="0.0.0.0") or "0.0.0.0",
        port=_env_int(3000, "MSHELF_PORT", min_value=1, max_value=65535),
        log_level=_env_raw("MSHELF_LOG_LEVEL", default="INFO") or "INFO",
    )
