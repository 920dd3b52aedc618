"""
Shared types, enums, and constants.
"""
import os
from enum import Enum
from typing import Final, Literal

# File type classifications
FileKind = Literal["image", "video", "unknown"]


class ErrorCode(str, Enum):
    """Standardized error codes (string enum)."""

    # Client / validation
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_JSON = "INVALID_JSON"
    NOT_FOUND = "NOT_FOUND"
    DIR_NOT_FOUND = "DIR_NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"

    # Pipeline / availability
    BUSY = "BUSY"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    TOOL_MISSING = "TOOL_MISSING"
    TIMEOUT = "TIMEOUT"

    # Operation errors
    UPLOAD_FAILED = "UPLOAD_FAILED"
    DELETE_FAILED = "DELETE_FAILED"
    MOVE_FAILED = "MOVE_FAILED"
    LIST_FAILED = "LIST_FAILED"
    METADATA_FAILED = "METADATA_FAILED"

    # Tool / parsing
    FFPROBE_ERROR = "FFPROBE_ERROR"
    FFMPEG_ERROR = "FFMPEG_ERROR"
    TRANSCODE_FAILED = "TRANSCODE_FAILED"
    THUMBNAIL_FAILED = "THUMBNAIL_FAILED"
    PARSE_ERROR = "PARSE_ERROR"


class ProcessingStage(str, Enum):
    """Stage reported while a processing pass works on a file."""
    IDLE = "idle"
    RELOCATING = "relocating"
    TRANSCODING = "transcoding"
    DERIVING = "deriving"


class UploadType(str, Enum):
    """Upload destinations accepted by the intake."""
    MEDIA = "media"
    FOLDER_THUMB = "folderThumb"


# File extensions by type
EXTENSIONS: Final[dict[FileKind, set[str]]] = {
    "image": {".png", ".jpg", ".jpeg", ".webp", ".gif", ".bmp"},
    "video": {".mp4", ".mov", ".webm", ".mkv", ".avi", ".m4v", ".wmv", ".flv", ".mpg", ".mpeg", ".ts"},
    "unknown": set(),
}


def classify_file(filename: str) -> FileKind:
    """
    Classify file by extension.

    Args:
        filename: File name or path

    Returns:
        File kind (image, video, unknown)
    """
    ext = os.path.splitext(filename)[1].lower()

    for kind, exts in EXTENSIONS.items():
        if ext in exts:
            return kind

    return "unknown"


def is_hidden_name(name: str) -> bool:
    """Dot-prefixed names (sidecars, upload temp files) are never listed or ingested."""
    return name.startswith(".")
