"""Backend-facing alias for the shared utilities package."""

from __future__ import annotations

from mshelf_shared import (
    ROOT_LOGGER_NAME,
    EXTENSIONS,
    ErrorCode,
    FileKind,
    ProcessingStage,
    Result,
    UploadType,
    classify_file,
    get_logger,
    is_hidden_name,
    iso_timestamp,
    log_structured,
    log_success,
    request_id_var,
    sanitize_error_message,
    set_log_level,
    timer,
)

__all__ = [
    "ROOT_LOGGER_NAME",
    "Result",
    "ErrorCode",
    "ProcessingStage",
    "UploadType",
    "get_logger",
    "log_success",
    "log_structured",
    "request_id_var",
    "classify_file",
    "is_hidden_name",
    "iso_timestamp",
    "timer",
    "FileKind",
    "EXTENSIONS",
    "sanitize_error_message",
    "set_log_level",
]
