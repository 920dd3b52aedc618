"""Shared utilities for Media Shelf."""
from .errors import sanitize_error_message
from .log import ROOT_LOGGER_NAME, get_logger, log_structured, log_success, request_id_var, set_log_level
from .result import Result
from .time import iso_timestamp, now, timer
from .types import EXTENSIONS, ErrorCode, FileKind, ProcessingStage, UploadType, classify_file, is_hidden_name

__all__ = [
    "ROOT_LOGGER_NAME",
    "Result",
    "get_logger",
    "log_success",
    "log_structured",
    "request_id_var",
    "set_log_level",
    "now",
    "iso_timestamp",
    "timer",
    "FileKind",
    "ErrorCode",
    "ProcessingStage",
    "UploadType",
    "EXTENSIONS",
    "classify_file",
    "is_hidden_name",
    "sanitize_error_message",
]
