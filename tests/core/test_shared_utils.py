import logging

import pytest

from mshelf_backend.shared import (
    ErrorCode,
    Result,
    classify_file,
    get_logger,
    is_hidden_name,
    iso_timestamp,
    log_success,
    request_id_var,
    sanitize_error_message,
)
from mshelf_backend.utils import parse_bool, parse_csv, parse_int


def test_result_helpers() -> None:
    ok = Result.Ok(2, source="test")
    assert ok.unwrap() == 2
    assert ok.map(lambda v: v * 3).data == 6
    assert ok.map(lambda v: v * 3).meta == {"source": "test"}

    err = Result.Err(ErrorCode.BUSY, "busy")
    assert err.code == "BUSY"
    assert err.unwrap_or(7) == 7
    with pytest.raises(ValueError):
        err.unwrap()


def test_classify_file_and_hidden_names() -> None:
    assert classify_file("clip.MOV") == "video"
    assert classify_file("photo.JPeg") == "image"
    assert classify_file("notes.txt") == "unknown"
    assert is_hidden_name(".metadata.json")
    assert not is_hidden_name("clip.mp4")


def test_iso_timestamp_is_utc_millis() -> None:
    assert iso_timestamp(0) == "1970-01-01T00:00:00.000Z"


def test_parse_helpers() -> None:
    assert parse_bool("YES") is True
    assert parse_bool("off", True) is False
    assert parse_bool("maybe", True) is True
    assert parse_int("3") == 3
    assert parse_int(4.9) == 4
    assert parse_int(None, -1) == -1
    assert parse_csv(" a, ,b ") == ("a", "b")


def test_sanitize_error_message_masks_paths() -> None:
    message = sanitize_error_message(OSError("[Errno 2] No such file: '/srv/media/output/a/b.mp4'"), "Delete failed")
    assert "/srv/media" not in message


def test_logger_carries_request_id() -> None:
    records: list[logging.LogRecord] = []

    class _Collect(logging.Handler):
        def emit(self, record):
            records.append(record)

    handler = _Collect()
    shelf_root = logging.getLogger("shelf")
    logger = get_logger("mshelf_backend.tests.logging")
    shelf_root.addHandler(handler)
    token = request_id_var.set("abc123")
    try:
        log_success(logger, "ready")
    finally:
        request_id_var.reset(token)
        shelf_root.removeHandler(handler)
    assert logger.name == "shelf.tests.logging"
    assert [r.levelname for r in records] == ["SUCCESS"]
    assert records[0].request_id == "abc123"
