"""
Time utilities for timestamps and performance measurement.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone


def now() -> float:
    """Get current timestamp in seconds (float)."""
    return time.time()


def iso_timestamp(ts: float | None = None) -> str:
    """
    Format a timestamp as an ISO 8601 UTC string with millisecond precision.

    Args:
        ts: Timestamp in seconds (default: now())

    Returns:
        e.g. "2025-12-29T19:30:45.120Z"
    """
    if ts is None:
        ts = now()
    stamp = datetime.fromtimestamp(ts, tz=timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


@contextmanager
def timer(label: str, logger: logging.Logger) -> Iterator[None]:
    """
    Context manager for timing operations.

    Usage:
        with timer("processing pass", logger):
            await walker.process()
    """
    start = time.monotonic()
    try:
        yield
    finally:
        logger.debug("%s took %.3fs", label, time.monotonic() - start)
