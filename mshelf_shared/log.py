"""
Logging utilities with consistent formatting and emoji indicators.
"""
import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Final

# Emoji indicators for log levels
EMOJI_MAP: Final[dict[str, str]] = {
    "DEBUG": "🔍",
    "INFO": "ℹ️",
    "WARNING": "⚠️",
    "ERROR": "❌",
    "CRITICAL": "🔥",
    "SUCCESS": "✅",
}

# Global logger prefix
PREFIX: Final[str] = "🎞️ Shelf"

# Root of every logger handed out by get_logger()
ROOT_LOGGER_NAME: Final[str] = "shelf"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class CorrelationFilter(logging.Filter):
    """Inject `request_id` from `request_id_var` into each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("")
        return True


class EmojiFormatter(logging.Formatter):
    """Custom formatter that adds emoji based on log level."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a single line with a prefix and emoji."""
        emoji = EMOJI_MAP.get(record.levelname, "🎞️")

        # Format: 🎞️ Shelf [✅] ingest.walker [req]: message
        rid = str(getattr(record, "request_id", "") or "").strip()
        rid_part = f" [{rid}]" if rid else ""
        log_format = f"{PREFIX} [{emoji}] %(name)s{rid_part}: %(message)s"
        formatter = logging.Formatter(log_format)
        return formatter.format(record)


def _ensure_correlation_filter(logger: logging.Logger) -> None:
    if any(isinstance(f, CorrelationFilter) for f in logger.filters):
        return
    logger.addFilter(CorrelationFilter())


def _short_name(name: str) -> str:
    if name.startswith("__main__"):
        return "main"
    parts = name.split(".")
    if parts and parts[0] in ("mshelf_backend", "mshelf_shared"):
        parts = parts[1:]
    return ".".join(parts) or "core"


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Get a logger with the Shelf prefix and emoji indicators.

    All loggers live under the ``shelf`` root logger, which owns the single
    console handler. Extra handlers (e.g. the WebSocket log mirror) attach to
    that root.

    Args:
        name: Logger name (usually __name__)
        level: Optional logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger instance with emoji formatting
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(EmojiFormatter())
        handler.addFilter(CorrelationFilter())
        root.addHandler(handler)
        root.setLevel(logging.INFO)
        # Prevent propagation to avoid duplicate logs
        root.propagate = False

    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{_short_name(name)}")
    _ensure_correlation_filter(logger)
    if level is not None:
        logger.setLevel(level)
    return logger


def set_log_level(level: str | int) -> None:
    """Set the level of the ``shelf`` root logger (e.g. "DEBUG")."""
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO
        level = resolved
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)


# Add SUCCESS level
SUCCESS_LEVEL: Final[int] = 25  # Between INFO (20) and WARNING (30)
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")


def log_success(logger: logging.Logger, message: str) -> None:
    """
    Log a success message with ✅ emoji.

    Args:
        logger: Logger instance
        message: Success message
    """
    logger.log(SUCCESS_LEVEL, message)


def log_structured(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """Emit a structured JSON log entry with contextual fields."""
    payload = {
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "context": context,
    }
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
