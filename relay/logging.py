"""
Logging setup for the relay.

Console output is human-readable; errors additionally go to a JSON file.
Both carry the correlation id of the current HTTP request or WebSocket
session, and JSON records also carry the per-session log context
(``client_id``, ``mode``) bound when a connection is registered.
"""

import json
import logging
import sys
from contextvars import ContextVar
from typing import Any

from relay.middlewares.correlation_id import get_correlation_id
from relay.settings import app_settings

# Per-session fields, one context per connection task
log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

DATE_FMT = "%Y-%m-%d %H:%M:%S"


def set_log_context(**kwargs: Any) -> None:
    """
    Add fields to the log context of the current connection.

    Example:
        >>> set_log_context(client_id="3f2a...", mode="envelope")
    """
    log_context.set({**log_context.get(), **kwargs})


def get_log_context() -> dict[str, Any]:
    return log_context.get()


def clear_log_context() -> None:
    log_context.set({})


class StructuredJSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Fields: timestamp, level, logger, message, location, the session's
    correlation id as ``request_id``, the log context, the environment and
    the formatted exception when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, DATE_FMT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            log_data["request_id"] = correlation_id

        log_data.update(get_log_context())
        log_data["environment"] = app_settings.ENVIRONMENT

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Console formatter.

    INFO lines are short; every other level also shows where the record
    was emitted.
    """

    INFO_FMT = "%(asctime)s - [%(correlation_id)s] %(levelname)s: %(message)s"
    DETAIL_FMT = "%(asctime)s - [%(correlation_id)s] %(levelname)s: %(module)s.%(funcName)s:%(lineno)d - %(message)s"

    def __init__(self) -> None:
        super().__init__()
        self._info = logging.Formatter(self.INFO_FMT, datefmt=DATE_FMT)
        self._detail = logging.Formatter(self.DETAIL_FMT, datefmt=DATE_FMT)

    def format(self, record: logging.LogRecord) -> str:
        record.correlation_id = get_correlation_id() or "-"

        if record.levelno == logging.INFO:
            return self._info.format(record)
        return self._detail.format(record)


def setup_logging(level: str | None = None) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        level: Log level name overriding ``LOG_LEVEL`` from settings.

    Returns:
        The root logger.
    """
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, (level or app_settings.LOG_LEVEL).upper()))

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(HumanReadableFormatter())
    logger.addHandler(console_handler)

    try:
        file_handler = logging.FileHandler(app_settings.LOG_FILE_PATH)
        file_handler.setLevel(logging.ERROR)
        file_handler.setFormatter(StructuredJSONFormatter())
        logger.addHandler(file_handler)
    except OSError as e:
        logger.warning(f"Could not create file handler: {e}")

    # Disable logging during pytest runs
    if sys.argv[0].split("/")[-1] in ["pytest"]:
        logging.disable(logging.ERROR)

    return logger


logger = setup_logging()
