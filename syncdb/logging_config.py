"""Opt-in logging for syncdb.

The library never configures logging on import: the ``syncdb`` logger carries
a ``NullHandler`` until one of the helpers below attaches a real handler.
Sync rounds log at INFO, per-field merges at DEBUG.

Example usage:
    import syncdb

    # See every merge decision while debugging a divergent client
    syncdb.enable_console_logging(level="DEBUG")

    # Keep a rotating record of sync rounds on a device
    syncdb.enable_file_logging("sync.log", max_bytes=1_000_000)

    # Or let the environment decide
    syncdb.configure_from_env()

Environment variables:
    SYNCDB_LOGGING: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    SYNCDB_LOG_FILE: Path to log file (enables rotating file logging)
    SYNCDB_LOG_JSON: Set to "1" for JSON output
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Literal

__all__ = [
    "configure_from_env",
    "disable_logging",
    "enable_console_logging",
    "enable_file_logging",
    "enable_json_file_logging",
    "enable_json_logging",
    "enable_timed_file_logging",
    "set_level",
    "set_module_level",
]

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5

LOGGER_NAME = "syncdb"

ENV_LEVEL = "SYNCDB_LOGGING"
ENV_FILE = "SYNCDB_LOG_FILE"
ENV_JSON = "SYNCDB_LOG_JSON"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class JsonFormatter(logging.Formatter):
    """Formats log records as one JSON object per line.

    Example output:
        {"timestamp": "2024-01-15T10:30:00.123456+00:00", "level": "INFO",
         "logger": "syncdb.protocol.loop", "message": "round 1 accepted at version 3"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        if hasattr(record, "extra"):
            log_data["extra"] = record.extra
        return json.dumps(log_data)


def _get_level(level: str | int) -> int:
    """Convert a level name or number to a logging level constant."""
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.INFO)


def _get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def _clear_handlers() -> None:
    """Remove and close every non-null handler on the syncdb logger."""
    logger = _get_logger()
    for handler in logger.handlers[:]:
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()


def _install(handler: logging.Handler, level: LogLevel | int, formatter: logging.Formatter) -> None:
    logger = _get_logger()
    logger.setLevel(_get_level(level))
    handler.setLevel(_get_level(level))
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def _prepare_path(path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def enable_console_logging(
    level: LogLevel | int = "INFO",
    format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> logging.StreamHandler:
    """Log syncdb messages to stderr.

    Args:
        level: Log level name or number.
        format: Log message format string.
        date_format: Date format string for %(asctime)s.

    Returns:
        The created StreamHandler.
    """
    handler = logging.StreamHandler()
    _install(handler, level, logging.Formatter(format, date_format))
    return handler


def enable_file_logging(
    path: str | Path,
    level: LogLevel | int = "INFO",
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> RotatingFileHandler:
    """Log syncdb messages to a size-rotated file.

    Parent directories are created as needed. Once the file reaches
    ``max_bytes`` it is rolled over, keeping ``backup_count`` old files.

    Returns:
        The created RotatingFileHandler.
    """
    handler = RotatingFileHandler(
        _prepare_path(path),
        maxBytes=max_bytes,
        backupCount=backup_count,
    )
    _install(handler, level, logging.Formatter(format, date_format))
    return handler


def enable_timed_file_logging(
    path: str | Path,
    level: LogLevel | int = "INFO",
    when: str = "midnight",
    interval: int = 1,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> TimedRotatingFileHandler:
    """Log syncdb messages to a file rotated on a schedule.

    ``when`` and ``interval`` take the values accepted by
    ``logging.handlers.TimedRotatingFileHandler`` ('S', 'M', 'H', 'D',
    'midnight', 'W0'-'W6').

    Returns:
        The created TimedRotatingFileHandler.
    """
    handler = TimedRotatingFileHandler(
        _prepare_path(path),
        when=when,
        interval=interval,
        backupCount=backup_count,
    )
    _install(handler, level, logging.Formatter(format, date_format))
    return handler


def enable_json_logging(level: LogLevel | int = "INFO") -> logging.StreamHandler:
    """Log syncdb messages to stderr as JSON lines."""
    handler = logging.StreamHandler()
    _install(handler, level, JsonFormatter())
    return handler


def enable_json_file_logging(
    path: str | Path,
    level: LogLevel | int = "INFO",
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> RotatingFileHandler:
    """Log syncdb messages as JSON lines to a size-rotated file."""
    handler = RotatingFileHandler(
        _prepare_path(path),
        maxBytes=max_bytes,
        backupCount=backup_count,
    )
    _install(handler, level, JsonFormatter())
    return handler


def configure_from_env() -> None:
    """Configure logging from ``SYNCDB_LOGGING``, ``SYNCDB_LOG_FILE`` and ``SYNCDB_LOG_JSON``.

    Does nothing when neither a level nor a file is given.

    Example:
        # In shell:
        export SYNCDB_LOGGING=DEBUG
        export SYNCDB_LOG_FILE=sync.log

        # In Python:
        >>> import syncdb
        >>> syncdb.configure_from_env()
    """
    level = os.environ.get(ENV_LEVEL, "").upper()
    log_file = os.environ.get(ENV_FILE, "")
    use_json = os.environ.get(ENV_JSON, "") == "1"

    if not level and not log_file:
        return

    level = level or "INFO"

    if use_json:
        if log_file:
            enable_json_file_logging(log_file, level=level)
        else:
            enable_json_logging(level=level)
    elif log_file:
        enable_file_logging(log_file, level=level)
    else:
        enable_console_logging(level=level)


def set_level(level: LogLevel | int) -> None:
    """Set the level of the top-level syncdb logger."""
    _get_logger().setLevel(_get_level(level))


def set_module_level(module: str, level: LogLevel | int) -> None:
    """Set the level for one syncdb submodule.

    Example:
        >>> syncdb.enable_console_logging(level="INFO")
        >>> syncdb.set_module_level("db", "DEBUG")  # trace merges only
    """
    logging.getLogger(f"{LOGGER_NAME}.{module}").setLevel(_get_level(level))


def disable_logging() -> None:
    """Silence syncdb entirely."""
    logger = _get_logger()
    _clear_handlers()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.CRITICAL + 1)
