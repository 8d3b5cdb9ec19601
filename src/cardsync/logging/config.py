"""
Root logger setup for the CLI and the scheduler process.

Handlers are rebuilt on every call, so the CLI can reconfigure logging
after parsing ``--log-level`` / ``--log-json`` / ``--log-file``.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from .formatters import ConsoleFormatter, JSONFormatter

APP_NAME = "staff-card-sync"

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Libraries that log every request or job tick at INFO
QUIET_LOGGERS = ("urllib3", "requests", "apscheduler")


def _file_handler(path: str, max_bytes: int, backup_count: int) -> logging.Handler:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    return RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    console_output: bool = True,
    json_format: bool = False,
    app_name: str = APP_NAME,
    max_bytes: int = 50 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Replace the root logger's handlers.

    Args:
        level: Level name; unknown names fall back to INFO
        log_file: Rotating log file path, created with its directory
        console_output: Log to stderr
        json_format: JSON lines on every handler instead of plain text
        app_name: ``app`` field of JSON records
        max_bytes: Rotation threshold for the log file
        backup_count: Rotated files to keep
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    handlers: list[logging.Handler] = []
    if console_output:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(
            JSONFormatter(app_name=app_name) if json_format else ConsoleFormatter()
        )
        handlers.append(console)
    if log_file:
        file_handler = _file_handler(log_file, max_bytes, backup_count)
        file_handler.setFormatter(
            JSONFormatter(app_name=app_name)
            if json_format
            else logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
        handlers.append(file_handler)

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
        old.close()
    root.setLevel(numeric_level)
    for handler in handlers:
        handler.setLevel(numeric_level)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: level={logging.getLevelName(numeric_level)}, "
        f"file={log_file or 'none'}, json={json_format}"
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def shutdown_logging() -> None:
    """Flush and close every handler; call once at process exit."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    logging.shutdown()


def configure_from_env() -> None:
    """
    ``setup_logging`` driven by LOG_LEVEL, LOG_FILE, LOG_JSON and
    LOG_CONSOLE (booleans accept true/1/yes).
    """

    def flag(name: str, default: bool) -> bool:
        value = os.getenv(name)
        if value is None:
            return default
        return value.lower() in ("true", "1", "yes")

    setup_logging(
        level=os.getenv("LOG_LEVEL", "INFO"),
        log_file=os.getenv("LOG_FILE") or None,
        console_output=flag("LOG_CONSOLE", True),
        json_format=flag("LOG_JSON", False),
    )
