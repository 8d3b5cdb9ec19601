"""
Structured logging configuration for the staff card sync service

Usage:
    from cardsync.logging import setup_logging, get_logger

    # Setup logging (call once at application startup)
    setup_logging(level="INFO", log_file="/var/log/cardsync/sync.log")

    logger = get_logger(__name__)
    logger.info("Sync started", extra={"run_id": "3f2a", "stage": "reading"})
"""

from .config import configure_from_env, get_logger, setup_logging, shutdown_logging
from .formatters import ConsoleFormatter, JSONFormatter
from .context import ContextLogger

__all__ = [
    "setup_logging",
    "get_logger",
    "configure_from_env",
    "shutdown_logging",
    "JSONFormatter",
    "ConsoleFormatter",
    "ContextLogger",
]
