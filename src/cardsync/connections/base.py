"""
Base class for database connection providers.

Providers hand out one connection per ``connect()`` block, with connect
and ping failures reported uniformly and the connection always closed.
"""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from prometheus_client import Counter, Histogram

from cardsync.tracing import trace_operation

logger = logging.getLogger(__name__)


CONNECTION_ERRORS = Counter(
    "db_connection_errors_total",
    "Number of failed connection attempts",
    ["database_type", "error_type"],
)

CONNECTION_OPEN_TIME = Histogram(
    "db_connection_open_seconds",
    "Time to open and ping a database connection",
    ["database_type"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


class ConnectionUnavailable(Exception):
    """Raised when a connection cannot be opened or fails its ping."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class BaseConnectionProvider:
    """
    Base class for connection providers.

    Subclasses implement connection creation, ping and close for a
    specific driver, and declare the driver's base exception classes in
    ``driver_errors`` so callers can classify failures without importing
    the driver.
    """

    driver_errors: tuple[type[BaseException], ...] = (Exception,)

    def _create_connection(self) -> Any:
        """Create a new database connection. Must be implemented by subclasses."""
        raise NotImplementedError

    def _ping(self, conn: Any) -> None:
        """Run a trivial query, raising on failure. Must be implemented by subclasses."""
        raise NotImplementedError

    def _close_connection(self, conn: Any) -> None:
        """Close a database connection. Must be implemented by subclasses."""
        raise NotImplementedError

    def _get_db_type(self) -> str:
        """Get database type for metrics. Must be implemented by subclasses."""
        raise NotImplementedError

    def describe(self) -> str:
        """Password-free description of the target for log messages."""
        return self._get_db_type()

    def _open(self) -> Any:
        db_type = self._get_db_type()
        logger.info(f"Connecting to {db_type}: {self.describe()}")

        with CONNECTION_OPEN_TIME.labels(database_type=db_type).time():
            try:
                conn = self._create_connection()
            except self.driver_errors as e:
                CONNECTION_ERRORS.labels(database_type=db_type, error_type="connect").inc()
                logger.error(f"{db_type} connection error: {e}")
                raise ConnectionUnavailable(
                    f"failed to connect to {db_type} ({self.describe()}): {e}", cause=e
                ) from e

            try:
                self._ping(conn)
            except self.driver_errors as e:
                CONNECTION_ERRORS.labels(database_type=db_type, error_type="ping").inc()
                logger.error(f"{db_type} ping error: {e}")
                self._safe_close(conn)
                raise ConnectionUnavailable(
                    f"failed to ping {db_type} ({self.describe()}): {e}", cause=e
                ) from e

        logger.info(f"{db_type} connection established")
        return conn

    def _safe_close(self, conn: Any) -> None:
        try:
            self._close_connection(conn)
        except self.driver_errors as e:
            logger.warning(f"Error closing {self._get_db_type()} connection: {e}")

    @contextmanager
    def connect(self) -> Iterator[Any]:
        """
        Open a connection for the duration of the block.

        Yields:
            Database connection

        Raises:
            ConnectionUnavailable: If the connection or its ping fails
        """
        start_time = time.time()

        with trace_operation(
            f"{self._get_db_type()}_connect",
            kind=trace.SpanKind.CLIENT,
            database_type=self._get_db_type(),
        ):
            conn = self._open()

        logger.debug(
            f"Opened {self._get_db_type()} connection in {time.time() - start_time:.3f}s"
        )

        try:
            yield conn
        finally:
            self._safe_close(conn)
