"""Firebird connection provider over ODBC."""

import pyodbc

from cardsync.config import SourceConfig

from .base import BaseConnectionProvider


class FirebirdConnectionProvider(BaseConnectionProvider):
    """Connection provider for the legacy Firebird database."""

    driver_errors = (pyodbc.Error,)

    def __init__(self, config: SourceConfig):
        """
        Initialize Firebird connection provider.

        Args:
            config: Source connection settings
        """
        self.config = config

    def describe(self) -> str:
        return self.config.describe()

    def _create_connection(self) -> pyodbc.Connection:
        """Create a new Firebird connection."""
        conn = pyodbc.connect(
            self.config.connection_string(),
            timeout=self.config.login_timeout,
            autocommit=True,
        )
        # Per-statement timeout in seconds, 0 disables it
        conn.timeout = self.config.query_timeout
        return conn

    def _ping(self, conn: pyodbc.Connection) -> None:
        cursor = conn.cursor()
        try:
            cursor.execute("SELECT 1 FROM RDB$DATABASE")
            cursor.fetchone()
        finally:
            cursor.close()

    def _close_connection(self, conn: pyodbc.Connection) -> None:
        """Close Firebird connection."""
        if conn is not None:
            conn.close()

    def _get_db_type(self) -> str:
        return "firebird"
