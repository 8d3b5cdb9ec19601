"""PostgreSQL connection provider."""

import psycopg2
import psycopg2.extensions

from cardsync.config import DestinationConfig

from .base import BaseConnectionProvider


class PostgresConnectionProvider(BaseConnectionProvider):
    """Connection provider for the PostgreSQL destination."""

    driver_errors = (psycopg2.Error,)

    def __init__(self, config: DestinationConfig):
        """
        Initialize PostgreSQL connection provider.

        Args:
            config: Destination connection settings
        """
        self.config = config

    def describe(self) -> str:
        return self.config.describe()

    def _create_connection(self) -> psycopg2.extensions.connection:
        """Create a new PostgreSQL connection."""
        conn = psycopg2.connect(
            host=self.config.host,
            port=self.config.port,
            dbname=self.config.database,
            user=self.config.user,
            password=self.config.password,
            sslmode=self.config.sslmode,
            connect_timeout=self.config.connect_timeout,
            options=f"-c statement_timeout={self.config.statement_timeout_ms}",
            application_name="staff-card-sync",
        )
        # Transactions are opened explicitly by ScopedTransaction
        conn.autocommit = True
        return conn

    def _ping(self, conn: psycopg2.extensions.connection) -> None:
        with conn.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()

    def _close_connection(self, conn: psycopg2.extensions.connection) -> None:
        """Close PostgreSQL connection."""
        if conn is not None and not conn.closed:
            conn.close()

    def _get_db_type(self) -> str:
        return "postgresql"
