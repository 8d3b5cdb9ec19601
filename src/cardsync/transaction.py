"""
Scoped transactions for the PostgreSQL destination.

``ScopedTransaction`` rolls back on every exit from its block unless
``commit()`` was reached, whether the block returns normally, returns
early, or raises.

Usage:
    with ScopedTransaction(conn) as tx:
        tx.execute("DELETE FROM staff_cards")
        tx.execute(insert_sql, params)
        tx.commit()
"""

import logging
from typing import Any

import psycopg2

from .errors import CommitFailed, TransactionStartFailed

logger = logging.getLogger(__name__)


class ScopedTransaction:
    """Transaction guard over a DB-API connection."""

    def __init__(self, connection: Any, name: str = "transaction"):
        """
        Args:
            connection: psycopg2 connection (autocommit is switched off for the block)
            name: Label used in log messages
        """
        self.connection = connection
        self.name = name
        self.cursor: Any = None
        self._committed = False
        self._previous_autocommit: bool | None = None

    @property
    def committed(self) -> bool:
        return self._committed

    def __enter__(self) -> "ScopedTransaction":
        try:
            self._previous_autocommit = self.connection.autocommit
            self.connection.autocommit = False
            self.cursor = self.connection.cursor()
        except psycopg2.Error as e:
            self._restore_autocommit()
            raise TransactionStartFailed(
                f"Could not start {self.name}: {e}", cause=e
            ) from e

        logger.debug(f"Started {self.name}")
        return self

    def execute(self, query: str, params: Any = None) -> None:
        self.cursor.execute(query, params)

    def fetchone(self) -> Any:
        return self.cursor.fetchone()

    def fetchall(self) -> list[Any]:
        return self.cursor.fetchall()

    def commit(self) -> None:
        """
        Commit the transaction.

        Raises:
            CommitFailed: If the commit raises; the transaction is rolled back
        """
        try:
            self.connection.commit()
        except psycopg2.Error as e:
            logger.error(f"Error committing {self.name}: {e}")
            self._rollback()
            # Nothing left to roll back on exit
            self._committed = True
            raise CommitFailed(f"Error committing {self.name}: {e}", cause=e) from e

        self._committed = True
        logger.debug(f"Committed {self.name}")

    def _rollback(self) -> None:
        try:
            self.connection.rollback()
            logger.warning(f"{self.name} rolled back")
        except psycopg2.Error as e:
            # The server discards the transaction when the session ends
            logger.error(f"Error rolling back {self.name}: {e}")

    def _restore_autocommit(self) -> None:
        if self._previous_autocommit is None:
            return
        try:
            self.connection.autocommit = self._previous_autocommit
        except psycopg2.Error as e:
            logger.warning(f"Could not restore autocommit after {self.name}: {e}")

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if not self._committed:
                self._rollback()
        finally:
            if self.cursor is not None:
                try:
                    self.cursor.close()
                except psycopg2.Error as e:
                    logger.warning(f"Error closing cursor after {self.name}: {e}")
            self._restore_autocommit()
        return False
