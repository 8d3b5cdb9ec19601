"""
Cross-process run lock on the destination database.

Anything that reshapes or rewrites the destination table (a sync run,
``cardsync init-schema``) takes the same session-level advisory lock, so
two processes never archive, create or load the table at the same time.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2

from .errors import DestinationUnavailable, SyncInProgress
from .models import SyncStage

logger = logging.getLogger(__name__)


@contextmanager
def advisory_lock(conn: Any, lock_key: int | None) -> Iterator[None]:
    """
    Hold ``pg_try_advisory_lock(lock_key)`` on ``conn`` for the block.

    Args:
        conn: Open psycopg2 connection in autocommit mode
        lock_key: Advisory lock key; None runs the block unlocked

    Raises:
        DestinationUnavailable: If the lock query fails
        SyncInProgress: If another session holds the lock
    """
    if lock_key is None:
        yield
        return

    try:
        with conn.cursor() as cursor:
            cursor.execute("SELECT pg_try_advisory_lock(%s)", (lock_key,))
            (acquired,) = cursor.fetchone()
    except psycopg2.Error as e:
        raise DestinationUnavailable(f"Could not acquire sync lock: {e}", cause=e) from e

    if not acquired:
        raise SyncInProgress(
            f"Another process holds the sync lock ({lock_key})",
            stage=SyncStage.RECONCILING,
        )

    try:
        yield
    finally:
        try:
            with conn.cursor() as cursor:
                cursor.execute("SELECT pg_advisory_unlock(%s)", (lock_key,))
                cursor.fetchone()
        except psycopg2.Error as e:
            # Session-level locks are released when the connection closes
            logger.warning(f"Could not release sync lock {lock_key}: {e}")
