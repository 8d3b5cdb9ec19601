"""
Transactional full-replace load into the destination table.

Delete-all and insert-all happen inside one transaction, so readers see
either the previous row set or the new one, never a partial mix. Rows go
through a server-side prepared INSERT, planned once per load.
"""

import logging
import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import psycopg2
from opentelemetry import trace

from .errors import WriteFailed
from .models import StaffCardRecord
from .sql_safety import quote_schema_table
from .tracing import add_span_attributes, trace_operation
from .transaction import ScopedTransaction

logger = logging.getLogger(__name__)


INSERT_COLUMNS = (
    "id_staff",
    "identifier",
    "last_name",
    "first_name",
    "middle_name",
    "status",
    "info",
    "updated_at",
)


def record_params(record: StaffCardRecord, synced_at: datetime) -> tuple:
    """Bind parameters for one record, in INSERT_COLUMNS order."""
    return (
        record.staff_id,
        record.card_identifier,
        record.last_name,
        record.first_name,
        record.middle_name,
        record.status,
        record.info,
        synced_at,
    )


class AtomicLoader:
    """Replaces the destination table contents in a single transaction."""

    def __init__(
        self,
        schema: str = "public",
        table: str = "staff_cards",
        progress_every: int = 100,
    ):
        """
        Initialize atomic loader.

        Args:
            schema: Destination schema
            table: Destination table
            progress_every: Log progress after this many inserts
        """
        self.qualified_table = quote_schema_table(schema, table)
        self.progress_every = progress_every
        self.delete_sql = f"DELETE FROM {self.qualified_table}"
        self.latest_sql = f"SELECT MAX(updated_at) FROM {self.qualified_table}"
        # Server-side placeholders; the body of a PREPARE statement
        self.insert_sql = (
            f"INSERT INTO {self.qualified_table} "
            f"({', '.join(INSERT_COLUMNS)}) "
            f"VALUES ({', '.join(f'${i}' for i in range(1, len(INSERT_COLUMNS) + 1))})"
        )

    def latest_synced_at(self, connection: Any) -> datetime | None:
        """
        Newest ``updated_at`` currently stored, or None for an empty table.

        Raises:
            WriteFailed: If the query fails
        """
        try:
            with connection.cursor() as cursor:
                cursor.execute(self.latest_sql)
                (latest,) = cursor.fetchone()
        except psycopg2.Error as e:
            logger.error(f"Error reading previous sync timestamp: {e}")
            raise WriteFailed(f"Error reading previous sync timestamp: {e}", cause=e) from e
        return latest

    def replace_all(
        self,
        connection: Any,
        records: Sequence[StaffCardRecord],
        synced_at: datetime,
    ) -> int:
        """
        Replace every destination row with ``records``.

        Rows are inserted in input order with no deduplication, each stamped
        with ``synced_at``.

        Args:
            connection: Destination connection
            records: Full record set for this run
            synced_at: Sync generation timestamp

        Returns:
            Number of rows written

        Raises:
            TransactionStartFailed: If the transaction cannot be opened
            WriteFailed: If the delete or any insert fails; rolled back
            CommitFailed: If the commit fails; rolled back
        """
        with trace_operation(
            "sync.load",
            kind=trace.SpanKind.CLIENT,
            table=self.qualified_table,
            record_count=len(records),
        ):
            with ScopedTransaction(connection, name="load transaction") as tx:
                logger.info("Clearing existing data...")
                try:
                    tx.execute(self.delete_sql)
                except psycopg2.Error as e:
                    logger.error(f"Error clearing table: {e}")
                    raise WriteFailed(f"Error clearing table: {e}", cause=e) from e

                written = self._insert_all(tx, records, synced_at)

                tx.commit()

            add_span_attributes(rows_written=written)
            logger.info(f"Committed {written} records stamped {synced_at.isoformat()}")
            return written

    def _insert_all(
        self,
        tx: ScopedTransaction,
        records: Sequence[StaffCardRecord],
        synced_at: datetime,
    ) -> int:
        # Unique per load: a failed load leaves its statement behind until the
        # session ends
        statement = f"cardsync_insert_{uuid.uuid4().hex[:12]}"
        execute_sql = f"EXECUTE {statement} ({', '.join(['%s'] * len(INSERT_COLUMNS))})"

        try:
            tx.execute(f"PREPARE {statement} AS {self.insert_sql}")
        except psycopg2.Error as e:
            logger.error(f"Error preparing insert statement: {e}")
            raise WriteFailed(f"Error preparing insert statement: {e}", cause=e) from e

        written = 0
        for index, record in enumerate(records):
            try:
                tx.execute(execute_sql, record_params(record, synced_at))
            except psycopg2.Error as e:
                logger.error(
                    f"Error inserting data (ID_STAFF: {record.staff_id}, "
                    f"IDENTIFIER: {record.card_identifier}): {e}"
                )
                raise WriteFailed(
                    f"Error inserting data at row {index}: {e}",
                    row_index=index,
                    staff_id=record.staff_id,
                    card_identifier=record.card_identifier,
                    cause=e,
                ) from e

            written += 1
            if written % self.progress_every == 0:
                logger.info(f"Inserted {written} records...")

        try:
            tx.execute(f"DEALLOCATE {statement}")
        except psycopg2.Error as e:
            raise WriteFailed(f"Error releasing insert statement: {e}", cause=e) from e

        return written
