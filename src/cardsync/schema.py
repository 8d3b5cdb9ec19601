"""
Destination schema reconciliation.

Makes sure the destination table carries every required column before a
load. A table missing any of them is archived under a timestamped name and
replaced by a fresh, empty table.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import psycopg2
from opentelemetry import trace

from .errors import SchemaInspectionFailed, SchemaMigrationFailed, SyncError
from .sql_safety import MAX_IDENTIFIER_LENGTH, quote_identifier, quote_schema_table
from .tracing import add_span_attributes, trace_operation
from .transaction import ScopedTransaction

logger = logging.getLogger(__name__)


REQUIRED_COLUMNS = (
    "id_staff",
    "identifier",
    "last_name",
    "first_name",
    "middle_name",
    "status",
    "info",
    "updated_at",
)

TABLE_EXISTS_QUERY = """
    SELECT EXISTS (
        SELECT 1 FROM information_schema.tables
        WHERE table_schema = %s AND table_name = %s
    )
"""

COLUMNS_QUERY = """
    SELECT column_name
    FROM information_schema.columns
    WHERE table_schema = %s AND table_name = %s
"""

CREATE_TABLE_TEMPLATE = """
    CREATE TABLE {table} (
        id_staff BIGINT NOT NULL,
        identifier TEXT NOT NULL,
        last_name VARCHAR(255),
        first_name VARCHAR(255),
        middle_name VARCHAR(255),
        status VARCHAR(50),
        info VARCHAR(50),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
"""

# Unnamed so PostgreSQL picks a name that cannot clash with archived tables
CREATE_INDEX_TEMPLATE = "CREATE INDEX ON {table} (identifier)"

ARCHIVE_SUFFIX_FORMAT = "%Y%m%d_%H%M%S"


@dataclass(frozen=True)
class SchemaResult:
    """Outcome of a reconciliation pass."""

    created: bool = False
    archived_table: str | None = None


def is_stale(existing_columns: set[str]) -> bool:
    """A table is stale unless its columns are a superset of REQUIRED_COLUMNS."""
    return not set(REQUIRED_COLUMNS).issubset(existing_columns)


class SchemaReconciler:
    """Checks and migrates the destination table shape."""

    def __init__(
        self,
        schema: str = "public",
        table: str = "staff_cards",
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize schema reconciler.

        Args:
            schema: Destination schema
            table: Destination table
            clock: Source of the archive timestamp (default: current UTC time)
        """
        self.schema = schema
        self.table = table
        self.qualified_table = quote_schema_table(schema, table)
        self.clock = clock or (lambda: datetime.now(UTC))

    def inspect(self, connection: Any) -> set[str] | None:
        """
        Read the destination table's column names.

        Returns:
            Column names, or None when the table does not exist

        Raises:
            SchemaInspectionFailed: If the catalog queries fail
        """
        try:
            with connection.cursor() as cursor:
                cursor.execute(TABLE_EXISTS_QUERY, (self.schema, self.table))
                (exists,) = cursor.fetchone()
                if not exists:
                    return None

                cursor.execute(COLUMNS_QUERY, (self.schema, self.table))
                return {row[0] for row in cursor.fetchall()}
        except psycopg2.Error as e:
            logger.error(f"Error checking table structure for {self.qualified_table}: {e}")
            raise SchemaInspectionFailed(
                f"Error checking table structure: {e}", cause=e
            ) from e

    def ensure_schema(self, connection: Any) -> SchemaResult:
        """
        Make the destination table match the required shape.

        Running this against a correct table performs reads only.

        Args:
            connection: Destination connection in autocommit mode

        Returns:
            SchemaResult describing what changed

        Raises:
            SchemaInspectionFailed: If the table cannot be inspected
            SchemaMigrationFailed: If archiving or creation fails; nothing changes
        """
        with trace_operation(
            "sync.reconcile", kind=trace.SpanKind.CLIENT, table=self.qualified_table
        ):
            columns = self.inspect(connection)

            if columns is not None and not is_stale(columns):
                logger.info(f"Table '{self.table}' already exists with correct structure")
                return SchemaResult()

            if columns is not None:
                missing = sorted(set(REQUIRED_COLUMNS) - columns)
                logger.warning(
                    f"Table '{self.table}' is missing columns {missing}, archiving it"
                )

            result = self._migrate(connection, archive=columns is not None)
            add_span_attributes(
                created=result.created, archived_table=result.archived_table
            )
            return result

    def _migrate(self, connection: Any, archive: bool) -> SchemaResult:
        archived_table = None
        try:
            with ScopedTransaction(connection, name="schema migration") as tx:
                if archive:
                    archived_table = self._archive_name(tx)
                    tx.execute(
                        f"ALTER TABLE {self.qualified_table} "
                        f"RENAME TO {quote_identifier(archived_table)}"
                    )
                    logger.info(f"Old table renamed to {archived_table}")

                tx.execute(CREATE_TABLE_TEMPLATE.format(table=self.qualified_table))
                tx.execute(CREATE_INDEX_TEMPLATE.format(table=self.qualified_table))
                tx.commit()
        except psycopg2.Error as e:
            logger.error(f"Table migration failed for {self.qualified_table}: {e}")
            raise SchemaMigrationFailed(f"Table initialization error: {e}", cause=e) from e
        except SyncError as e:
            raise SchemaMigrationFailed(f"Table initialization error: {e.detail}", cause=e) from e

        logger.info(f"Created new table '{self.table}'")
        return SchemaResult(created=True, archived_table=archived_table)

    def _archive_name(self, tx: ScopedTransaction) -> str:
        """Pick a timestamped archive name that does not exist yet."""
        suffix = f"_old_{self.clock().strftime(ARCHIVE_SUFFIX_FORMAT)}"
        base = f"{self.table[:MAX_IDENTIFIER_LENGTH - len(suffix) - 3]}{suffix}"

        candidate = base
        attempt = 1
        while True:
            tx.execute(TABLE_EXISTS_QUERY, (self.schema, candidate))
            (exists,) = tx.fetchone()
            if not exists:
                return candidate
            attempt += 1
            candidate = f"{base}_{attempt}"
