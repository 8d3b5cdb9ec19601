"""
Read side over the mirrored staff card table.

Lookups, substring search and table statistics. Queries run in autocommit
mode, so readers see the last committed sync generation.
"""

import logging
from typing import Any

import psycopg2
from opentelemetry import trace

from .connections.base import BaseConnectionProvider
from .errors import CardNotFound, ReadFailed
from .models import StaffCardRecord, SyncStats
from .sql_safety import escape_like_pattern, quote_schema_table
from .tracing import trace_operation

logger = logging.getLogger(__name__)


SELECT_COLUMNS = (
    "id_staff, identifier, last_name, first_name, middle_name, "
    "status, info, updated_at"
)


def record_from_row(row: Any) -> StaffCardRecord:
    """Build a record from a ``SELECT_COLUMNS`` row; NULLs stay ``None``."""
    staff_id, identifier, last_name, first_name, middle_name, status, info, updated_at = row
    return StaffCardRecord(
        staff_id=staff_id,
        card_identifier=identifier,
        last_name=last_name,
        first_name=first_name,
        middle_name=middle_name,
        status=status,
        info=info,
        synced_at=updated_at,
    )


class StaffCardRepository:
    """Queries the destination table."""

    def __init__(
        self,
        provider: BaseConnectionProvider,
        schema: str = "public",
        table: str = "staff_cards",
        database: str = "",
    ):
        """
        Initialize repository.

        Args:
            provider: Destination connection provider
            schema: Destination schema
            table: Destination table
            database: Database name reported by stats()
        """
        self.provider = provider
        self.database = database
        self.qualified_table = quote_schema_table(schema, table)

        # Duplicate identifiers are kept; the lowest staff id wins
        self.lookup_sql = (
            f"SELECT {SELECT_COLUMNS} FROM {self.qualified_table} "
            f"WHERE identifier = %s ORDER BY id_staff, ctid LIMIT 1"
        )
        self.search_sql = (
            f"SELECT {SELECT_COLUMNS} FROM {self.qualified_table} "
            f"WHERE last_name ILIKE %(pattern)s ESCAPE '\\' "
            f"OR first_name ILIKE %(pattern)s ESCAPE '\\' "
            f"OR middle_name ILIKE %(pattern)s ESCAPE '\\' "
            f"OR identifier ILIKE %(pattern)s ESCAPE '\\' "
            f"ORDER BY last_name, first_name, identifier"
        )
        self.stats_sql = (
            f"SELECT COUNT(*), MAX(updated_at) FROM {self.qualified_table}"
        )

    def _query(self, operation: str, sql: str, params: Any = None) -> list[Any]:
        with trace_operation(
            f"repository.{operation}",
            kind=trace.SpanKind.CLIENT,
            table=self.qualified_table,
        ):
            with self.provider.connect() as conn:
                try:
                    with conn.cursor() as cursor:
                        cursor.execute(sql, params)
                        return cursor.fetchall()
                except psycopg2.Error as e:
                    logger.error(f"{operation} query failed: {e}")
                    raise ReadFailed(f"{operation.capitalize()} error: {e}", cause=e) from e

    def find_by_identifier(self, card_identifier: str) -> StaffCardRecord:
        """
        Find the record for an exact card identifier.

        Args:
            card_identifier: Card number to look up

        Returns:
            The first matching record

        Raises:
            ValueError: If card_identifier is empty
            CardNotFound: If no record matches
            ConnectionUnavailable: If the destination cannot be reached
            ReadFailed: If the query fails
        """
        if not card_identifier:
            raise ValueError("Missing 'card' parameter")

        rows = self._query("search", self.lookup_sql, (card_identifier,))
        if not rows:
            raise CardNotFound(card_identifier)
        return record_from_row(rows[0])

    def search(self, term: str, limit: int | None = None) -> list[StaffCardRecord]:
        """
        Case-insensitive substring search over names and identifier.

        Args:
            term: Substring to look for; LIKE wildcards match literally
            limit: Optional maximum number of results

        Returns:
            Matching records ordered by last name, first name, identifier
        """
        if not term:
            raise ValueError("Search term must not be empty")

        sql = self.search_sql
        params: dict[str, Any] = {"pattern": f"%{escape_like_pattern(term)}%"}
        if limit is not None:
            if limit < 1:
                raise ValueError("limit must be positive")
            sql = f"{sql} LIMIT %(limit)s"
            params["limit"] = limit

        records = [record_from_row(row) for row in self._query("search", sql, params)]
        logger.debug(f"Search for {term!r} returned {len(records)} records")
        return records

    def stats(self) -> SyncStats:
        """
        Row count and last sync time of the mirrored table.

        Returns:
            SyncStats; ``last_synced_at`` is None when the table is empty
        """
        rows = self._query("stats", self.stats_sql)
        total, last_synced_at = rows[0]
        return SyncStats(
            total_records=int(total),
            last_synced_at=last_synced_at,
            database=self.database,
        )
