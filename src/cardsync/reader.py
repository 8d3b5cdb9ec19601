"""
Source extraction from the legacy Firebird database.

Runs the fixed staff/card join and decodes every row into a
``StaffCardRecord``, keeping database NULLs as ``None``.
"""

import logging
from typing import Any

from opentelemetry import trace

from .connections.base import BaseConnectionProvider, ConnectionUnavailable
from .errors import RowDecodeFailed, SourceQueryFailed, SourceUnavailable
from .models import StaffCardRecord
from .tracing import add_span_attributes, trace_operation

logger = logging.getLogger(__name__)


EXTRACTION_QUERY = """
    SELECT s.LAST_NAME, s.FIRST_NAME, s.MIDDLE_NAME, s.ID_STAFF, sc.IDENTIFIER
    FROM STAFF s
    JOIN STAFF_CARDS sc ON s.ID_STAFF = sc.STAFF_ID
    ORDER BY s.ID_STAFF, sc.IDENTIFIER
"""

RELATION_EXISTS_QUERY = (
    "SELECT COUNT(*) FROM RDB$RELATIONS WHERE RDB$RELATION_NAME = ?"
)

REQUIRED_RELATIONS = ("STAFF", "STAFF_CARDS")

PROGRESS_EVERY = 100


def _decode_text(value: Any, charset: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode(_python_codec(charset))
    if isinstance(value, str):
        return value
    raise TypeError(f"expected text, got {type(value).__name__}")


def _python_codec(charset: str) -> str:
    # Firebird charset names that Python spells differently
    aliases = {"UTF8": "utf-8", "WIN1251": "cp1251", "WIN1252": "cp1252", "NONE": "latin-1"}
    return aliases.get(charset.upper(), charset)


def decode_row(row: Any, index: int, charset: str = "UTF8") -> StaffCardRecord:
    """
    Decode one extraction row.

    Row layout follows EXTRACTION_QUERY:
    (last_name, first_name, middle_name, staff_id, identifier).

    Args:
        row: Sequence returned by the driver
        index: Zero-based position of the row in the result set
        charset: Source charset for byte values

    Returns:
        Decoded record with ``synced_at`` unset

    Raises:
        RowDecodeFailed: If the row has the wrong shape, a key is NULL, or a
            value cannot be converted
    """
    try:
        last_name, first_name, middle_name, raw_staff_id, raw_identifier = row
    except (TypeError, ValueError) as e:
        raise RowDecodeFailed(
            f"Row {index} has unexpected shape: {e}", row_index=index, cause=e
        ) from e

    staff_id: Any = raw_staff_id
    identifier: Any = raw_identifier

    try:
        if raw_staff_id is None:
            raise ValueError("ID_STAFF is NULL")
        staff_id = int(raw_staff_id)

        if raw_identifier is None:
            raise ValueError("IDENTIFIER is NULL")
        if isinstance(raw_identifier, (bytes, bytearray)):
            identifier = _decode_text(raw_identifier, charset)
        else:
            identifier = str(raw_identifier)

        return StaffCardRecord(
            staff_id=staff_id,
            card_identifier=identifier,
            last_name=_decode_text(last_name, charset),
            first_name=_decode_text(first_name, charset),
            middle_name=_decode_text(middle_name, charset),
        )
    except (TypeError, ValueError, UnicodeDecodeError, LookupError) as e:
        raise RowDecodeFailed(
            f"Error decoding row {index} (ID_STAFF: {staff_id}, IDENTIFIER: {identifier}): {e}",
            row_index=index,
            staff_id=staff_id,
            card_identifier=identifier,
            cause=e,
        ) from e


class SourceReader:
    """Reads the full staff/card set from the source database."""

    def __init__(
        self,
        provider: BaseConnectionProvider,
        charset: str = "UTF8",
        query: str = EXTRACTION_QUERY,
    ):
        """
        Initialize source reader.

        Args:
            provider: Source connection provider
            charset: Charset used to decode byte values
            query: Extraction query returning
                (last_name, first_name, middle_name, staff_id, identifier)
        """
        self.provider = provider
        self.charset = charset
        self.query = query

    def fetch_all(self) -> list[StaffCardRecord]:
        """
        Extract every staff/card row.

        Returns:
            Records in query order

        Raises:
            SourceUnavailable: If the connection or ping fails
            SourceQueryFailed: If the query or fetching fails
            RowDecodeFailed: If any row cannot be decoded; nothing is returned
        """
        with trace_operation("sync.read", kind=trace.SpanKind.CLIENT, source="firebird"):
            try:
                with self.provider.connect() as conn:
                    records = self._read(conn)
            except ConnectionUnavailable as e:
                logger.error(f"Firebird connection failed: {e}")
                raise SourceUnavailable(str(e), cause=e.cause) from e

            add_span_attributes(record_count=len(records))
            return records

    def _read(self, conn: Any) -> list[StaffCardRecord]:
        logger.info("Fetching data from Firebird...")
        cursor = self._open_cursor(conn)
        try:
            try:
                cursor.execute(self.query)
            except self.provider.driver_errors as e:
                logger.error(f"Firebird query failed: {e}")
                raise SourceQueryFailed(f"Firebird query error: {e}", cause=e) from e

            records: list[StaffCardRecord] = []
            index = 0
            while True:
                try:
                    row = cursor.fetchone()
                except self.provider.driver_errors as e:
                    logger.error(f"Error iterating rows after {index} records: {e}")
                    raise SourceQueryFailed(
                        f"Error iterating rows after {index} records: {e}", cause=e
                    ) from e
                except UnicodeDecodeError as e:
                    raise RowDecodeFailed(
                        f"Error decoding row {index}: {e}", row_index=index, cause=e
                    ) from e

                if row is None:
                    break

                records.append(decode_row(row, index, self.charset))
                index += 1

                if index % PROGRESS_EVERY == 0:
                    logger.info(f"Fetched {index} records...")
        finally:
            try:
                cursor.close()
            except self.provider.driver_errors as e:
                logger.warning(f"Error closing Firebird cursor: {e}")

        logger.info(f"Successfully fetched {len(records)} records from Firebird")
        return records

    def _open_cursor(self, conn: Any) -> Any:
        try:
            return conn.cursor()
        except self.provider.driver_errors as e:
            logger.error(f"Could not open Firebird cursor: {e}")
            raise SourceQueryFailed(f"Could not open Firebird cursor: {e}", cause=e) from e

    def check_relations(self) -> list[str]:
        """
        Verify the source relations used by the extraction query exist.

        Returns:
            Names of missing relations (empty when all are present)

        Raises:
            SourceUnavailable: If the connection or ping fails
            SourceQueryFailed: If the catalog query fails
        """
        try:
            with self.provider.connect() as conn:
                cursor = self._open_cursor(conn)
                try:
                    missing = []
                    for relation in REQUIRED_RELATIONS:
                        cursor.execute(RELATION_EXISTS_QUERY, (relation,))
                        (count,) = cursor.fetchone()
                        if not count:
                            missing.append(relation)
                    return missing
                except self.provider.driver_errors as e:
                    raise SourceQueryFailed(
                        f"Failed to check Firebird relations: {e}", cause=e
                    ) from e
                finally:
                    cursor.close()
        except ConnectionUnavailable as e:
            raise SourceUnavailable(str(e), cause=e.cause) from e
