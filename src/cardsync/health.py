"""
Connectivity checks for the source and destination databases.

Checks never raise; failures are reported in the returned HealthStatus.
"""

import logging
from dataclasses import dataclass
from typing import Any

import psycopg2

from .connections.base import BaseConnectionProvider, ConnectionUnavailable
from .errors import SyncError
from .reader import SourceReader

logger = logging.getLogger(__name__)


DATABASE_EXISTS_QUERY = "SELECT EXISTS(SELECT 1 FROM pg_database WHERE datname = %s)"


@dataclass(frozen=True)
class HealthStatus:
    name: str
    healthy: bool
    detail: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "healthy": self.healthy, "detail": self.detail}


def check_source(reader: SourceReader) -> HealthStatus:
    """
    Connect to the source, ping it and verify the extraction relations exist.

    Args:
        reader: Source reader wrapping the Firebird provider
    """
    try:
        missing = reader.check_relations()
    except SyncError as e:
        logger.error(f"Firebird health check failed: {e.detail}")
        return HealthStatus("firebird", False, e.detail)

    if missing:
        detail = f"Missing relations: {', '.join(missing)}"
        logger.error(f"Firebird health check failed: {detail}")
        return HealthStatus("firebird", False, detail)

    logger.info("Firebird connection successful")
    return HealthStatus("firebird", True, "Connection successful")


def check_destination(provider: BaseConnectionProvider, database: str) -> HealthStatus:
    """
    Connect to the destination, ping it and verify the database exists.

    Args:
        provider: PostgreSQL connection provider
        database: Database name expected in pg_database
    """
    try:
        with provider.connect() as conn:
            with conn.cursor() as cursor:
                cursor.execute(DATABASE_EXISTS_QUERY, (database,))
                (exists,) = cursor.fetchone()
    except ConnectionUnavailable as e:
        logger.error(f"PostgreSQL health check failed: {e}")
        return HealthStatus("postgresql", False, str(e))
    except psycopg2.Error as e:
        logger.error(f"PostgreSQL health check failed: {e}")
        return HealthStatus("postgresql", False, f"Error checking database: {e}")

    if not exists:
        detail = f"Database {database} does not exist"
        logger.error(detail)
        return HealthStatus("postgresql", False, detail)

    logger.info("PostgreSQL connection successful")
    return HealthStatus("postgresql", True, "Connection successful")
