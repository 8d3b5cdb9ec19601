"""
Configuration for the staff card sync service.

Configuration is an immutable value built once (from the environment, an
optional .env file, or Vault) and passed explicitly to each component.
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from dotenv import load_dotenv

from .errors import ConfigurationError
from .sql_safety import validate_identifier

logger = logging.getLogger(__name__)

DEFAULT_FIREBIRD_ODBC_DRIVER = "Firebird/InterBase(r) driver"
DEFAULT_LOCK_KEY = 7_310_424_001


@dataclass(frozen=True)
class SourceConfig:
    """Connection settings for the legacy Firebird source."""

    host: str = "localhost"
    port: int = 3050
    database: str = ""
    user: str = "sysdba"
    password: str = field(default="masterkey", repr=False)
    charset: str = "UTF8"
    driver: str = DEFAULT_FIREBIRD_ODBC_DRIVER
    login_timeout: int = 10
    query_timeout: int = 300

    def connection_string(self) -> str:
        """Build the ODBC connection string for the Firebird driver."""
        return (
            f"DRIVER={{{self.driver}}};"
            f"DBNAME={self.host}/{self.port}:{self.database};"
            f"UID={self.user};"
            f"PWD={self.password};"
            f"CHARSET={self.charset};"
        )

    def describe(self) -> str:
        return f"{self.user}@{self.host}:{self.port}/{self.database}"


@dataclass(frozen=True)
class DestinationConfig:
    """Connection settings and table location for the PostgreSQL destination."""

    host: str = "localhost"
    port: int = 5432
    database: str = "cards_service"
    user: str = "postgres"
    password: str = field(default="", repr=False)
    sslmode: str = "disable"
    connect_timeout: int = 10
    statement_timeout_ms: int = 300_000
    schema: str = "public"
    table: str = "staff_cards"

    def __post_init__(self) -> None:
        try:
            validate_identifier(self.schema)
            validate_identifier(self.table)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def describe(self) -> str:
        return f"{self.user}@{self.host}:{self.port}/{self.database}"


@dataclass(frozen=True)
class SyncConfig:
    """Complete configuration for a sync service instance."""

    source: SourceConfig = field(default_factory=SourceConfig)
    destination: DestinationConfig = field(default_factory=DestinationConfig)
    lock_key: int = DEFAULT_LOCK_KEY


def _get(environ: Mapping[str, str], key: str, default: str) -> str:
    # Empty values count as unset
    value = environ.get(key)
    return value if value else default


def _get_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from e


def load_config(
    environ: Mapping[str, str] | None = None,
    dotenv_path: str | None = None,
) -> SyncConfig:
    """
    Build configuration from environment variables.

    Args:
        environ: Mapping to read from (default: os.environ after loading .env)
        dotenv_path: Optional .env file path; only used when environ is None

    Returns:
        Immutable SyncConfig

    Raises:
        ConfigurationError: If a numeric value or identifier is malformed
    """
    if environ is None:
        if load_dotenv(dotenv_path):
            logger.info(f"Loaded environment from {dotenv_path or '.env'}")
        else:
            logger.warning(".env file not found, using process environment")
        environ = os.environ

    # FIREBIRD_charset is the spelling used by existing deployments
    charset = environ.get("FIREBIRD_CHARSET") or _get(
        environ, "FIREBIRD_charset", "UTF8"
    )

    source = SourceConfig(
        host=_get(environ, "FIREBIRD_HOST", "localhost"),
        port=_get_int(environ, "FIREBIRD_PORT", 3050),
        database=_get(environ, "FIREBIRD_DB", ""),
        user=_get(environ, "FIREBIRD_USER", "sysdba"),
        password=_get(environ, "FIREBIRD_PASSWORD", "masterkey"),
        charset=charset,
        driver=_get(environ, "FIREBIRD_ODBC_DRIVER", DEFAULT_FIREBIRD_ODBC_DRIVER),
        login_timeout=_get_int(environ, "SOURCE_LOGIN_TIMEOUT", 10),
        query_timeout=_get_int(environ, "SOURCE_QUERY_TIMEOUT", 300),
    )

    destination = DestinationConfig(
        host=_get(environ, "POSTGRES_HOST", "localhost"),
        port=_get_int(environ, "POSTGRES_PORT", 5432),
        database=_get(environ, "POSTGRES_DB", "cards_service"),
        user=_get(environ, "POSTGRES_USER", "postgres"),
        password=_get(environ, "POSTGRES_PASSWORD", ""),
        sslmode=_get(environ, "POSTGRES_SSLMODE", "disable"),
        connect_timeout=_get_int(environ, "POSTGRES_CONNECT_TIMEOUT", 10),
        statement_timeout_ms=_get_int(
            environ, "POSTGRES_STATEMENT_TIMEOUT_MS", 300_000
        ),
        schema=_get(environ, "POSTGRES_SCHEMA", "public"),
        table=_get(environ, "STAFF_CARDS_TABLE", "staff_cards"),
    )

    if not source.database:
        logger.warning("FIREBIRD_DB is not set; source connections will fail")

    return SyncConfig(
        source=source,
        destination=destination,
        lock_key=_get_int(environ, "SYNC_LOCK_KEY", DEFAULT_LOCK_KEY),
    )


def load_config_from_vault(vault_client: Any, base: SyncConfig) -> SyncConfig:
    """
    Overlay database credentials fetched from Vault onto a base configuration.

    Args:
        vault_client: VaultClient instance
        base: Configuration supplying non-secret settings

    Returns:
        New SyncConfig with Vault credentials applied
    """
    source_creds = vault_client.get_database_credentials("firebird")
    target_creds = vault_client.get_database_credentials("postgresql")

    source = replace(
        base.source,
        host=source_creds["host"],
        port=int(source_creds.get("port", base.source.port)),
        database=source_creds["database"],
        user=source_creds["username"],
        password=source_creds["password"],
    )
    destination = replace(
        base.destination,
        host=target_creds["host"],
        port=int(target_creds.get("port", base.destination.port)),
        database=target_creds["database"],
        user=target_creds["username"],
        password=target_creds["password"],
    )

    logger.info("Applied database credentials from Vault")
    return replace(base, source=source, destination=destination)
