"""
Vault access for database credentials.

Credentials for both ends of the sync are stored in the KV v2 engine:

    secret/database/firebird     host, port?, database, username, password
    secret/database/postgresql   host, port?, database, username, password

Only reads are performed. Anything Vault returns other than a populated
secret surfaces as ``ValueError`` or ``requests.RequestException`` so the
CLI can turn it into a configuration error.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

SECRET_PATH_PATTERN = re.compile(r"^[A-Za-z0-9_\-/]+$")

# sys/health answers 429 for unsealed standbys and 472/473 for DR/perf
# replicas; all of them can serve reads
HEALTHY_STATUS_CODES = frozenset({200, 429, 472, 473})


@dataclass(frozen=True)
class CredentialSpec:
    """Where a database's secret lives and what it must contain."""

    path: str
    default_port: int
    required: tuple[str, ...] = ("host", "database", "username", "password")


CREDENTIAL_SPECS = {
    "firebird": CredentialSpec("secret/database/firebird", default_port=3050),
    "postgresql": CredentialSpec("secret/database/postgresql", default_port=5432),
}


def validate_secret_path(secret_path: str) -> None:
    """Reject empty paths, traversal and characters outside the allow-list."""
    if not isinstance(secret_path, str) or not secret_path:
        raise ValueError("secret_path must be a non-empty string")
    if ".." in secret_path or secret_path.startswith("//"):
        raise ValueError(f"Invalid secret_path {secret_path!r}: path traversal is not allowed")
    if not SECRET_PATH_PATTERN.match(secret_path):
        raise ValueError(
            f"Invalid secret_path {secret_path!r}: only letters, digits, '/', '_' and '-' are allowed"
        )


def kv2_data_path(secret_path: str) -> str:
    """``secret/database/x`` -> ``secret/data/database/x``."""
    if "/data/" in secret_path:
        return secret_path
    mount, _, rest = secret_path.partition("/")
    return f"{mount}/data/{rest}" if rest else f"{mount}/data"


class VaultClient:
    """Read-only KV v2 client over the Vault HTTP API."""

    def __init__(
        self,
        vault_addr: Optional[str] = None,
        vault_token: Optional[str] = None,
        namespace: Optional[str] = None,
        timeout: int = 10,
    ):
        """
        Args:
            vault_addr: Server address (default: VAULT_ADDR)
            vault_token: Token (default: VAULT_TOKEN)
            namespace: Enterprise namespace (default: VAULT_NAMESPACE)
            timeout: Request timeout in seconds

        Raises:
            ValueError: If the address or token is missing
        """
        vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        vault_token = vault_token or os.getenv("VAULT_TOKEN")
        if not vault_addr:
            raise ValueError("Vault address not provided: set VAULT_ADDR or pass vault_addr")
        if not vault_token:
            raise ValueError("Vault token not provided: set VAULT_TOKEN or pass vault_token")

        self.vault_addr = vault_addr.rstrip("/")
        self.vault_token = vault_token
        self.namespace = namespace or os.getenv("VAULT_NAMESPACE")
        self.timeout = timeout

        self.headers = {"X-Vault-Token": vault_token, "Content-Type": "application/json"}
        if self.namespace:
            self.headers["X-Vault-Namespace"] = self.namespace

        logger.info(f"Vault client targeting {self.vault_addr}")

    def get_secret(self, secret_path: str) -> Dict[str, Any]:
        """
        Read the latest version of a KV v2 secret.

        Raises:
            ValueError: Invalid path, missing secret, or empty secret
            requests.RequestException: Transport or HTTP error
        """
        validate_secret_path(secret_path)
        data_path = kv2_data_path(secret_path)

        response = requests.get(
            f"{self.vault_addr}/v1/{data_path}",
            headers=self.headers,
            timeout=self.timeout,
        )
        if response.status_code == 404:
            raise ValueError(f"Secret not found at path: {data_path}")
        response.raise_for_status()

        data = response.json().get("data", {}).get("data", {})
        if not data:
            raise ValueError(f"No data found in secret at path: {data_path}")
        return data

    def get_database_credentials(self, database_type: str) -> Dict[str, Any]:
        """
        Credentials for ``"firebird"`` or ``"postgresql"``, with the
        driver's default port filled in when the secret has none.
        """
        spec = CREDENTIAL_SPECS.get(database_type)
        if spec is None:
            raise ValueError(
                f"Unsupported database_type {database_type!r}; "
                f"expected one of: {', '.join(CREDENTIAL_SPECS)}"
            )

        credentials = dict(self.get_secret(spec.path))
        missing = [name for name in spec.required if name not in credentials]
        if missing:
            raise ValueError(f"Missing required fields in secret: {', '.join(missing)}")

        credentials.setdefault("port", spec.default_port)
        logger.info(f"Fetched {database_type} credentials from Vault")
        return credentials

    def health_check(self) -> bool:
        try:
            response = requests.get(f"{self.vault_addr}/v1/sys/health", timeout=5)
        except requests.RequestException as e:
            logger.error(f"Vault health check failed: {e}")
            return False
        return response.status_code in HEALTHY_STATUS_CODES
