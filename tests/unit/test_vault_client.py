"""
Unit tests for cardsync.vault_client

Covers initialization, secret retrieval, database credential fetching and
health checks. All HTTP calls are mocked.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from cardsync.vault_client import VaultClient


def vault_response(status_code=200, data=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = {"data": {"data": data or {}}}
    if status_code >= 400 and status_code != 404:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return response


@pytest.fixture
def client():
    return VaultClient(vault_addr="https://vault.example.com/", vault_token="test-token")


class TestVaultClientInit:
    """Test VaultClient initialization scenarios"""

    def test_init_with_explicit_parameters(self, client):
        assert client.vault_addr == "https://vault.example.com"
        assert client.headers == {
            "X-Vault-Token": "test-token",
            "Content-Type": "application/json",
        }

    def test_init_from_environment(self, monkeypatch):
        monkeypatch.setenv("VAULT_ADDR", "https://vault.env.com")
        monkeypatch.setenv("VAULT_TOKEN", "env-token")
        monkeypatch.delenv("VAULT_NAMESPACE", raising=False)

        client = VaultClient()

        assert client.vault_addr == "https://vault.env.com"
        assert client.vault_token == "env-token"
        assert "X-Vault-Namespace" not in client.headers

    def test_namespace_header(self):
        client = VaultClient(vault_addr="https://v", vault_token="t", namespace="ops")

        assert client.headers["X-Vault-Namespace"] == "ops"

    def test_missing_address(self, monkeypatch):
        monkeypatch.delenv("VAULT_ADDR", raising=False)

        with pytest.raises(ValueError, match="Vault address not provided"):
            VaultClient(vault_token="t")

    def test_missing_token(self, monkeypatch):
        monkeypatch.delenv("VAULT_TOKEN", raising=False)

        with pytest.raises(ValueError, match="Vault token not provided"):
            VaultClient(vault_addr="https://v")


class TestGetSecret:
    """Test get_secret"""

    @patch("cardsync.vault_client.requests.get")
    def test_inserts_kv2_data_segment(self, mock_get, client):
        mock_get.return_value = vault_response(data={"k": "v"})

        assert client.get_secret("secret/database/firebird") == {"k": "v"}

        url = mock_get.call_args.args[0]
        assert url == "https://vault.example.com/v1/secret/data/database/firebird"
        assert mock_get.call_args.kwargs["headers"]["X-Vault-Token"] == "test-token"

    @patch("cardsync.vault_client.requests.get")
    def test_existing_data_segment_kept(self, mock_get, client):
        mock_get.return_value = vault_response(data={"k": "v"})

        client.get_secret("secret/data/database/firebird")

        assert mock_get.call_args.args[0].endswith("/v1/secret/data/database/firebird")

    @pytest.mark.parametrize("path", ["", "secret/../sys", "//secret", "secret/db;rm"])
    def test_invalid_paths(self, client, path):
        with pytest.raises(ValueError):
            client.get_secret(path)

    @patch("cardsync.vault_client.requests.get")
    def test_not_found(self, mock_get, client):
        mock_get.return_value = vault_response(status_code=404)

        with pytest.raises(ValueError, match="Secret not found"):
            client.get_secret("secret/database/firebird")

    @patch("cardsync.vault_client.requests.get")
    def test_empty_secret(self, mock_get, client):
        mock_get.return_value = vault_response(data={})

        with pytest.raises(ValueError, match="No data found"):
            client.get_secret("secret/database/firebird")

    @patch("cardsync.vault_client.requests.get")
    def test_http_error_propagates(self, mock_get, client):
        mock_get.return_value = vault_response(status_code=403)

        with pytest.raises(requests.HTTPError):
            client.get_secret("secret/database/firebird")


class TestGetDatabaseCredentials:
    """Test get_database_credentials"""

    @patch("cardsync.vault_client.requests.get")
    def test_firebird_default_port(self, mock_get, client):
        mock_get.return_value = vault_response(data={
            "host": "fb", "database": "/db/a.fdb", "username": "u", "password": "p",
        })

        creds = client.get_database_credentials("firebird")

        assert creds["port"] == 3050
        assert creds["host"] == "fb"

    @patch("cardsync.vault_client.requests.get")
    def test_postgresql_default_port(self, mock_get, client):
        mock_get.return_value = vault_response(data={
            "host": "pg", "database": "cards", "username": "u", "password": "p",
        })

        assert client.get_database_credentials("postgresql")["port"] == 5432

    @patch("cardsync.vault_client.requests.get")
    def test_explicit_port_kept(self, mock_get, client):
        mock_get.return_value = vault_response(data={
            "host": "pg", "port": 6432, "database": "cards", "username": "u", "password": "p",
        })

        assert client.get_database_credentials("postgresql")["port"] == 6432

    @patch("cardsync.vault_client.requests.get")
    def test_missing_fields(self, mock_get, client):
        mock_get.return_value = vault_response(data={"host": "pg"})

        with pytest.raises(ValueError, match="database, username, password"):
            client.get_database_credentials("postgresql")

    @pytest.mark.parametrize("database_type", ["", "sqlserver", "../firebird"])
    def test_unsupported_type(self, client, database_type):
        with pytest.raises(ValueError):
            client.get_database_credentials(database_type)


class TestHealthCheck:
    """Test health_check"""

    @pytest.mark.parametrize("status_code,healthy", [(200, True), (429, True), (503, False), (501, False)])
    @patch("cardsync.vault_client.requests.get")
    def test_status_codes(self, mock_get, client, status_code, healthy):
        mock_get.return_value = MagicMock(status_code=status_code)

        assert client.health_check() is healthy

    @patch("cardsync.vault_client.requests.get")
    def test_connection_error(self, mock_get, client):
        mock_get.side_effect = requests.ConnectionError("refused")

        assert client.health_check() is False
