"""
Pytest configuration and fixtures for staff card sync tests.
Provides in-memory databases and pre-wired components.
"""

import os
from datetime import UTC, datetime

import pytest
from prometheus_client import CollectorRegistry

from cardsync.loader import AtomicLoader
from cardsync.metrics import SyncMetrics
from cardsync.orchestrator import SyncOrchestrator
from cardsync.reader import SourceReader
from cardsync.schema import SchemaReconciler

from fakes import FakePostgres, FakePostgresProvider, FakeSource, source_row


FIXED_NOW = datetime(2024, 3, 15, 9, 30, 0, tzinfo=UTC)


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


@pytest.fixture(autouse=True)
def set_test_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set default test environment variables if not already set."""
    defaults = {
        "VAULT_ADDR": "http://localhost:8200",
        "VAULT_TOKEN": "dev-root-token",
    }

    for key, value in defaults.items():
        if key not in os.environ:
            monkeypatch.setenv(key, value)


@pytest.fixture
def clock():
    """Clock returning a fixed instant."""
    return lambda: FIXED_NOW


@pytest.fixture
def sample_rows() -> list[tuple]:
    return [
        source_row(1, "0001", "Ivanov", "Ivan", "Ivanovich"),
        source_row(1, "0002", "Ivanov", "Ivan", "Ivanovich"),
        source_row(2, "0100", "Petrova", "Anna", None),
        source_row(3, "0200", None, None, None),
    ]


@pytest.fixture
def source(sample_rows) -> FakeSource:
    return FakeSource(sample_rows)


@pytest.fixture
def pg() -> FakePostgres:
    return FakePostgres()


@pytest.fixture
def pg_provider(pg) -> FakePostgresProvider:
    return FakePostgresProvider(pg)


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry) -> SyncMetrics:
    return SyncMetrics(registry=registry)


@pytest.fixture
def orchestrator(source, pg_provider, clock, metrics) -> SyncOrchestrator:
    return SyncOrchestrator(
        reader=SourceReader(source),
        reconciler=SchemaReconciler(clock=clock),
        loader=AtomicLoader(),
        destination=pg_provider,
        clock=clock,
        metrics=metrics,
        lock_key=42,
    )
