"""
Unit tests for sync run orchestration.
"""

from datetime import UTC, datetime, timedelta

import pytest

from cardsync.config import SyncConfig
from cardsync.errors import (
    DestinationUnavailable,
    EmptyExtraction,
    SchemaMigrationFailed,
    SourceQueryFailed,
    SourceUnavailable,
    SyncInProgress,
    WriteFailed,
)
from cardsync.loader import AtomicLoader
from cardsync.models import SyncStage
from cardsync.orchestrator import SyncOrchestrator, build_orchestrator
from cardsync.reader import SourceReader
from cardsync.schema import SchemaReconciler

from fakes import FakeSource, source_row, stored_row

T0 = datetime(2024, 3, 15, 9, 30, 0, tzinfo=UTC)


def runs(registry, status):
    return registry.get_sample_value("sync_runs_total", {"status": status}) or 0


class TestSuccessfulRun:
    """Test the happy path"""

    def test_run_loads_all_records(self, orchestrator, pg, clock):
        summary = orchestrator.run()

        assert summary.record_count == 4
        assert summary.synced_at == clock()
        assert len(pg.rows()) == 4
        assert {row["updated_at"] for row in pg.rows()} == {clock()}
        assert orchestrator.state is SyncStage.DONE
        assert orchestrator.last_summary is summary
        assert orchestrator.last_error is None

    def test_stage_durations_recorded(self, orchestrator):
        summary = orchestrator.run()

        assert set(summary.stage_durations) == {"reading", "reconciling", "loading"}
        assert summary.duration_seconds >= 0

    def test_stage_logs_carry_stage(self, orchestrator, caplog):
        caplog.set_level("INFO", logger="cardsync.orchestrator")

        orchestrator.run()

        started = [r for r in caplog.records if r.getMessage().startswith("Stage ")]
        assert [r.stage for r in started] == ["reading", "reconciling", "loading"]
        assert len({r.run_id for r in started}) == 1

    def test_metrics_on_success(self, orchestrator, registry):
        orchestrator.run()

        assert runs(registry, "success") == 1
        assert registry.get_sample_value("sync_records_written") == 4
        assert registry.get_sample_value("sync_last_success_timestamp_seconds") > 0

    def test_advisory_lock_released(self, orchestrator, pg):
        orchestrator.run()

        assert pg.lock_holders == {}
        assert any("pg_try_advisory_lock" in s for s in pg.statements)
        assert any("pg_advisory_unlock" in s for s in pg.statements)

    def test_destination_connection_closed(self, orchestrator, pg):
        orchestrator.run()

        assert pg.connections and all(conn.closed for conn in pg.connections)

    def test_second_run_replaces_first(self, orchestrator, pg, source):
        orchestrator.run()
        source.rows = [source_row(9, "0900", "New")]

        summary = orchestrator.run()

        assert summary.record_count == 1
        assert [row["identifier"] for row in pg.rows()] == ["0900"]

    def test_stale_table_reported_as_archived(self, orchestrator, pg):
        pg.create_table(columns=("id_staff", "identifier"))

        summary = orchestrator.run()

        assert summary.archived_table == "staff_cards_old_20240315_093000"
        assert summary.to_dict()["archived_table"] == summary.archived_table


class TestFailures:
    """Test stage failures"""

    def test_empty_extraction_never_touches_destination(self, orchestrator, pg, source, registry):
        pg.create_table(rows=[stored_row(1, "KEEP")])
        source.rows = []

        with pytest.raises(EmptyExtraction, match="No data found in Firebird"):
            orchestrator.run()

        assert pg.connections == []
        assert pg.rows() == [stored_row(1, "KEEP")]
        assert orchestrator.state is SyncStage.FAILED
        assert isinstance(orchestrator.last_error, EmptyExtraction)
        assert registry.get_sample_value(
            "sync_stage_failures_total", {"stage": "reading", "error_type": "EmptyExtraction"}
        ) == 1

    def test_source_unavailable(self, orchestrator, source, pg):
        source.fail_connect = True

        with pytest.raises(SourceUnavailable) as exc_info:
            orchestrator.run()

        assert exc_info.value.stage is SyncStage.READING
        assert pg.connections == []

    def test_source_cursor_failure_reported_with_stage(self, orchestrator, source, pg, registry):
        source.fail_cursor = True

        with pytest.raises(SourceQueryFailed) as exc_info:
            orchestrator.run()

        assert exc_info.value.stage is SyncStage.READING
        assert isinstance(orchestrator.last_error, SourceQueryFailed)
        assert pg.connections == []
        assert registry.get_sample_value(
            "sync_stage_failures_total", {"stage": "reading", "error_type": "SourceQueryFailed"}
        ) == 1

    def test_destination_unavailable(self, orchestrator, pg, registry):
        pg.fail_connect = True

        with pytest.raises(DestinationUnavailable, match="PostgreSQL connection error") as exc_info:
            orchestrator.run()

        assert exc_info.value.stage is SyncStage.RECONCILING
        assert runs(registry, "failed") == 1

    def test_schema_failure_skips_load(self, orchestrator, pg):
        pg.fail_create = True

        with pytest.raises(SchemaMigrationFailed):
            orchestrator.run()

        assert not any(s.startswith(("PREPARE", "EXECUTE")) for s in pg.statements)
        assert pg.lock_holders == {}

    def test_write_failure_keeps_previous_generation(self, orchestrator, pg):
        previous = [stored_row(1, "OLD", updated_at=T0 - timedelta(days=1))]
        pg.create_table(rows=previous)
        pg.fail_insert_at = 1

        with pytest.raises(WriteFailed) as exc_info:
            orchestrator.run()

        assert exc_info.value.stage is SyncStage.LOADING
        assert exc_info.value.row_index == 1
        assert pg.rows() == previous
        assert orchestrator.state is SyncStage.FAILED

    def test_unexpected_error_propagates_unchanged(self, pg_provider):
        class BrokenReader:
            def fetch_all(self):
                raise KeyError("surprise")

        orchestrator = SyncOrchestrator(
            BrokenReader(), SchemaReconciler(), AtomicLoader(), pg_provider
        )

        with pytest.raises(KeyError):
            orchestrator.run()

        assert orchestrator.state is SyncStage.FAILED
        assert orchestrator.last_error is None

    def test_failure_then_success(self, orchestrator, pg):
        pg.fail_connect = True
        with pytest.raises(DestinationUnavailable):
            orchestrator.run()

        pg.fail_connect = False
        orchestrator.run()

        assert orchestrator.state is SyncStage.DONE
        assert orchestrator.last_error is None


class TestSerialization:
    """Test that runs never overlap"""

    def test_concurrent_trigger_rejected(self, source, pg_provider, clock, metrics, registry):
        class ReentrantReader(SourceReader):
            nested_error = None

            def fetch_all(self):
                try:
                    orchestrator.run()
                except SyncInProgress as e:
                    self.nested_error = e
                return super().fetch_all()

        reader = ReentrantReader(source)
        orchestrator = SyncOrchestrator(
            reader, SchemaReconciler(clock=clock), AtomicLoader(), pg_provider,
            clock=clock, metrics=metrics,
        )

        summary = orchestrator.run()

        assert summary.record_count == 4
        assert reader.nested_error is not None
        assert reader.nested_error.stage is SyncStage.IDLE
        assert runs(registry, "skipped") == 1
        assert runs(registry, "success") == 1

    def test_lock_held_by_another_process(self, orchestrator, pg, registry):
        pg.create_table(rows=[stored_row(1, "KEEP")])
        other = pg.connect()
        pg.lock_holders[42] = other

        with pytest.raises(SyncInProgress, match="Another process"):
            orchestrator.run()

        assert pg.rows() == [stored_row(1, "KEEP")]
        assert pg.lock_holders == {42: other}
        assert runs(registry, "skipped") == 1
        assert runs(registry, "failed") == 0

    def test_run_lock_released_after_failure(self, orchestrator, source):
        source.fail_connect = True
        with pytest.raises(SourceUnavailable):
            orchestrator.run()

        assert not orchestrator.is_running

    def test_no_lock_key_skips_advisory_lock(self, source, pg_provider, pg):
        orchestrator = SyncOrchestrator(
            SourceReader(source), SchemaReconciler(), AtomicLoader(), pg_provider
        )

        orchestrator.run()

        assert not any("advisory" in s for s in pg.statements)


class TestSyncTimestamps:
    """Test generation timestamps"""

    def test_timestamps_never_go_backwards(self, source, pg_provider, pg):
        times = iter([T0, T0 - timedelta(hours=1)])
        orchestrator = SyncOrchestrator(
            SourceReader(source), SchemaReconciler(clock=lambda: T0), AtomicLoader(),
            pg_provider, clock=lambda: next(times),
        )

        first = orchestrator.run()
        second = orchestrator.run()

        assert second.synced_at == first.synced_at == T0
        assert {row["updated_at"] for row in pg.rows()} == {T0}

    def test_timestamps_advance(self, source, pg_provider):
        times = iter([T0, T0 + timedelta(minutes=5)])
        orchestrator = SyncOrchestrator(
            SourceReader(source), SchemaReconciler(), AtomicLoader(), pg_provider,
            clock=lambda: next(times),
        )

        assert orchestrator.run().synced_at < orchestrator.run().synced_at

    def test_timestamps_never_go_backwards_across_orchestrators(self, source, pg_provider):
        def build(now):
            return SyncOrchestrator(
                SourceReader(source), SchemaReconciler(clock=lambda: now), AtomicLoader(),
                pg_provider, clock=lambda: now, lock_key=42,
            )

        first = build(T0).run()
        second = build(T0 - timedelta(hours=1)).run()

        assert second.synced_at >= first.synced_at
        assert second.synced_at == T0

    def test_stored_timestamp_is_lower_bound(self, orchestrator, pg, clock):
        later = clock() + timedelta(minutes=10)
        pg.create_table(rows=[stored_row(1, "OLD", updated_at=later)])

        summary = orchestrator.run()

        assert summary.synced_at == later
        assert {row["updated_at"] for row in pg.rows()} == {later}

    def test_stored_timestamp_read_under_lock(self, orchestrator, pg):
        orchestrator.run()

        lock = next(i for i, s in enumerate(pg.statements) if "pg_try_advisory_lock" in s)
        latest = next(i for i, s in enumerate(pg.statements) if s.startswith("SELECT MAX(updated_at)"))
        unlock = next(i for i, s in enumerate(pg.statements) if "pg_advisory_unlock" in s)
        assert lock < latest < unlock

    def test_unreadable_stored_timestamp_fails_load(self, orchestrator, pg):
        pg.create_table(rows=[stored_row(1, "KEEP")])
        pg.fail_select = True

        with pytest.raises(WriteFailed, match="previous sync timestamp") as exc_info:
            orchestrator.run()

        assert exc_info.value.stage is SyncStage.LOADING
        assert pg.rows() == [stored_row(1, "KEEP")]


def test_build_orchestrator_wires_configuration():
    pytest.importorskip("pyodbc")

    orchestrator = build_orchestrator(SyncConfig())

    assert orchestrator.lock_key == SyncConfig().lock_key
    assert orchestrator.reconciler.qualified_table == '"public"."staff_cards"'
    assert orchestrator.loader.qualified_table == '"public"."staff_cards"'
    assert orchestrator.state is SyncStage.IDLE
