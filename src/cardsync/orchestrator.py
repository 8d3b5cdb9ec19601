"""
Sync run orchestration.

Sequences extraction, schema reconciliation and the atomic load, with at
most one run in flight: an in-process lock rejects concurrent triggers in
the same service, and a PostgreSQL advisory lock held on the destination
connection rejects runs from other processes.

State machine:
    idle -> reading -> reconciling -> loading -> done
    any state -> failed (carrying the originating stage)
"""

import logging
import threading
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from .config import SyncConfig
from .connections.base import BaseConnectionProvider, ConnectionUnavailable
from .errors import DestinationUnavailable, EmptyExtraction, SyncError, SyncInProgress
from .loader import AtomicLoader
from .locking import advisory_lock
from .logging import ContextLogger
from .metrics import SyncMetrics
from .models import StaffCardRecord, SyncStage, SyncSummary
from .reader import SourceReader
from .schema import SchemaReconciler, SchemaResult
from .tracing import trace_operation

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncOrchestrator:
    """Runs one full sync at a time and reports a structured outcome."""

    def __init__(
        self,
        reader: SourceReader,
        reconciler: SchemaReconciler,
        loader: AtomicLoader,
        destination: BaseConnectionProvider,
        *,
        clock: Callable[[], datetime] | None = None,
        metrics: SyncMetrics | None = None,
        lock_key: int | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            reader: Source reader
            reconciler: Destination schema reconciler
            loader: Atomic loader
            destination: Destination connection provider
            clock: Source of sync timestamps (default: current UTC time)
            metrics: Optional Prometheus metrics
            lock_key: PostgreSQL advisory lock key; None disables the
                cross-process lock
        """
        self.reader = reader
        self.reconciler = reconciler
        self.loader = loader
        self.destination = destination
        self.clock = clock or (lambda: datetime.now(UTC))
        self.metrics = metrics
        self.lock_key = lock_key

        self._run_lock = threading.Lock()
        self._state = SyncStage.IDLE
        self._last_synced_at: datetime | None = None
        self.last_error: SyncError | None = None
        self.last_summary: SyncSummary | None = None

    @property
    def state(self) -> SyncStage:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def run(self) -> SyncSummary:
        """
        Execute one sync run.

        Returns:
            SyncSummary with record count, sync timestamp and timings

        Raises:
            SyncInProgress: If another run is in flight
            SyncError: Any stage failure, tagged with its stage
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Sync trigger rejected: a run is already in progress")
            if self.metrics:
                self.metrics.record_skipped()
            raise SyncInProgress("A sync run is already in progress")

        try:
            return self._run_serialized()
        finally:
            self._run_lock.release()

    def _run_serialized(self) -> SyncSummary:
        run_id = uuid.uuid4().hex[:12]
        log = ContextLogger(__name__, run_id=run_id)
        started = time.monotonic()
        stage_durations: dict[str, float] = {}

        log.info("Starting data update process...")
        self.last_error = None

        try:
            with trace_operation("sync.run", run_id=run_id):
                records = self._stage(
                    SyncStage.READING, stage_durations, log, self.reader.fetch_all
                )

                if not records:
                    log.warning("No data found in Firebird")
                    raise EmptyExtraction("No data found in Firebird")

                synced_at, written, schema_result = self._write(
                    records, stage_durations, log
                )
        except SyncError as e:
            self._fail(e, time.monotonic() - started, log)
            raise
        except Exception:
            self._state = SyncStage.FAILED
            log.error("Sync run aborted by unexpected error", exc_info=True)
            raise

        duration = time.monotonic() - started
        summary = SyncSummary(
            record_count=written,
            synced_at=synced_at,
            duration_seconds=duration,
            stage_durations=stage_durations,
            archived_table=schema_result.archived_table,
        )

        self._state = SyncStage.DONE
        self._last_synced_at = synced_at
        self.last_summary = summary
        if self.metrics:
            self.metrics.record_success(written, duration)

        log.info(
            f"Data update completed: {written} records transferred at "
            f"{synced_at.isoformat()} in {duration:.2f}s"
        )
        return summary

    def _write(
        self,
        records: list[StaffCardRecord],
        stage_durations: dict[str, float],
        log: ContextLogger,
    ) -> tuple[datetime, int, SchemaResult]:
        def load(conn: Any) -> tuple[datetime, int]:
            synced_at = self._next_synced_at(self.loader.latest_synced_at(conn))
            return synced_at, self.loader.replace_all(conn, records, synced_at)

        try:
            with self.destination.connect() as conn:
                with advisory_lock(conn, self.lock_key):
                    schema_result = self._stage(
                        SyncStage.RECONCILING,
                        stage_durations,
                        log,
                        lambda: self.reconciler.ensure_schema(conn),
                    )

                    synced_at, written = self._stage(
                        SyncStage.LOADING, stage_durations, log, lambda: load(conn)
                    )
        except ConnectionUnavailable as e:
            raise DestinationUnavailable(
                f"PostgreSQL connection error: {e}", cause=e.cause
            ) from e

        return synced_at, written, schema_result

    def _stage(
        self,
        stage: SyncStage,
        stage_durations: dict[str, float],
        log: ContextLogger,
        func: Callable[[], T],
    ) -> T:
        self._state = stage
        stage_log = log.bind(stage=stage.value)
        stage_log.info(f"Stage {stage.value} started")
        started = time.monotonic()
        try:
            return func()
        finally:
            elapsed = time.monotonic() - started
            stage_log.debug(f"Stage {stage.value} took {elapsed:.3f}s")
            stage_durations[stage.value] = elapsed
            if self.metrics:
                self.metrics.record_stage(stage.value, elapsed)

    def _fail(self, error: SyncError, duration: float, log: ContextLogger) -> None:
        self._state = SyncStage.FAILED
        self.last_error = error
        if self.metrics:
            if isinstance(error, SyncInProgress):
                self.metrics.record_skipped()
            else:
                self.metrics.record_failure(
                    error.stage.value, error.error_type, duration
                )
        log.error(
            f"Sync failed in stage {error.stage.value}: {error.detail}",
            stage=error.stage.value,
            error_type=error.error_type,
        )

    def _next_synced_at(self, stored: datetime | None = None) -> datetime:
        """
        Timestamp for this run, never earlier than the previous run's.

        ``stored`` is the newest timestamp already in the destination, which
        covers runs made by other processes or earlier orchestrators.
        """
        now = self.clock()
        floor = max(
            (t for t in (self._last_synced_at, stored) if t is not None), default=None
        )
        if floor is not None and now < floor:
            logger.warning(
                f"Clock went backwards ({now.isoformat()} < "
                f"{floor.isoformat()}), reusing previous timestamp"
            )
            return floor
        return now


def build_orchestrator(
    config: SyncConfig,
    metrics: SyncMetrics | None = None,
) -> SyncOrchestrator:
    """
    Wire an orchestrator with the Firebird and PostgreSQL providers.

    Args:
        config: Service configuration
        metrics: Optional Prometheus metrics

    Returns:
        Ready-to-run SyncOrchestrator
    """
    from .connections.firebird import FirebirdConnectionProvider
    from .connections.postgres import PostgresConnectionProvider

    destination = config.destination

    return SyncOrchestrator(
        reader=SourceReader(
            FirebirdConnectionProvider(config.source), charset=config.source.charset
        ),
        reconciler=SchemaReconciler(destination.schema, destination.table),
        loader=AtomicLoader(destination.schema, destination.table),
        destination=PostgresConnectionProvider(destination),
        metrics=metrics,
        lock_key=config.lock_key,
    )
