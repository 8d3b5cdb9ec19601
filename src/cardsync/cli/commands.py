"""
CLI command implementations.

Every command prints a JSON envelope to stdout and returns the process
exit code.
"""

import argparse
import json
import logging
import sys
from typing import Any

from cardsync import __version__
from cardsync.config import SyncConfig
from cardsync.connections.base import ConnectionUnavailable
from cardsync.connections.postgres import PostgresConnectionProvider
from cardsync.errors import CardNotFound, ReadFailed, SyncError
from cardsync.health import check_destination, check_source
from cardsync.locking import advisory_lock
from cardsync.metrics import ApplicationInfo, MetricsPublisher, SyncMetrics
from cardsync.orchestrator import build_orchestrator
from cardsync.repository import StaffCardRepository
from cardsync.responses import error_envelope, success_envelope
from cardsync.scheduler import SyncScheduler, sync_job
from cardsync.schema import SchemaReconciler

logger = logging.getLogger(__name__)


def emit(envelope: dict[str, Any]) -> None:
    json.dump(envelope, sys.stdout, indent=2, ensure_ascii=False, default=str)
    sys.stdout.write("\n")
    sys.stdout.flush()


def _repository(config: SyncConfig) -> StaffCardRepository:
    destination = config.destination
    return StaffCardRepository(
        PostgresConnectionProvider(destination),
        schema=destination.schema,
        table=destination.table,
        database=destination.database,
    )


def cmd_sync(args: argparse.Namespace, config: SyncConfig) -> int:
    """
    Run one full sync

    Args:
        args: Parsed command-line arguments
        config: Service configuration
    """
    orchestrator = build_orchestrator(config)

    try:
        summary = orchestrator.run()
    except SyncError as e:
        emit(error_envelope(e))
        return 1

    emit(success_envelope(summary.to_dict(), f"Updated {summary.record_count} records"))
    return 0


def cmd_schedule(args: argparse.Namespace, config: SyncConfig) -> int:
    """
    Run syncs on an interval or cron schedule until interrupted

    Args:
        args: Parsed command-line arguments
        config: Service configuration
    """
    metrics = None
    if args.metrics_port:
        metrics = SyncMetrics()
        ApplicationInfo(version=__version__)
        MetricsPublisher(port=args.metrics_port).start()

    orchestrator = build_orchestrator(config, metrics=metrics)
    scheduler = SyncScheduler()

    try:
        if args.cron:
            scheduler.add_cron_job(sync_job, args.cron, "staff_card_sync", orchestrator=orchestrator)
        else:
            scheduler.add_interval_job(
                sync_job, args.interval, "staff_card_sync", orchestrator=orchestrator
            )
    except ValueError as e:
        emit(error_envelope(f"Invalid schedule: {e}"))
        return 1

    if args.run_now:
        sync_job(orchestrator)

    for job in scheduler.list_jobs():
        logger.info(f"Job '{job['id']}': {job['trigger']}")

    scheduler.start()
    return 0


def cmd_lookup(args: argparse.Namespace, config: SyncConfig) -> int:
    try:
        record = _repository(config).find_by_identifier(args.card)
    except CardNotFound:
        emit(error_envelope("Card not found"))
        return 1
    except (ValueError, ConnectionUnavailable, ReadFailed) as e:
        emit(error_envelope(e))
        return 1

    emit(success_envelope(record.to_dict(), "Card found"))
    return 0


def cmd_search(args: argparse.Namespace, config: SyncConfig) -> int:
    try:
        records = _repository(config).search(args.term, limit=args.limit)
    except (ValueError, ConnectionUnavailable, ReadFailed) as e:
        emit(error_envelope(e))
        return 1

    emit(
        success_envelope(
            [record.to_dict() for record in records],
            f"Found {len(records)} records",
        )
    )
    return 0


def cmd_stats(args: argparse.Namespace, config: SyncConfig) -> int:
    try:
        stats = _repository(config).stats()
    except (ConnectionUnavailable, ReadFailed) as e:
        emit(error_envelope(e))
        return 1

    emit(success_envelope(stats.to_dict(), "Statistics retrieved"))
    return 0


def cmd_check(args: argparse.Namespace, config: SyncConfig) -> int:
    """
    Check both databases

    Exits non-zero only when the destination is unhealthy; the read side
    keeps working without the source.
    """
    from cardsync.connections.firebird import FirebirdConnectionProvider
    from cardsync.reader import SourceReader

    source = check_source(
        SourceReader(FirebirdConnectionProvider(config.source), charset=config.source.charset)
    )
    destination = check_destination(
        PostgresConnectionProvider(config.destination), config.destination.database
    )

    data = {"source": source.to_dict(), "destination": destination.to_dict()}
    if not destination.healthy:
        emit(error_envelope("Destination database is unavailable", data=data))
        return 1

    message = "All databases reachable" if source.healthy else "Source database unavailable"
    emit(success_envelope(data, message))
    return 0


def cmd_init_schema(args: argparse.Namespace, config: SyncConfig) -> int:
    """Create or migrate the destination table"""
    destination = config.destination
    reconciler = SchemaReconciler(destination.schema, destination.table)

    try:
        with PostgresConnectionProvider(destination).connect() as conn:
            with advisory_lock(conn, config.lock_key):
                result = reconciler.ensure_schema(conn)
    except ConnectionUnavailable as e:
        emit(error_envelope(f"PostgreSQL connection error: {e}"))
        return 1
    except SyncError as e:
        emit(error_envelope(e))
        return 1

    message = "Table created" if result.created else "Table already has the correct structure"
    emit(
        success_envelope(
            {"created": result.created, "archived_table": result.archived_table},
            message,
        )
    )
    return 0
