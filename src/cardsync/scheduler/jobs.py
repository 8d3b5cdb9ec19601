"""
Job function for scheduled sync runs.
"""

import logging

from cardsync.errors import SyncError, SyncInProgress
from cardsync.models import SyncSummary
from cardsync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


def sync_job(orchestrator: SyncOrchestrator) -> SyncSummary | None:
    """
    Run one scheduled sync

    Sync failures are logged and swallowed so the schedule keeps running;
    unexpected exceptions propagate to APScheduler, which logs them.

    Args:
        orchestrator: Orchestrator shared by every run of the job

    Returns:
        SyncSummary on success, None when the run failed or was skipped
    """
    logger.info("Starting scheduled sync")

    try:
        summary = orchestrator.run()
    except SyncInProgress as e:
        logger.warning(f"Scheduled sync skipped: {e.detail}")
        return None
    except SyncError as e:
        logger.error(f"Scheduled sync failed: {e}")
        return None

    logger.info(
        f"Scheduled sync complete: {summary.record_count} records "
        f"at {summary.synced_at.isoformat()}"
    )
    return summary
