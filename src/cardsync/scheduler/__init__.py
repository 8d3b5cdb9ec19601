"""
Sync scheduler module

Runs the sync periodically on an interval or cron schedule using
APScheduler, never more than one run at a time.
"""

from .jobs import sync_job
from .scheduler import SyncScheduler

__all__ = [
    "SyncScheduler",
    "sync_job",
]
