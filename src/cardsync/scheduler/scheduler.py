"""
APScheduler wrapper that runs the sync on an interval or cron schedule.

Every job is registered with ``max_instances=1`` and ``coalesce=True``:
a fire time that arrives while a run is still in progress is dropped, and
fire times missed while the process was busy collapse into one run.
"""

import logging
from typing import Any, Callable, Dict, List

from apscheduler.job import Job
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

CRON_FIELDS = ("minute", "hour", "day", "month", "day_of_week")


def interval_trigger(seconds: int, timezone: str = "UTC") -> IntervalTrigger:
    if seconds <= 0:
        raise ValueError(f"Interval must be a positive number of seconds, got {seconds}")
    return IntervalTrigger(seconds=seconds, timezone=timezone)


def cron_trigger(expression: str, timezone: str = "UTC") -> CronTrigger:
    """
    Build a trigger from a standard 5-field crontab line.

    ``"0 2 * * *"`` runs nightly at 02:00, ``"*/15 * * * *"`` every quarter
    hour.
    """
    fields = expression.split()
    if len(fields) != len(CRON_FIELDS):
        raise ValueError(
            f"Cron expression must have 5 parts ({' '.join(CRON_FIELDS)}), got {expression!r}"
        )
    return CronTrigger(timezone=timezone, **dict(zip(CRON_FIELDS, fields)))


class SyncScheduler:
    """Registers sync jobs and runs them until interrupted."""

    def __init__(self, scheduler: BaseScheduler | None = None, timezone: str = "UTC"):
        """
        Args:
            scheduler: APScheduler instance (default: a BlockingScheduler)
            timezone: Timezone cron and interval triggers are evaluated in
        """
        self.timezone = timezone
        self.scheduler = scheduler or BlockingScheduler(timezone=timezone)
        self.jobs: Dict[str, Job] = {}

    def _register(self, job_func: Callable, trigger: Any, job_id: str, kwargs: dict) -> None:
        self.jobs[job_id] = self.scheduler.add_job(
            job_func,
            trigger=trigger,
            id=job_id,
            kwargs=kwargs,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    def add_interval_job(self, job_func: Callable, interval_seconds: int, job_id: str, **kwargs) -> None:
        self._register(job_func, interval_trigger(interval_seconds, self.timezone), job_id, kwargs)
        logger.info(f"Job '{job_id}' runs every {interval_seconds}s")

    def add_cron_job(self, job_func: Callable, cron_expression: str, job_id: str, **kwargs) -> None:
        self._register(job_func, cron_trigger(cron_expression, self.timezone), job_id, kwargs)
        logger.info(f"Job '{job_id}' runs on cron '{cron_expression}' ({self.timezone})")

    def remove_job(self, job_id: str) -> None:
        self.scheduler.remove_job(job_id)
        self.jobs.pop(job_id, None)
        logger.info(f"Job '{job_id}' removed")

    def start(self) -> None:
        """Run the scheduler in the calling thread until Ctrl-C or SIGTERM."""
        logger.info(f"Scheduler starting with {len(self.jobs)} job(s)")
        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Scheduler interrupted")
            self.stop()

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler stopped")

    def list_jobs(self) -> List[Dict[str, Any]]:
        """Id, name, trigger and next fire time of every registered job."""
        jobs = []
        for job in self.scheduler.get_jobs():
            # Pending jobs of a scheduler that has not started have no fire time yet
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "trigger": str(job.trigger),
                "next_run_time": next_run.isoformat() if next_run else None,
            })
        return jobs
