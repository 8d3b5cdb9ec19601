"""
Metrics for sync runs.

Tracks run outcomes, per-stage failures, durations and the size of the
last successful load.
"""

import logging
import time
from typing import Optional

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CollectorRegistry,
    REGISTRY,
)

logger = logging.getLogger(__name__)


class SyncMetrics:
    """Metrics for sync runs"""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize sync metrics

        Args:
            registry: Custom Prometheus registry (default: global REGISTRY)
        """
        self.registry = registry or REGISTRY

        self.sync_runs_total = Counter(
            "sync_runs_total",
            "Total number of sync runs",
            ["status"],
            registry=self.registry,
        )

        self.sync_stage_failures_total = Counter(
            "sync_stage_failures_total",
            "Total number of sync failures by stage and error type",
            ["stage", "error_type"],
            registry=self.registry,
        )

        self.sync_duration_seconds = Histogram(
            "sync_duration_seconds",
            "Duration of sync runs in seconds",
            buckets=(0.5, 1, 5, 10, 30, 60, 120, 300, 600, 1800),
            registry=self.registry,
        )

        self.sync_stage_duration_seconds = Histogram(
            "sync_stage_duration_seconds",
            "Duration of individual sync stages in seconds",
            ["stage"],
            buckets=(0.1, 0.5, 1, 5, 10, 30, 60, 120, 300, 600),
            registry=self.registry,
        )

        self.sync_records_written = Gauge(
            "sync_records_written",
            "Number of records written by the last successful sync",
            registry=self.registry,
        )

        self.sync_last_success_timestamp = Gauge(
            "sync_last_success_timestamp_seconds",
            "Unix timestamp of the last successful sync",
            registry=self.registry,
        )

    def record_stage(self, stage: str, duration: float) -> None:
        self.sync_stage_duration_seconds.labels(stage=stage).observe(duration)

    def record_success(self, record_count: int, duration: float) -> None:
        """
        Record a successful sync run

        Args:
            record_count: Rows written
            duration: Duration in seconds
        """
        self.sync_runs_total.labels(status="success").inc()
        self.sync_duration_seconds.observe(duration)
        self.sync_records_written.set(record_count)
        self.sync_last_success_timestamp.set(time.time())

        logger.debug(
            f"Recorded sync success: records={record_count}, duration={duration:.2f}s"
        )

    def record_failure(self, stage: str, error_type: str, duration: float) -> None:
        """
        Record a failed sync run

        Args:
            stage: Stage the failure originated in
            error_type: Error class name
            duration: Duration in seconds
        """
        self.sync_runs_total.labels(status="failed").inc()
        self.sync_stage_failures_total.labels(stage=stage, error_type=error_type).inc()
        self.sync_duration_seconds.observe(duration)

        logger.debug(
            f"Recorded sync failure: stage={stage}, error={error_type}, "
            f"duration={duration:.2f}s"
        )

    def record_skipped(self) -> None:
        """Record a trigger rejected because another run was in flight"""
        self.sync_runs_total.labels(status="skipped").inc()
