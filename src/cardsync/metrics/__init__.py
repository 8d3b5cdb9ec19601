"""
Prometheus metrics for the staff card sync service

Usage:
    from cardsync.metrics import MetricsPublisher, SyncMetrics

    publisher = MetricsPublisher(port=9091)
    publisher.start()

    sync_metrics = SyncMetrics()
    sync_metrics.record_success(record_count=1200, duration=4.2)
"""

from .publisher import ApplicationInfo, MetricsPublisher
from .sync import SyncMetrics

__all__ = [
    "MetricsPublisher",
    "ApplicationInfo",
    "SyncMetrics",
]
