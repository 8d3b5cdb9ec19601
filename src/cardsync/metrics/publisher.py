"""
Prometheus exposition for the scheduled sync process.

``MetricsPublisher`` serves a registry on ``/metrics``; ``ApplicationInfo``
adds build and uptime series so dashboards can tell restarts from stalls.
"""

import errno
import logging
import time
from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Gauge, Info, start_http_server

logger = logging.getLogger(__name__)


class MetricsPublisher:
    """HTTP endpoint for a Prometheus registry, started at most once."""

    def __init__(self, port: int = 9091, registry: Optional[CollectorRegistry] = None):
        self.port = port
        self.registry = registry or REGISTRY
        self._server_started = False

    def start(self) -> None:
        """
        Start serving in a daemon thread.

        Raises:
            RuntimeError: If the port is already bound
            OSError: Any other socket error
        """
        if self._server_started:
            logger.warning(f"Metrics endpoint already serving on :{self.port}")
            return

        try:
            start_http_server(self.port, registry=self.registry)
        except OSError as e:
            if e.errno == errno.EADDRINUSE or "Address already in use" in str(e):
                raise RuntimeError(f"Metrics port {self.port} is already in use") from e
            raise

        self._server_started = True
        logger.info(f"Serving Prometheus metrics on :{self.port}/metrics")

    def is_started(self) -> bool:
        return self._server_started


class ApplicationInfo:
    """``cardsync_build_info`` and ``cardsync_uptime_seconds``."""

    def __init__(
        self,
        app_name: str = "staff-card-sync",
        version: str = "1.0.0",
        registry: Optional[CollectorRegistry] = None,
    ):
        self.registry = registry or REGISTRY
        self._start_time = time.time()

        self.build = Info("cardsync_build", "Service name and version", registry=self.registry)
        self.build.info({"name": app_name, "version": version})

        self.uptime = Gauge(
            "cardsync_uptime_seconds",
            "Seconds since the process started",
            registry=self.registry,
        )
        self.uptime.set_function(self.get_uptime)

    def get_uptime(self) -> float:
        return time.time() - self._start_time
