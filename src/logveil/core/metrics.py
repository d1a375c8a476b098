"""
Prometheus metrics collection.

In-memory counters only; Prometheus scrapes and stores them.
"""

import time
from typing import Optional

import structlog
from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Info

from .. import __version__

logger = structlog.get_logger(__name__)


class MetricsCollector:
    """
    Centralized metrics collection for the relay.

    Pass a private CollectorRegistry to keep several collectors (tests)
    from colliding on the global one.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        registry = registry if registry is not None else REGISTRY
        self.registry = registry

        # Service info
        self.service_info = Info(
            "logveil_service",
            "LogVeil relay information",
            registry=registry,
        )
        self.service_info.info({
            "version": __version__,
            "service": "logveil",
        })

        # Pipeline metrics
        self.lines_total = Counter(
            "logveil_lines_total",
            "Input lines processed, by outcome",
            ["outcome"],
            registry=registry,
        )

        self.write_errors_total = Counter(
            "logveil_write_errors_total",
            "Failed writes, by sink",
            ["sink"],
            registry=registry,
        )

        self.read_errors_total = Counter(
            "logveil_read_errors_total",
            "Input stream read errors",
            registry=registry,
        )

        # Rotation metrics
        self.rotations_total = Counter(
            "logveil_rotations_total",
            "Output reopen attempts, by outcome",
            ["outcome"],
            registry=registry,
        )

        self.rotation_reopening = Gauge(
            "logveil_rotation_reopening",
            "1 while the rotation coordinator is stuck reopening outputs",
            registry=registry,
        )

        self.uptime_seconds = Gauge(
            "logveil_uptime_seconds",
            "Relay uptime in seconds",
            registry=registry,
        )

        self._start_time = time.time()

    def record_line(self, outcome: str) -> None:
        """Record one processed input line (internal, external or skipped)."""
        self.lines_total.labels(outcome=outcome).inc()

    def record_write_error(self, sink: str) -> None:
        self.write_errors_total.labels(sink=sink).inc()

    def record_read_error(self) -> None:
        self.read_errors_total.inc()

    def record_rotation(self, success: bool) -> None:
        """Record a reopen attempt and the resulting coordinator state."""
        self.rotations_total.labels(outcome="success" if success else "failure").inc()
        self.rotation_reopening.set(0 if success else 1)

    def update_system_metrics(self) -> None:
        self.uptime_seconds.set(time.time() - self._start_time)
