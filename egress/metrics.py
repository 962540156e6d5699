"""Prometheus metrics for the relay process."""

import logging
from typing import Optional

import psutil
from prometheus_client import CollectorRegistry, Counter, Gauge, REGISTRY

logger = logging.getLogger(__name__)


class EgressMetrics:
    """Gauges describing the relay and counters for apply outcomes."""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        """Initialize metrics.

        Args:
            registry: Registry to register with. Defaults to the global one.
        """
        registry = registry or REGISTRY
        self.process_up = Gauge(
            'egress_process_up',
            'Whether the relay process is running',
            registry=registry
        )
        self.cpu_usage = Gauge(
            'egress_process_cpu_percent',
            'Relay CPU usage in percent',
            registry=registry
        )
        self.memory_usage = Gauge(
            'egress_process_memory_bytes',
            'Relay resident memory in bytes',
            registry=registry
        )
        self.enabled_destinations = Gauge(
            'egress_enabled_destinations',
            'Destinations in the last applied configuration',
            registry=registry
        )
        self.applies = Counter(
            'egress_apply_total',
            'Configuration applies by outcome', ['outcome'],
            registry=registry
        )
        self._proc: Optional[psutil.Process] = None

    def record_apply(self, outcome: str) -> None:
        """Count one apply attempt."""
        self.applies.labels(outcome=outcome).inc()

    def collect(self, pid: Optional[int]) -> None:
        """Update process gauges for the relay.

        Args:
            pid: PID of the running relay, or None if it is down
        """
        if pid is None:
            self.process_up.set(0)
            self.cpu_usage.set(0)
            self.memory_usage.set(0)
            self._proc = None
            return

        try:
            # Reuse the Process object so cpu_percent measures an interval
            if self._proc is None or self._proc.pid != pid:
                self._proc = psutil.Process(pid)
            self.cpu_usage.set(self._proc.cpu_percent())
            self.memory_usage.set(self._proc.memory_info().rss)
            self.process_up.set(1)
        except psutil.Error as e:
            logger.error("Error collecting metrics for PID %d: %s", pid, e)
            self.process_up.set(0)
            self._proc = None
