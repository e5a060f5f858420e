"""
Prometheus metrics collection.

Each collector owns its registry, so the API process and the standalone
worker (or several test apps) never clash on metric names.
"""

import time
from typing import Optional

import structlog
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info

logger = structlog.get_logger(__name__)


class MetricsCollector:
    """
    Centralized metrics collection for LogRelay.

    Keep metrics simple,
    use in-memory counters, let Prometheus handle storage.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()

        # Service info
        self.service_info = Info(
            "logrelay_service",
            "LogRelay service information",
            registry=self.registry,
        )
        self.service_info.info({
            "version": "0.1.0",
            "service": "logrelay",
        })

        # Ingestion metrics
        self.submissions_accepted_total = Counter(
            "submissions_accepted_total",
            "Total submissions normalized and written to the buffer",
            ["source"],
            registry=self.registry,
        )

        self.submissions_rejected_total = Counter(
            "submissions_rejected_total",
            "Total submissions rejected",
            ["reason"],
            registry=self.registry,
        )

        self.submission_text_bytes = Histogram(
            "submission_text_bytes",
            "Size of accepted text payloads in bytes",
            buckets=[16, 64, 256, 1024, 4096, 16384, 65536, 262144, 1048576],
            registry=self.registry,
        )

        # Worker metrics
        self.records_processed_total = Counter(
            "records_processed_total",
            "Total delivered records by outcome",
            ["outcome"],
            registry=self.registry,
        )

        self.record_failures_total = Counter(
            "record_failures_total",
            "Total record failures by processing state",
            ["state"],
            registry=self.registry,
        )

        self.processing_delay_ms = Histogram(
            "processing_delay_milliseconds",
            "Artificial processing delay applied per record",
            buckets=[0, 50, 250, 500, 1000, 2500, 5000, 7500, 10000],
            registry=self.registry,
        )

        self.redactions_total = Counter(
            "redactions_total",
            "Total sensitive fragments redacted",
            registry=self.registry,
        )

        self.redelivered_records_total = Counter(
            "redelivered_records_total",
            "Total records received more than once",
            registry=self.registry,
        )

        # System metrics
        self.uptime_seconds = Gauge(
            "uptime_seconds",
            "Service uptime in seconds",
            registry=self.registry,
        )

        # Track start time for uptime calculation
        self._start_time = time.time()

    def record_accepted(self, source: str, text_bytes: int) -> None:
        """Record a submission written to the buffer."""
        self.submissions_accepted_total.labels(source=source).inc()
        self.submission_text_bytes.observe(text_bytes)

    def record_rejected(self, reason: str) -> None:
        """Record a rejected submission (error code as reason)."""
        self.submissions_rejected_total.labels(reason=reason).inc()

    def record_processed(self, delay_ms: int, redactions: int, receive_count: int = 1) -> None:
        """Record a successfully persisted record."""
        self.records_processed_total.labels(outcome="succeeded").inc()
        self.processing_delay_ms.observe(delay_ms)
        if redactions:
            self.redactions_total.inc(redactions)
        if receive_count > 1:
            self.redelivered_records_total.inc()

    def record_failed(self, state: str) -> None:
        """Record a record that failed in ``state``."""
        self.records_processed_total.labels(outcome="failed").inc()
        self.record_failures_total.labels(state=state).inc()

    def update_system_metrics(self) -> None:
        """Update system-level metrics."""
        self.uptime_seconds.set(time.time() - self._start_time)
