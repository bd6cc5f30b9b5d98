"""
Shared self-metrics for the Micro Stats Exporter.

These series describe the exporter itself (discovery cycles, decode failures,
HTTP traffic). The per-service statistics gathered from the bus are exposed
by the custom collector in ``service_micro_exporter.app.exporters``.
"""

from typing import Any, Dict, Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram, Info


class ExporterMetrics:
    """Centralized self-metrics for the exporter."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else REGISTRY
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up the exporter's own metrics."""

        # Service info
        self._metrics["exporter_info"] = Info(
            "micro_exporter",
            "Exporter information",
            registry=self.registry
        )
        self._metrics["exporter_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # Discovery metrics
        self._metrics["poll_cycles_total"] = Counter(
            "micro_exporter_poll_cycles_total",
            "Total discovery cycles by outcome",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["poll_duration_seconds"] = Histogram(
            "micro_exporter_poll_duration_seconds",
            "Discovery cycle duration in seconds",
            registry=self.registry
        )

        self._metrics["poll_ticks_skipped_total"] = Counter(
            "micro_exporter_poll_ticks_skipped_total",
            "Discovery ticks skipped because the previous cycle overran",
            registry=self.registry
        )

        self._metrics["decode_errors_total"] = Counter(
            "micro_exporter_decode_errors_total",
            "Stats responses dropped because they could not be decoded",
            registry=self.registry
        )

        self._metrics["services_discovered"] = Gauge(
            "micro_exporter_services_discovered",
            "Service instances in the current snapshot",
            registry=self.registry
        )

        self._metrics["snapshot_timestamp_seconds"] = Gauge(
            "micro_exporter_snapshot_timestamp_seconds",
            "Unix time the current snapshot was captured",
            registry=self.registry
        )

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "micro_exporter_http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "micro_exporter_http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_poll_cycle(self, outcome: str, duration: float):
        """Record the outcome and duration of one discovery cycle."""
        self._metrics["poll_cycles_total"].labels(outcome=outcome).inc()
        self._metrics["poll_duration_seconds"].observe(duration)

    def record_skipped_ticks(self, count: int):
        """Record discovery ticks dropped after an overrun."""
        if count > 0:
            self._metrics["poll_ticks_skipped_total"].inc(count)

    def record_decode_error(self):
        """Record one undecodable stats response."""
        self._metrics["decode_errors_total"].inc()

    def record_snapshot(self, service_count: int, captured_at: float):
        """Record the size and capture time of a published snapshot."""
        self._metrics["services_discovered"].set(service_count)
        self._metrics["snapshot_timestamp_seconds"].set(captured_at)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)


def get_exporter_metrics(service_name: str, registry: Optional[CollectorRegistry] = None) -> ExporterMetrics:
    """Get the self-metrics container for a service."""
    return ExporterMetrics(service_name, registry)
