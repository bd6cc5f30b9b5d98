"""
Prometheus collector for NATS micro service statistics.
"""

from typing import Iterable, List

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from shared.logging import get_logger
from ..discovery.store import SnapshotStore

SERVICE_LABELS = ["service", "instance_id", "version"]
ENDPOINT_LABELS = SERVICE_LABELS + ["endpoint"]


class MicroStatsCollector(Collector):
    """Exposes the current snapshot as Prometheus metric families.

    ``describe`` declares the fixed family set once at registration.
    ``collect`` runs on every scrape and reads only the published snapshot:
    one sample per service instance and endpoint, labelled by service name,
    instance id, version and endpoint name.
    """

    def __init__(self, store: SnapshotStore):
        self.store = store
        self.logger = get_logger("micro_exporter.exporters.collector")

    def describe(self) -> Iterable[Metric]:
        return self._families()

    def collect(self) -> Iterable[Metric]:
        snapshot = self.store.current()
        (
            requests,
            errors,
            processing_time,
            average_processing_time,
            started,
        ) = families = self._families()

        seen = set()
        for service in snapshot.sorted_services():
            identity = service.identity
            service_labels = [identity.name, identity.instance_id, identity.version]
            started.add_metric(service_labels, service.started_at.timestamp())

            for endpoint in service.endpoints:
                labels = service_labels + [endpoint.name]
                if tuple(labels) in seen:
                    self.logger.warning(
                        "Skipping duplicate endpoint series",
                        service=identity.name,
                        instance_id=identity.instance_id,
                        endpoint=endpoint.name
                    )
                    continue
                seen.add(tuple(labels))

                requests.add_metric(labels, endpoint.requests_total)
                errors.add_metric(labels, endpoint.errors_total)
                processing_time.add_metric(labels, endpoint.processing_time_seconds)
                average_processing_time.add_metric(labels, endpoint.average_processing_time_seconds)

        return families

    def _families(self) -> List[Metric]:
        return [
            CounterMetricFamily(
                "nats_micro_endpoint_requests_total",
                "Requests handled by a micro service endpoint",
                labels=ENDPOINT_LABELS
            ),
            CounterMetricFamily(
                "nats_micro_endpoint_errors_total",
                "Errors returned by a micro service endpoint",
                labels=ENDPOINT_LABELS
            ),
            CounterMetricFamily(
                "nats_micro_endpoint_processing_time_seconds_total",
                "Total time a micro service endpoint spent processing requests",
                labels=ENDPOINT_LABELS
            ),
            GaugeMetricFamily(
                "nats_micro_endpoint_average_processing_time_seconds",
                "Average processing time per request of a micro service endpoint",
                labels=ENDPOINT_LABELS
            ),
            GaugeMetricFamily(
                "nats_micro_service_started_timestamp_seconds",
                "Unix time the micro service instance started",
                labels=SERVICE_LABELS
            ),
        ]
