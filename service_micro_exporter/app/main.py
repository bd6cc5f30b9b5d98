"""
Micro Stats Exporter service.
"""

from typing import Dict, Optional

from fastapi.responses import HTMLResponse
from prometheus_client import CollectorRegistry
from pydantic import ValidationError

from shared.base_service import BaseService
from shared.config import ExporterConfig

from .bus.connection import connect
from .discovery.poller import DiscoveryPoller
from .discovery.store import SnapshotStore
from .exporters.collector import MicroStatsCollector

INDEX_PAGE = (
    "<html>"
    "<head><title>Micro Stats Exporter</title></head>"
    "<body>\n<h1>Micro Stats Exporter</h1>"
    "<p><a href='/metrics'>Metrics</a></p>"
    "</body>\n</html>"
)


class MicroExporterService(BaseService):
    """Exporter service implementation."""

    def __init__(
        self,
        config: Optional[ExporterConfig] = None,
        registry: Optional[CollectorRegistry] = None,
        connection=None
    ):
        super().__init__("micro_exporter", config, registry)

        # Bus connection is opened on start unless one is supplied
        self.connection = connection
        self._owns_connection = connection is None

        # Initialize components
        self.store = SnapshotStore()
        self.collector = MicroStatsCollector(self.store)
        self.registry.register(self.collector)
        self.poller: Optional[DiscoveryPoller] = None

        self._setup_exporter_routes()

    def _setup_exporter_routes(self):
        """Set up exporter-specific routes."""

        @self.app.get("/", response_class=HTMLResponse)
        async def index():
            """Landing page."""
            return INDEX_PAGE

        @self.app.get("/services")
        async def list_services():
            """Current snapshot as JSON."""
            snapshot, generation = self.store.view()
            return {
                "captured_at": snapshot.captured_at.isoformat() if snapshot.captured_at else None,
                "generation": generation,
                "total": len(snapshot.services),
                "services": [
                    {
                        "name": service.identity.name,
                        "version": service.identity.version,
                        "instance_id": service.identity.instance_id,
                        "started_at": service.started_at.isoformat(),
                        "endpoints": [
                            {
                                "name": endpoint.name,
                                "subject": endpoint.subject,
                                "queue_group": endpoint.queue_group,
                                "requests_total": endpoint.requests_total,
                                "errors_total": endpoint.errors_total,
                                "processing_time_seconds": endpoint.processing_time_seconds,
                                "average_processing_time_seconds": endpoint.average_processing_time_seconds,
                                "last_error": endpoint.last_error,
                            }
                            for endpoint in service.endpoints
                        ],
                    }
                    for service in snapshot.sorted_services()
                ],
            }

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check exporter dependencies."""
        connected = self.connection is not None and getattr(self.connection, "is_connected", False)
        return {
            "nats": "ok" if connected else "error",
            "poller": "ok" if self.poller and self.poller.is_running() else "error"
        }

    async def start(self):
        """Connect to the bus and start the discovery poller."""
        await super().start()

        if self.connection is None:
            self.connection = await connect(self.config)

        self.poller = DiscoveryPoller(
            self.connection,
            interval_seconds=self.config.scrape_interval,
            discovery_timeout=self.config.discovery_timeout,
            store=self.store,
            metrics=self.metrics
        )
        await self.poller.start()

        self.logger.info("Exporter components started", port=self.port)

    async def stop(self):
        """Stop the poller and release the bus connection."""
        if self.poller:
            await self.poller.stop()

        if self._owns_connection and self.connection is not None:
            await self.connection.close()
            self.connection = None

        self.logger.info("Exporter components stopped")


def create_app(config: Optional[ExporterConfig] = None):
    """Create exporter application."""
    service = MicroExporterService(config)
    return service.app


def main():
    """Process entry point."""
    try:
        config = ExporterConfig()
    except ValidationError as e:
        raise SystemExit(f"Invalid configuration:\n{e}")

    service = MicroExporterService(config)
    service.logger.info("Starting server", host=config.host, port=config.port)
    service.run()


if __name__ == "__main__":
    main()
