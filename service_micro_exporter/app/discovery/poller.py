"""
Background discovery loop.

The poller alternates between two states. It is ``IDLE`` while waiting for
the next tick and ``POLLING`` while a discovery cycle runs. Every cycle ends
by publishing a new snapshot, even when discovery failed: a bus outage
publishes an empty snapshot instead of keeping the previous one, so scrapes
report "no data" rather than data of unknown age. This trades availability
of the last known values for freshness.
"""

import asyncio
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from shared.errors import TransportUnavailableError
from shared.logging import clear_context, get_logger, set_poll_cycle
from shared.metrics import ExporterMetrics

from .models import Snapshot
from .stats_client import STATS_SUBJECT, StatsClient
from .store import SnapshotStore


class PollerState(str, Enum):
    """Discovery poller states."""
    IDLE = "idle"
    POLLING = "polling"


def schedule_next_tick(now: float, last_tick: float, interval: float) -> Tuple[float, int]:
    """Return the next tick time and how many ticks were missed.

    Ticks that passed while a cycle was running are dropped, not queued, so
    at most one discovery cycle is ever in flight.
    """
    next_tick = last_tick + interval
    skipped = 0
    if now > next_tick:
        skipped = int((now - next_tick) // interval) + 1
        next_tick += skipped * interval
    return next_tick, skipped


class DiscoveryPoller:
    """Periodically discovers services and publishes snapshots."""

    def __init__(
        self,
        connection,
        interval_seconds: float,
        discovery_timeout: float,
        store: Optional[SnapshotStore] = None,
        metrics: Optional[ExporterMetrics] = None,
        subject: str = STATS_SUBJECT
    ):
        self.interval_seconds = interval_seconds
        self.discovery_timeout = discovery_timeout
        self.store = store or SnapshotStore()
        self.metrics = metrics
        self.client = StatsClient(connection, subject=subject, metrics=metrics)
        self.logger = get_logger("micro_exporter.discovery.poller")

        self.state = PollerState.IDLE
        self.cycles = 0
        self.skipped_ticks = 0
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        """Start the background discovery loop."""
        if self._task is None:
            self._task = asyncio.create_task(self.run())
            self.logger.info(
                "Discovery poller started",
                interval_seconds=self.interval_seconds,
                discovery_timeout=self.discovery_timeout
            )

    async def stop(self):
        """Stop the loop, abandoning any in-flight cycle."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            self.logger.info("Discovery poller stopped")

    def is_running(self) -> bool:
        """Check if the background loop is running."""
        return self._task is not None and not self._task.done()

    async def run(self):
        """Run discovery cycles on a fixed-rate schedule until cancelled."""
        loop = asyncio.get_running_loop()
        last_tick = loop.time()

        while True:
            await self.poll_once()

            last_tick, skipped = schedule_next_tick(loop.time(), last_tick, self.interval_seconds)
            if skipped:
                self.skipped_ticks += skipped
                if self.metrics:
                    self.metrics.record_skipped_ticks(skipped)
                self.logger.warning(
                    "Discovery cycle overran its interval, skipping ticks",
                    skipped=skipped,
                    interval_seconds=self.interval_seconds
                )

            await asyncio.sleep(max(0.0, last_tick - loop.time()))

    async def poll_once(self) -> Snapshot:
        """Run one discovery cycle and publish its snapshot."""
        self.cycles += 1
        set_poll_cycle(self.cycles)
        self.state = PollerState.POLLING
        start_time = time.monotonic()

        try:
            try:
                services = await self.client.discover(self.discovery_timeout)
                snapshot = Snapshot.from_services(services, captured_at=_utcnow())
                outcome = "success" if services else "empty"

                duplicates = len(services) - len(snapshot.services)
                if duplicates:
                    self.logger.debug("Folded duplicate service identities", duplicates=duplicates)

            except TransportUnavailableError as e:
                self.logger.warning(
                    "Messaging bus unavailable, publishing empty snapshot",
                    error=e.message,
                    details=e.details
                )
                snapshot = Snapshot.empty(captured_at=_utcnow())
                outcome = "transport_unavailable"

            except Exception as e:
                self.logger.error(
                    "Discovery cycle failed, publishing empty snapshot",
                    error=str(e),
                    exc_info=True
                )
                snapshot = Snapshot.empty(captured_at=_utcnow())
                outcome = "error"

            self.store.publish(snapshot)

            duration = time.monotonic() - start_time
            if self.metrics:
                self.metrics.record_poll_cycle(outcome, duration)
                self.metrics.record_snapshot(len(snapshot.services), snapshot.captured_at.timestamp())

            self.logger.info(
                "Discovery cycle complete",
                outcome=outcome,
                services=len(snapshot.services),
                duration_ms=round(duration * 1000, 2)
            )
            return snapshot

        finally:
            self.state = PollerState.IDLE
            clear_context()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
