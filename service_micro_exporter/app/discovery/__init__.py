"""
Discovery package.

Finds live NATS micro services and keeps the latest view of their
statistics:

- models: Immutable ServiceIdentity, EndpointStat, ServiceStat and Snapshot.
- stats_client: One fleet-wide stats request per cycle, partial results ok.
- store: Atomically swapped snapshot reference for concurrent scrapes.
- poller: Fixed-rate background loop that rebuilds and publishes snapshots.
"""

from .models import EndpointStat, ServiceIdentity, ServiceStat, Snapshot
from .poller import DiscoveryPoller, PollerState
from .stats_client import StatsClient
from .store import SnapshotStore

__all__ = [
    "EndpointStat",
    "ServiceIdentity",
    "ServiceStat",
    "Snapshot",
    "DiscoveryPoller",
    "PollerState",
    "StatsClient",
    "SnapshotStore",
]
