"""
Snapshot store shared by the discovery poller and the metrics collector.
"""

import threading
from typing import NamedTuple

from .models import Snapshot


class StoreView(NamedTuple):
    """A snapshot together with the generation that published it."""

    snapshot: Snapshot
    generation: int


class SnapshotStore:
    """Holds the most recently published snapshot.

    There is a single writer (the poller) and any number of readers (scrapes).
    Each publish replaces one immutable ``StoreView`` reference. Readers load
    that reference without locking, so they never wait on each other or on a
    discovery cycle, and never see a snapshot that is still being built.
    """

    def __init__(self):
        self._publish_lock = threading.Lock()
        self._view = StoreView(Snapshot.empty(), 0)

    def publish(self, snapshot: Snapshot) -> None:
        """Replace the current snapshot."""
        # Serializes writers only; readers go through the single reference
        with self._publish_lock:
            self._view = StoreView(snapshot, self._view.generation + 1)

    def view(self) -> StoreView:
        """Return the current snapshot and its generation as one consistent pair."""
        return self._view

    def current(self) -> Snapshot:
        """Return the current snapshot, empty before the first publish."""
        return self._view.snapshot

    @property
    def generation(self) -> int:
        """Number of snapshots published so far."""
        return self._view.generation
