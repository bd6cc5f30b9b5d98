"""
Data model for discovered service statistics.

Every value here is immutable. A ``Snapshot`` is built once per discovery
cycle and replaced wholesale by the next one; nothing is shared or mutated
across snapshot generations.
"""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple


@dataclass(frozen=True, order=True)
class ServiceIdentity:
    """Uniquely identifies one running service instance."""
    name: str
    version: str
    instance_id: str


@dataclass(frozen=True)
class EndpointStat:
    """Statistics reported for a single service endpoint."""
    name: str
    subject: str
    requests_total: int = 0
    errors_total: int = 0
    processing_time_seconds: float = 0.0
    last_error: Optional[str] = None
    queue_group: Optional[str] = None

    @property
    def average_processing_time_seconds(self) -> float:
        """Mean processing time per request, zero before the first request."""
        if self.requests_total <= 0:
            return 0.0
        return self.processing_time_seconds / self.requests_total


@dataclass(frozen=True)
class ServiceStat:
    """Statistics for one live service instance."""
    identity: ServiceIdentity
    started_at: datetime
    endpoints: Tuple[EndpointStat, ...] = ()


@dataclass(frozen=True)
class Snapshot:
    """One fully built view of all known service statistics."""
    captured_at: Optional[datetime]
    services: Mapping[ServiceIdentity, ServiceStat] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def empty(cls, captured_at: Optional[datetime] = None) -> "Snapshot":
        """Snapshot with no services."""
        return cls(captured_at=captured_at, services=MappingProxyType({}))

    @classmethod
    def from_services(cls, services: Iterable[ServiceStat], captured_at: datetime) -> "Snapshot":
        """Fold discovered services into a snapshot.

        When the same identity is reported more than once the later response
        wins.
        """
        by_identity = {}
        for service in services:
            by_identity[service.identity] = service
        return cls(captured_at=captured_at, services=MappingProxyType(by_identity))

    def sorted_services(self) -> Tuple[ServiceStat, ...]:
        """Services ordered by identity."""
        return tuple(self.services[identity] for identity in sorted(self.services))
