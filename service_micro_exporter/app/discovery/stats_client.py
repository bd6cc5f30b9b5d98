"""
Stats client for NATS micro services.

Publishes one request on the fleet-wide stats subject and gathers every
response that arrives before the discovery timeout. The fleet size is not
known in advance, so the client never waits for a fixed number of replies.
"""

import asyncio
import re
from datetime import datetime
from typing import Any, List, Optional

import nats.errors
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from shared.errors import DecodeError, TransportUnavailableError
from shared.logging import get_logger
from shared.metrics import ExporterMetrics

from .models import EndpointStat, ServiceIdentity, ServiceStat

STATS_SUBJECT = "$SRV.STATS"
STATS_RESPONSE_TYPE = "io.nats.micro.v1.stats_response"
STATUS_HEADER = "Status"

NANOSECONDS = 1_000_000_000

_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


class EndpointStatsPayload(BaseModel):
    """Wire schema of one endpoint inside a stats response."""

    model_config = ConfigDict(extra="ignore")

    name: str
    subject: str
    queue_group: Optional[str] = None
    num_requests: int = Field(default=0, ge=0)
    num_errors: int = Field(default=0, ge=0)
    processing_time: int = Field(default=0, ge=0)
    average_processing_time: int = Field(default=0, ge=0)
    last_error: Optional[str] = None

    def to_stat(self) -> EndpointStat:
        return EndpointStat(
            name=self.name,
            subject=self.subject,
            requests_total=self.num_requests,
            errors_total=self.num_errors,
            processing_time_seconds=self.processing_time / NANOSECONDS,
            last_error=self.last_error or None,
            queue_group=self.queue_group or None,
        )


class StatsResponsePayload(BaseModel):
    """Wire schema of a ``$SRV.STATS`` response."""

    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    name: str = Field(min_length=1)
    id: str = Field(min_length=1)
    version: str
    started: datetime
    endpoints: Optional[List[EndpointStatsPayload]] = None

    @field_validator("type")
    @classmethod
    def _check_type(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value != STATS_RESPONSE_TYPE:
            raise ValueError(f"unexpected response type {value!r}")
        return value

    @field_validator("started", mode="before")
    @classmethod
    def _parse_started(cls, value: Any) -> Any:
        # Go encodes RFC3339 with nanoseconds; datetime holds microseconds
        if isinstance(value, str):
            value = _FRACTION_RE.sub(r"\1", value.strip())
            if value.endswith(("Z", "z")):
                value = value[:-1] + "+00:00"
            return datetime.fromisoformat(value)
        return value

    def to_stat(self) -> ServiceStat:
        return ServiceStat(
            identity=ServiceIdentity(name=self.name, version=self.version, instance_id=self.id),
            started_at=self.started,
            endpoints=tuple(endpoint.to_stat() for endpoint in self.endpoints or ()),
        )


def decode_stats_response(data: bytes) -> ServiceStat:
    """Decode one stats response, raising ``DecodeError`` on malformed input."""
    try:
        payload = StatsResponsePayload.model_validate_json(data)
    except ValidationError as e:
        raise DecodeError(details={"errors": e.error_count(), "reason": str(e)})
    return payload.to_stat()


class StatsClient:
    """Discovers live services and decodes their statistics."""

    def __init__(self, connection, subject: str = STATS_SUBJECT, metrics: Optional[ExporterMetrics] = None):
        self.connection = connection
        self.subject = subject
        self.metrics = metrics
        self.logger = get_logger("micro_exporter.discovery.stats_client")
        self.decode_errors = 0

    async def discover(self, timeout: float) -> List[ServiceStat]:
        """Collect stats responses until ``timeout`` seconds have elapsed.

        Returns the valid responses in arrival order; zero responders yields an
        empty list. Raises ``TransportUnavailableError`` when the bus cannot be
        used for this request.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        inbox = self.connection.new_inbox()

        try:
            subscription = await self.connection.subscribe(inbox)
        except (nats.errors.Error, OSError) as e:
            raise TransportUnavailableError(str(e) or type(e).__name__, {"subject": self.subject})

        services: List[ServiceStat] = []
        try:
            await self.connection.publish(self.subject, b"", reply=inbox)

            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    message = await subscription.next_msg(timeout=remaining)
                except nats.errors.TimeoutError:
                    break

                if message.headers and message.headers.get(STATUS_HEADER):
                    # Server status such as 503 no responders, not a stats reply
                    continue

                try:
                    services.append(decode_stats_response(message.data))
                except DecodeError as e:
                    self._record_decode_error(e)

        except (nats.errors.Error, OSError) as e:
            raise TransportUnavailableError(str(e) or type(e).__name__, {"subject": self.subject})
        finally:
            await self._unsubscribe(subscription)

        self.logger.debug(
            "Discovery window closed",
            subject=self.subject,
            responses=len(services)
        )
        return services

    def _record_decode_error(self, error: DecodeError):
        self.decode_errors += 1
        if self.metrics:
            self.metrics.record_decode_error()
        self.logger.warning(
            "Dropped undecodable stats response",
            subject=self.subject,
            error=error.details.get("reason", error.message)
        )

    async def _unsubscribe(self, subscription):
        try:
            await subscription.unsubscribe()
        except (nats.errors.Error, OSError) as e:
            # Connection already gone; the inbox dies with it
            self.logger.debug("Failed to remove discovery inbox", error=str(e))
