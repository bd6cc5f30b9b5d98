"""
Unit tests for the NATS micro stats client.
"""

import json
from datetime import datetime, timezone

import nats.errors
import pytest

from shared.errors import DecodeError, TransportUnavailableError
from shared.metrics import ExporterMetrics
from service_micro_exporter.app.discovery.stats_client import (
    STATS_SUBJECT,
    StatsClient,
    decode_stats_response,
)

from conftest import FakeMsg, FakeNatsConnection, endpoint_payload, stats_payload


class TestDecodeStatsResponse:
    """Test cases for decoding stats responses."""

    def test_decode_valid_response(self):
        """A well formed response maps onto ServiceStat."""
        stat = decode_stats_response(stats_payload(
            endpoints=[endpoint_payload(num_requests=4, num_errors=1, processing_time=2_000_000_000, last_error="boom")]
        ))

        assert stat.identity.name == "orders"
        assert stat.identity.instance_id == "inst-1"
        assert stat.identity.version == "1.0.0"
        assert stat.started_at == datetime(2025, 1, 2, 3, 4, 5, 123456, tzinfo=timezone.utc)

        endpoint = stat.endpoints[0]
        assert endpoint.name == "process"
        assert endpoint.subject == "orders.process"
        assert endpoint.queue_group == "q"
        assert endpoint.requests_total == 4
        assert endpoint.errors_total == 1
        assert endpoint.processing_time_seconds == 2.0
        assert endpoint.average_processing_time_seconds == 0.5
        assert endpoint.last_error == "boom"

    def test_empty_last_error_is_none(self):
        """Services report no error as an empty string."""
        stat = decode_stats_response(stats_payload())
        assert stat.endpoints[0].last_error is None

    def test_null_endpoints(self):
        """A service without endpoints reports null."""
        body = json.loads(stats_payload())
        body["endpoints"] = None
        stat = decode_stats_response(json.dumps(body).encode())
        assert stat.endpoints == ()

    def test_response_without_type(self):
        """Older services omit the type field."""
        body = json.loads(stats_payload())
        del body["type"]
        assert decode_stats_response(json.dumps(body).encode()).identity.name == "orders"

    @pytest.mark.parametrize("data", [
        b"not json",
        b"",
        b"[]",
        stats_payload(type="io.nats.micro.v1.info_response"),
        stats_payload(instance_id=""),
        stats_payload(started="yesterday"),
        stats_payload(endpoints=[endpoint_payload(num_requests=-1)]),
    ])
    def test_decode_malformed_response(self, data):
        """Malformed responses raise DecodeError."""
        with pytest.raises(DecodeError) as exc_info:
            decode_stats_response(data)
        assert exc_info.value.code == "DECODE_ERROR"

    def test_missing_identity_field(self):
        """Responses without an id cannot be identified."""
        body = json.loads(stats_payload())
        del body["id"]
        with pytest.raises(DecodeError):
            decode_stats_response(json.dumps(body).encode())


class TestStatsClient:
    """Test cases for StatsClient.discover."""

    @pytest.mark.asyncio
    async def test_discover_collects_all_responses(self):
        """Every response inside the window is returned in arrival order."""
        connection = FakeNatsConnection([
            stats_payload(name="orders"),
            stats_payload(name="payments", instance_id="inst-9"),
        ])
        client = StatsClient(connection)

        services = await client.discover(timeout=0.1)

        assert [s.identity.name for s in services] == ["orders", "payments"]

    @pytest.mark.asyncio
    async def test_discover_publishes_on_stats_subject(self, fake_connection):
        """One request goes to the stats subject with the inbox as reply."""
        client = StatsClient(fake_connection)

        await client.discover(timeout=0.05)

        assert len(fake_connection.published) == 1
        subject, payload, reply = fake_connection.published[0]
        assert subject == STATS_SUBJECT
        assert payload == b""
        assert reply.startswith("_INBOX.")

    @pytest.mark.asyncio
    async def test_discover_without_responders(self):
        """No responders is an empty result, not an error."""
        client = StatsClient(FakeNatsConnection([]))
        assert await client.discover(timeout=0.05) == []

    @pytest.mark.asyncio
    async def test_discover_ignores_no_responders_status(self, registry):
        """A 503 status reply from the server is not a decode error."""
        connection = FakeNatsConnection([FakeMsg(b"", headers={"Status": "503"})])
        client = StatsClient(connection, metrics=ExporterMetrics("test", registry))

        services = await client.discover(timeout=0.05)

        assert services == []
        assert client.decode_errors == 0
        assert registry.get_sample_value("micro_exporter_decode_errors_total") == 0.0

    @pytest.mark.asyncio
    async def test_discover_status_reply_alongside_responses(self):
        """Status replies are skipped while real responses are kept."""
        connection = FakeNatsConnection([
            FakeMsg(b"", headers={"Status": "503"}),
            stats_payload(name="orders"),
        ])
        client = StatsClient(connection)

        services = await client.discover(timeout=0.05)

        assert [s.identity.name for s in services] == ["orders"]
        assert client.decode_errors == 0

    @pytest.mark.asyncio
    async def test_discover_skips_and_counts_malformed(self, registry):
        """Malformed responses are dropped while valid ones are kept."""
        connection = FakeNatsConnection([
            b"{broken",
            stats_payload(name="orders"),
            stats_payload(type="bogus"),
        ])
        metrics = ExporterMetrics("test", registry)
        client = StatsClient(connection, metrics=metrics)

        services = await client.discover(timeout=0.1)

        assert [s.identity.name for s in services] == ["orders"]
        assert client.decode_errors == 2
        assert registry.get_sample_value("micro_exporter_decode_errors_total") == 2.0

    @pytest.mark.asyncio
    async def test_discover_discards_stragglers(self):
        """Responses arriving after the timeout are not returned."""
        connection = FakeNatsConnection([
            stats_payload(name="orders"),
            (stats_payload(name="late", instance_id="inst-2"), 0.3),
        ])
        client = StatsClient(connection)

        services = await client.discover(timeout=0.05)

        assert [s.identity.name for s in services] == ["orders"]

    @pytest.mark.asyncio
    async def test_discover_removes_inbox(self, fake_connection):
        """The reply subscription is removed once the window closes."""
        client = StatsClient(fake_connection)

        await client.discover(timeout=0.05)

        assert fake_connection.subscriptions[0].unsubscribed is True

    @pytest.mark.asyncio
    async def test_subscribe_failure_is_transport_error(self, fake_connection):
        """A closed connection surfaces as TransportUnavailableError."""
        fake_connection.subscribe_error = nats.errors.ConnectionClosedError()
        client = StatsClient(fake_connection)

        with pytest.raises(TransportUnavailableError) as exc_info:
            await client.discover(timeout=0.05)

        assert exc_info.value.code == "TRANSPORT_UNAVAILABLE"
        assert exc_info.value.details["subject"] == STATS_SUBJECT

    @pytest.mark.asyncio
    async def test_publish_failure_is_transport_error(self, fake_connection):
        """Publish failures also unsubscribe the inbox."""
        fake_connection.publish_error = nats.errors.OutboundBufferLimitError()
        client = StatsClient(fake_connection)

        with pytest.raises(TransportUnavailableError):
            await client.discover(timeout=0.05)

        assert fake_connection.subscriptions[0].unsubscribed is True
