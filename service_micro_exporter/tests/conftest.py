"""
Shared fixtures for exporter tests.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import nats.errors
import pytest
from prometheus_client import CollectorRegistry


class FakeMsg:
    """Stand-in for a received NATS message."""

    def __init__(self, data: bytes, headers: Optional[Dict[str, str]] = None):
        self.data = data
        self.headers = headers


class FakeSubscription:
    """Inbox subscription fed by FakeNatsConnection."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.unsubscribed = False

    async def next_msg(self, timeout: float = 1.0) -> FakeMsg:
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            raise nats.errors.TimeoutError

    async def unsubscribe(self):
        self.unsubscribed = True


class FakeNatsConnection:
    """In-memory NATS connection answering stats requests.

    ``responses`` holds raw payloads, ``(payload, delay_seconds)`` pairs for
    replies that arrive late, or ready-made ``FakeMsg`` objects.
    """

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.published: List[tuple] = []
        self.subscriptions: List[FakeSubscription] = []
        self.subscribe_error: Optional[Exception] = None
        self.publish_error: Optional[Exception] = None
        self.is_connected = True
        self.closed = False
        self._inboxes = 0
        self._by_subject: Dict[str, FakeSubscription] = {}

    def new_inbox(self) -> str:
        self._inboxes += 1
        return f"_INBOX.test.{self._inboxes}"

    async def subscribe(self, subject: str) -> FakeSubscription:
        if self.subscribe_error:
            raise self.subscribe_error
        subscription = FakeSubscription()
        self.subscriptions.append(subscription)
        self._by_subject[subject] = subscription
        return subscription

    async def publish(self, subject: str, payload: bytes = b"", reply: str = ""):
        if self.publish_error:
            raise self.publish_error
        self.published.append((subject, payload, reply))

        subscription = self._by_subject.get(reply)
        if subscription is None:
            return

        loop = asyncio.get_running_loop()
        for response in self.responses:
            if isinstance(response, FakeMsg):
                subscription.queue.put_nowait(response)
            elif isinstance(response, tuple):
                data, delay = response
                loop.call_later(delay, subscription.queue.put_nowait, FakeMsg(data))
            else:
                subscription.queue.put_nowait(FakeMsg(response))

    async def close(self):
        self.closed = True
        self.is_connected = False


def stats_payload(
    name: str = "orders",
    instance_id: str = "inst-1",
    version: str = "1.0.0",
    started: str = "2025-01-02T03:04:05.123456789Z",
    endpoints: Optional[List[Dict[str, Any]]] = None,
    **extra
) -> bytes:
    """Encode a ``$SRV.STATS`` response the way micro services send it."""
    body = {
        "type": "io.nats.micro.v1.stats_response",
        "name": name,
        "id": instance_id,
        "version": version,
        "started": started,
        "metadata": {},
        "endpoints": endpoints if endpoints is not None else [endpoint_payload()],
    }
    body.update(extra)
    return json.dumps(body).encode()


def endpoint_payload(
    name: str = "process",
    subject: str = "orders.process",
    num_requests: int = 10,
    num_errors: int = 0,
    processing_time: int = 5_000_000_000,
    last_error: str = ""
) -> Dict[str, Any]:
    return {
        "name": name,
        "subject": subject,
        "queue_group": "q",
        "num_requests": num_requests,
        "num_errors": num_errors,
        "processing_time": processing_time,
        "average_processing_time": processing_time // num_requests if num_requests else 0,
        "last_error": last_error,
        "data": None,
    }


@pytest.fixture
def registry():
    """Fresh Prometheus registry per test."""
    return CollectorRegistry()


@pytest.fixture
def fake_connection():
    """Fake NATS connection with one responding service."""
    return FakeNatsConnection([stats_payload()])


SETTING_VARIABLES = (
    "ENV", "LOG_LEVEL", "HOST", "PORT", "NAME", "NATS_URLS", "CREDENTIALS_FILE",
    "NATS_JWT", "NATS_SEED", "SCRAPE_INTERVAL", "DISCOVERY_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_settings_environment(monkeypatch):
    """Keep the host environment out of exporter settings."""
    for variable in SETTING_VARIABLES:
        monkeypatch.delenv(variable, raising=False)
