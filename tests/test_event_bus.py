"""
PURPOSE: Tests for the event bus and its Redis relay.
"""

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from aviator_signals.events import bus as bus_module
from aviator_signals.events.bus import SUBSCRIBER_QUEUE_SIZE, EventBus
from aviator_signals.events.types import EventPayload


class TestEventBus:
    """Test publish/subscribe without Redis."""

    @pytest.mark.asyncio
    async def test_connect_without_url_stays_local(self):
        bus = EventBus()
        await bus.connect()

        assert bus.is_distributed is False
        await bus.disconnect()

    @pytest.mark.asyncio
    async def test_publish_reaches_every_subscriber(self):
        bus = EventBus()
        first, second = bus.subscribe(), bus.subscribe()

        payload = await bus.publish("signal_ingested", {"id": "s1"}, source="test")

        assert first.get_nowait() is payload
        assert second.get_nowait() is payload
        assert payload.source == "test"

    @pytest.mark.asyncio
    async def test_unsubscribed_queue_receives_nothing(self):
        bus = EventBus()
        queue = bus.subscribe()
        bus.unsubscribe(queue)

        await bus.publish("signal_ingested", {"id": "s1"})

        assert queue.empty()
        assert bus.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_full_subscriber_drops_events(self):
        bus = EventBus()
        slow, fast = bus.subscribe(), bus.subscribe()

        for i in range(SUBSCRIBER_QUEUE_SIZE + 5):
            await bus.publish("signal_ingested", {"id": str(i)})
            fast.get_nowait()

        assert slow.qsize() == SUBSCRIBER_QUEUE_SIZE
        assert fast.empty()

    def test_payload_survives_json(self):
        payload = EventPayload(event_type="signal_ingested", source="ingest", data={"id": "s1"})

        restored = EventPayload.model_validate_json(payload.model_dump_json())

        assert restored == payload


class DroppingPubSub:
    """Pub/sub handle whose connection drops on the first read."""

    def __init__(self) -> None:
        self.subscribed = []
        self.closed = False

    async def subscribe(self, channel):
        self.subscribed.append(channel)

    async def listen(self):
        raise RedisConnectionError("Connection closed by server.")
        yield  # pragma: no cover

    async def unsubscribe(self, channel):
        self.subscribed.remove(channel)

    async def aclose(self):
        self.closed = True


class FakeRedis:
    def __init__(self) -> None:
        self.pubsub_handle = DroppingPubSub()
        self.closed = False

    async def ping(self):
        return True

    def pubsub(self):
        return self.pubsub_handle

    async def aclose(self):
        self.closed = True


class TestRedisRelay:
    """Test the Redis listener lifecycle against a connection that drops."""

    @pytest.mark.asyncio
    async def test_disconnect_completes_after_listener_died(self, monkeypatch):
        fake = FakeRedis()
        monkeypatch.setattr(bus_module.redis, "from_url", lambda url, **kwargs: fake)
        bus = EventBus("redis://cache:6379/0")

        await bus.connect()
        listener = bus._listener_task
        await asyncio.wait([listener])

        assert isinstance(listener.exception(), RedisConnectionError)
        assert fake.pubsub_handle.closed is True
        assert fake.pubsub_handle.subscribed == []

        await bus.disconnect()

        assert fake.closed is True
        assert bus.is_distributed is False

