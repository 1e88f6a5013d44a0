"""
Event bus feeding the live signal feed.

Subscribers are per-connection asyncio queues held in-process. When a Redis
URL is configured, publications travel through a Redis pub/sub channel and a
background listener fans them out to the local subscribers, so a signal
ingested by one API process reaches live-feed clients on every process.
"""

import asyncio
from typing import Optional, Set

import redis.asyncio as redis

from aviator_signals.config.constants import LIVE_FEED_CHANNEL
from aviator_signals.events.types import EventPayload
from aviator_signals.utils.logger import get_logger

# Events buffered per subscriber before new ones are dropped
SUBSCRIBER_QUEUE_SIZE = 100


class EventBus:
    """
    Publish/subscribe bus for signal events.

    PURPOSE: Decouple the ingestion path from live-feed connections.

    CALLED BY: Ingestion route (publish), live feed (subscribe/unsubscribe).

    Attributes:
        CHANNEL: Redis channel name for all events.
        _redis: Async Redis client instance, None for in-process mode.
        _subscribers: Queues of the currently connected live-feed clients.
        _listener_task: Background task relaying Redis messages.
    """

    CHANNEL: str = LIVE_FEED_CHANNEL

    def __init__(self, redis_url: str = "") -> None:
        """
        Initialize the event bus.

        Args:
            redis_url: Redis connection URL; empty keeps the bus in-process.
        """
        self._redis_url: str = redis_url
        self._redis: Optional[redis.Redis] = None
        self._logger = get_logger("events.bus")
        self._subscribers: Set[asyncio.Queue] = set()
        self._listener_task: Optional[asyncio.Task] = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def is_distributed(self) -> bool:
        return self._redis is not None

    async def connect(self) -> None:
        """
        Establish the Redis connection and start relaying its channel.

        No-op without a Redis URL. Should be called during application startup.
        """
        if not self._redis_url:
            self._logger.info("event_bus_in_process")
            return
        try:
            self._redis = redis.from_url(self._redis_url, decode_responses=True)
            await self._redis.ping()
            self._logger.info("redis_connected", redis_url=self._redis_url)
        except Exception as e:
            self._logger.error("redis_connection_failed", error=str(e))
            raise

        self._listener_task = asyncio.create_task(self._listen())

    async def disconnect(self) -> None:
        """
        Stop the relay task and close the Redis connection.

        Should be called during application shutdown.
        """
        if self._listener_task is not None:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                # Relay already died; its error was logged by _listen
                self._logger.warning("redis_listener_ended_with_error", error=str(e))
            self._listener_task = None

        if self._redis:
            try:
                await self._redis.aclose()
                self._logger.info("redis_disconnected")
            except Exception as e:
                self._logger.error("redis_disconnection_failed", error=str(e))
            self._redis = None

    async def publish(self, event_type: str, data: dict, source: str = "unknown") -> EventPayload:
        """
        Publish an event to every subscriber.

        PURPOSE: Distribute the event through Redis when connected, or
        directly to local subscribers otherwise. A failed Redis publish
        falls back to local delivery.

        CALLED BY: Ingestion route after the signal commit.

        Args:
            event_type: Type of event being published.
            data: Event payload dictionary.
            source: Module/component originating the event.

        Returns:
            EventPayload: The published payload.
        """
        payload = EventPayload(event_type=event_type, source=source, data=data)

        if self._redis:
            try:
                receivers = await self._redis.publish(self.CHANNEL, payload.model_dump_json())
                self._logger.info(
                    "event_published",
                    event_type=event_type,
                    source=source,
                    receivers=receivers,
                    correlation_id=payload.correlation_id,
                )
                return payload
            except Exception as e:
                self._logger.error("redis_publish_failed", event_type=event_type, error=str(e))

        self._deliver(payload)
        return payload

    def subscribe(self) -> asyncio.Queue:
        """
        Register a new subscriber.

        Returns:
            asyncio.Queue: Queue receiving EventPayload objects.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self._subscribers.add(queue)
        self._logger.debug("subscriber_added", subscribers=len(self._subscribers))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)
        self._logger.debug("subscriber_removed", subscribers=len(self._subscribers))

    def _deliver(self, payload: EventPayload) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(payload)
            except asyncio.QueueFull:
                self._logger.warning(
                    "subscriber_queue_full_event_dropped",
                    event_type=payload.event_type,
                    correlation_id=payload.correlation_id,
                )

    async def _listen(self) -> None:
        """Relay messages from the Redis channel to local subscribers."""
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(self.CHANNEL)
            self._logger.info("redis_subscription_started", channel=self.CHANNEL)
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    payload = EventPayload.model_validate_json(message["data"])
                except ValueError as e:
                    self._logger.warning("redis_message_invalid", error=str(e))
                    continue
                self._deliver(payload)
        except Exception as e:
            self._logger.error(
                "redis_subscription_error",
                error=str(e),
                exception_type=type(e).__name__,
                subscribers=len(self._subscribers),
            )
            raise
        finally:
            try:
                await pubsub.unsubscribe(self.CHANNEL)
                await pubsub.aclose()
            except Exception as e:
                self._logger.warning("redis_subscription_cleanup_failed", error=str(e))
