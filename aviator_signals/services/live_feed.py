"""
Live feed for Aviator Signals.

PURPOSE: Produce the text/event-stream body of GET /api/signals/stream.
Every event is framed "data: <json>\\n\\n" with the signal as returned by the
query endpoints.

Two modes:
    - push: emit each newly ingested signal as the ingestion path publishes
            it on the event bus; idle connections get a keepalive comment
            every interval so disconnection is noticed.
    - poll: every interval, read the newest signal and emit it, whether or
            not it was already sent.

Each generator checks for disconnection before every tick and releases its
subscription when it ends, so a closed client leaves no poll loop and no
subscriber behind.
"""

import asyncio
import json
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from aviator_signals.events.bus import EventBus
from aviator_signals.events.types import EventType
from aviator_signals.services.signal_service import SignalService, serialize_signal
from aviator_signals.utils.logger import get_logger

logger = get_logger("services.live_feed")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}
KEEPALIVE_FRAME = ": keepalive\n\n"

DisconnectCheck = Callable[[], Awaitable[bool]]


def format_event(data: Dict[str, Any]) -> str:
    """Frame one server-sent event."""
    return f"data: {json.dumps(data)}\n\n"


class LiveFeed:
    """
    Service streaming signals to dashboard clients.

    Attributes:
        mode: "push" or "poll".
        interval: Poll period, or keepalive period in push mode (seconds).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        event_bus: EventBus,
        mode: str = "push",
        interval: float = 2.0,
    ) -> None:
        if mode not in ("push", "poll"):
            raise ValueError(f"Unknown live feed mode: {mode}")
        self.mode = mode
        self.interval = interval
        self._session_factory = session_factory
        self._event_bus = event_bus

    def stream(
        self,
        is_disconnected: DisconnectCheck,
        platform: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        PURPOSE: Return the event generator for one client connection.

        CALLED BY: GET /api/signals/stream

        Args:
            is_disconnected: Awaitable check, usually Request.is_disconnected.
            platform: Optional platform filter.

        Returns:
            AsyncIterator[str]: SSE frames.
        """
        if self.mode == "poll":
            return self._poll(is_disconnected, platform)
        return self._push(is_disconnected, platform)

    async def _poll(self, is_disconnected: DisconnectCheck, platform: Optional[str]) -> AsyncIterator[str]:
        logger.info("live_feed_opened", mode="poll", platform=platform)
        ticks = 0
        try:
            while True:
                await asyncio.sleep(self.interval)
                if await is_disconnected():
                    break
                ticks += 1
                async with self._session_factory() as db:
                    rows = await SignalService.get_latest(db, platform=platform, limit=1)
                if rows:
                    yield format_event(serialize_signal(rows[0]))
        finally:
            logger.info("live_feed_closed", mode="poll", platform=platform, ticks=ticks)

    async def _push(self, is_disconnected: DisconnectCheck, platform: Optional[str]) -> AsyncIterator[str]:
        queue = self._event_bus.subscribe()
        logger.info(
            "live_feed_opened",
            mode="push",
            platform=platform,
            subscribers=self._event_bus.subscriber_count,
        )
        sent = 0
        try:
            while True:
                if await is_disconnected():
                    break
                try:
                    payload = await asyncio.wait_for(queue.get(), timeout=self.interval)
                except asyncio.TimeoutError:
                    yield KEEPALIVE_FRAME
                    continue

                if payload.event_type != EventType.SIGNAL_INGESTED.value:
                    continue
                signal = payload.data
                if platform and signal.get("platform") != platform:
                    continue
                sent += 1
                yield format_event(signal)
        finally:
            self._event_bus.unsubscribe(queue)
            logger.info("live_feed_closed", mode="push", platform=platform, sent=sent)
