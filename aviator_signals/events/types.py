"""
Event payload types for the Aviator Signals event bus.

Defines EventPayload model and the event type names published on it.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


class EventType(str, Enum):
    SIGNAL_INGESTED = "signal_ingested"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventPayload(BaseModel):
    """
    Standardized event payload for all events on the bus.

    PURPOSE: Ensure consistent structure for events crossing process
    boundaries through Redis.
    USED BY: EventBus publish/subscribe operations, live feed.

    Attributes:
        event_type: Type of event (e.g., signal_ingested).
        source: Module or component that originated the event.
        data: Event-specific payload data as dictionary.
        timestamp: When the event was created (UTC).
        correlation_id: Unique ID for tracing related events across modules.
    """

    event_type: str = Field(
        ...,
        description="Type identifier for the event"
    )
    source: str = Field(
        ...,
        description="Module or component that generated this event"
    )
    data: dict = Field(
        default_factory=dict,
        description="Event-specific payload data"
    )
    timestamp: datetime = Field(
        default_factory=_utc_now,
        description="UTC timestamp when event was created"
    )
    correlation_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique correlation ID for tracing across modules"
    )
