"""
Event system for Aviator Signals.

Provides the publish/subscribe bus that feeds the live signal stream.
"""

from aviator_signals.events.bus import EventBus
from aviator_signals.events.types import EventPayload, EventType

__all__ = ["EventBus", "EventPayload", "EventType"]
