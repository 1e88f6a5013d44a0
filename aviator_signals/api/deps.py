"""
PURPOSE: FastAPI dependencies resolving the collaborators built at startup.

create_app() stores Settings on app.state and the lifespan stores the
services; routes ask for them here instead of importing globals.
"""

from fastapi import Request

from aviator_signals.config.settings import Settings
from aviator_signals.core.rate_limit import IngestRateLimiter
from aviator_signals.events.bus import EventBus
from aviator_signals.services.alert_service import AlertDispatcher
from aviator_signals.services.live_feed import LiveFeed
from aviator_signals.services.notifier import WebhookNotifier
from aviator_signals.workers.alert_worker import AlertWorker


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_ingest_limiter(request: Request) -> IngestRateLimiter:
    return request.app.state.ingest_limiter


def get_alert_dispatcher(request: Request) -> AlertDispatcher:
    return request.app.state.alert_dispatcher


def get_alert_worker(request: Request) -> AlertWorker:
    return request.app.state.alert_worker


def get_notifier(request: Request) -> WebhookNotifier:
    return request.app.state.notifier


def get_live_feed(request: Request) -> LiveFeed:
    return request.app.state.live_feed
