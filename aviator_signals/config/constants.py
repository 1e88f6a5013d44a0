"""
PURPOSE: Enumerations and fixed values shared across Aviator Signals.
"""

from enum import Enum


class PredictedClass(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"


class RecommendedAction(str, Enum):
    BET = "BET"
    HOLD = "HOLD"
    WAIT = "WAIT"


class AlertChannel(str, Enum):
    TELEGRAM = "telegram"
    DISCORD = "discord"
    EMAIL = "email"
    WEBHOOK = "webhook"


class AlertStatus(str, Enum):
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"


class ApiKeyRole(str, Enum):
    INGEST = "ingest"
    VIEWER = "viewer"
    ADMIN = "admin"


# Fields that must be present in an ingestion body, checked in this order
REQUIRED_SIGNAL_FIELDS = (
    "id",
    "platform",
    "round_id",
    "timestamp",
    "predicted_class",
    "confidence",
    "model_version",
    "recommended_action",
    "created_at",
)

DEFAULT_SIGNAL_SOURCE = "inference"
DEFAULT_TEST_ALERT_TEXT = "Test alert from aviator-bot"

RATE_LIMIT_WINDOW_MS = 60_000
UNKNOWN_CLIENT_IP = "unknown"

LIVE_FEED_CHANNEL = "aviator:signals"
