"""
PURPOSE: Export configuration settings and constants for Aviator Signals.
"""

from .constants import (
    AlertChannel,
    AlertStatus,
    ApiKeyRole,
    PredictedClass,
    RecommendedAction,
    REQUIRED_SIGNAL_FIELDS,
)
from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "PredictedClass",
    "RecommendedAction",
    "AlertChannel",
    "AlertStatus",
    "ApiKeyRole",
    "REQUIRED_SIGNAL_FIELDS",
]
