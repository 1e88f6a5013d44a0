"""Database models for Aviator Signals.

Import all models here so Alembic and create_all can detect them.
"""

from aviator_signals.models.signal import Signal, Alert
from aviator_signals.models.registry import PredictionModel, ApiKey
from aviator_signals.models.system import AuditLog, RateLimit

__all__ = [
    "Signal",
    "Alert",
    "PredictionModel",
    "ApiKey",
    "AuditLog",
    "RateLimit",
]
