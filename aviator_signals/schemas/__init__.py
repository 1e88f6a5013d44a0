"""
Pydantic v2 schemas for the Aviator Signals API.
"""

from .alert import AlertTestRequest, AlertTestResponse
from .signal import ClassCount, SignalCreate, SignalStats, first_invalid_field

__all__ = [
    # Signal schemas
    "SignalCreate",
    "SignalStats",
    "ClassCount",
    "first_invalid_field",
    # Alert schemas
    "AlertTestRequest",
    "AlertTestResponse",
]
