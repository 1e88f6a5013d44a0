"""
Alert-related Pydantic schemas for the Aviator Signals API.
"""

from typing import Dict, Optional

from pydantic import BaseModel


class AlertTestRequest(BaseModel):
    """Body of POST /api/alerts/test; text falls back to a default message."""

    text: Optional[str] = None


class AlertTestResponse(BaseModel):
    """
    Result of a test alert.

    Attributes:
        ok: Always True once delivery was attempted
        sent: HTTP status per configured channel, None on transport failure
    """

    ok: bool = True
    sent: Dict[str, Optional[int]]
