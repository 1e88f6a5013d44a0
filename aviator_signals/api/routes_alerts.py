"""
PURPOSE: Alert API routes for Aviator Signals.

POST /alerts/test sends a message to every configured chat channel so an
operator can check credentials without waiting for a high-confidence signal.
Nothing is stored.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Request

from aviator_signals.api.deps import get_notifier
from aviator_signals.config.constants import DEFAULT_TEST_ALERT_TEXT
from aviator_signals.core.rate_limit import WRITE_LIMIT, limiter
from aviator_signals.schemas.alert import AlertTestRequest, AlertTestResponse
from aviator_signals.services.notifier import WebhookNotifier
from aviator_signals.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.post("/test", response_model=AlertTestResponse)
@limiter.limit(WRITE_LIMIT)
async def send_test_alert(
    request: Request,
    payload: Optional[AlertTestRequest] = Body(None),
    notifier: WebhookNotifier = Depends(get_notifier),
) -> AlertTestResponse:
    """
    PURPOSE: Deliver a test message to Telegram and/or Discord.

    Args:
        payload: Optional {"text": ...}; defaults to a fixed test message.

    Returns:
        AlertTestResponse: {"ok": true, "sent": {channel: status}} with only
        configured channels present; status is None when the request failed
        before a response arrived.
    """
    text = (payload.text if payload else None) or DEFAULT_TEST_ALERT_TEXT
    sent = await notifier.send_test(text)

    logger.info("test_alert_sent", channels=list(sent.keys()), statuses=sent)
    return AlertTestResponse(ok=True, sent=sent)
