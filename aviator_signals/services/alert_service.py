"""
Alert service for Aviator Signals.

PURPOSE: Turn a high-confidence signal into one alert row per configured
channel and record the outcome of delivering it.

CALLED BY: aviator_signals.workers.alert_worker.AlertWorker
"""

import json
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from aviator_signals.config.constants import AlertStatus
from aviator_signals.models.signal import Alert
from aviator_signals.services.notifier import WebhookNotifier
from aviator_signals.utils.logger import get_logger
from aviator_signals.utils.time_utils import now_ms


logger = get_logger("services.alert")


def build_alert_text(signal: Dict[str, Any]) -> str:
    """
    PURPOSE: Render the human-readable alert message for a signal.

    Args:
        signal: Serialized signal (as returned by serialize_signal).

    Returns:
        str: Multi-line message.

    Examples:
        [demo] round r1
        HIGH (90%) -> BET
        Targets: 1.5, 2.0
        Model v1
    """
    confidence = round((signal.get("confidence") or 0) * 100)
    lines = [
        f"[{signal['platform']}] round {signal['round_id']}",
        f"{str(signal['predicted_class']).upper()} ({confidence}%) -> {signal['recommended_action']}",
    ]

    multiplier = signal.get("predicted_multiplier")
    if multiplier is not None:
        lines.append(f"Predicted multiplier: x{multiplier:.2f}")

    bet_pct = signal.get("suggested_bet_pct")
    if bet_pct is not None:
        lines.append(f"Suggested bet: {bet_pct}%")

    targets = signal.get("cashout_targets")
    if isinstance(targets, list) and targets:
        lines.append("Targets: " + ", ".join(str(t) for t in targets))

    lines.append(f"Model {signal['model_version']}")
    return "\n".join(lines)


class AlertDispatcher:
    """
    Service delivering signal alerts.

    PURPOSE: Insert a queued alert row per channel, attempt each delivery
    once, and update the row to sent or failed. The signal itself is never
    touched; a failure here leaves the signal stored and the alert rows
    reflecting what happened.

    Attributes:
        _session_factory: Factory for sessions independent of any request.
        _notifier: Outbound webhook sender.
        _min_confidence: Alert threshold, None disables alerting.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: WebhookNotifier,
        min_confidence: Optional[float],
    ) -> None:
        self._session_factory = session_factory
        self._notifier = notifier
        self._min_confidence = min_confidence

    def should_alert(self, confidence: float) -> bool:
        """True when a threshold is configured and confidence meets it."""
        return self._min_confidence is not None and confidence >= self._min_confidence

    async def dispatch(self, signal: Dict[str, Any]) -> List[Alert]:
        """
        Deliver an alert for one signal on every configured channel.

        CALLED BY: AlertWorker for each queued job

        Args:
            signal: Serialized signal

        Returns:
            list[Alert]: Alert rows with their final status (empty when no
            channel is configured or the rows could not be stored)
        """
        channels = self._notifier.channels()
        if not channels:
            logger.info("alert_skipped_no_channels", signal_id=signal["id"])
            return []

        text = build_alert_text(signal)

        async with self._session_factory() as db:
            alerts = [
                Alert(
                    id=uuid4().hex,
                    signal_id=signal["id"],
                    channel=channel,
                    payload=json.dumps(self._notifier.payload_for(channel, text)),
                    status=AlertStatus.QUEUED.value,
                    retries=0,
                )
                for channel in channels
            ]
            try:
                db.add_all(alerts)
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(
                    "alert_rows_insert_failed",
                    signal_id=signal["id"],
                    error=str(e),
                    exception_type=type(e).__name__,
                )
                return []

            for alert in alerts:
                await self._deliver(db, alert, text)

        return alerts

    async def _deliver(self, db: AsyncSession, alert: Alert, text: str) -> None:
        try:
            response = await self._notifier.send(alert.channel, text)
            delivered = response.is_success
            if not delivered:
                logger.warning(
                    "alert_delivery_rejected",
                    alert_id=alert.id,
                    channel=alert.channel,
                    status_code=response.status_code,
                )
        except Exception as e:
            delivered = False
            logger.warning(
                "alert_delivery_failed",
                alert_id=alert.id,
                channel=alert.channel,
                error=str(e),
                exception_type=type(e).__name__,
            )

        alert.status = AlertStatus.SENT.value if delivered else AlertStatus.FAILED.value
        alert.sent_at = now_ms() if delivered else None

        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                "alert_status_update_failed",
                alert_id=alert.id,
                status=alert.status,
                error=str(e),
            )
            return

        logger.info(
            "alert_processed",
            alert_id=alert.id,
            signal_id=alert.signal_id,
            channel=alert.channel,
            status=alert.status,
        )
