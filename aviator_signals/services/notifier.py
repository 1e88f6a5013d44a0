"""
PURPOSE: Outbound chat webhooks (Telegram Bot API, Discord incoming webhook).

One shared httpx.AsyncClient with an explicit timeout is created at startup,
so a hanging provider can hold a delivery for at most WEBHOOK_TIMEOUT_SECONDS.

CALLED BY:
    - AlertDispatcher (alerts for high-confidence signals)
    - POST /api/alerts/test
"""

from typing import Any, Dict, Optional

import httpx

from aviator_signals.config.constants import AlertChannel
from aviator_signals.config.settings import Settings
from aviator_signals.utils.logger import get_logger

logger = get_logger(__name__)


def create_http_client(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    PURPOSE: Build the shared client used for webhook delivery.

    Args:
        settings: Application settings (WEBHOOK_TIMEOUT_SECONDS).
        transport: Optional transport override (tests use httpx.MockTransport).

    Returns:
        httpx.AsyncClient: Client owned by the application lifespan.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.WEBHOOK_TIMEOUT_SECONDS),
        transport=transport,
    )


class WebhookNotifier:
    """
    PURPOSE: Send plain-text messages to the configured chat channels.

    Attributes:
        _settings: Application settings holding channel credentials.
        _client: Shared httpx.AsyncClient.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient) -> None:
        self._settings = settings
        self._client = client

    def channels(self) -> list:
        """Configured channels in delivery order."""
        return self._settings.alert_channels()

    def payload_for(self, channel: str, text: str) -> Dict[str, Any]:
        """
        PURPOSE: Build the JSON body a channel expects for a text message.

        Args:
            channel: "telegram" or "discord".
            text: Message text.

        Returns:
            dict: Request body.

        Raises:
            ValueError: For a channel without a webhook implementation.
        """
        if channel == AlertChannel.TELEGRAM.value:
            return {"chat_id": self._settings.TELEGRAM_CHAT_ID, "text": text}
        if channel == AlertChannel.DISCORD.value:
            return {"content": text}
        raise ValueError(f"Unsupported alert channel: {channel}")

    def _url_for(self, channel: str) -> str:
        if channel == AlertChannel.TELEGRAM.value:
            return (
                f"{self._settings.TELEGRAM_API_BASE.rstrip('/')}"
                f"/bot{self._settings.TELEGRAM_BOT_TOKEN}/sendMessage"
            )
        if channel == AlertChannel.DISCORD.value:
            return self._settings.DISCORD_WEBHOOK_URL
        raise ValueError(f"Unsupported alert channel: {channel}")

    async def send(self, channel: str, text: str) -> httpx.Response:
        """
        PURPOSE: POST one message to one channel.

        Args:
            channel: "telegram" or "discord".
            text: Message text.

        Returns:
            httpx.Response: Provider response, whatever its status.

        Raises:
            httpx.HTTPError: On transport failures and timeouts.
        """
        response = await self._client.post(
            self._url_for(channel),
            json=self.payload_for(channel, text),
        )
        logger.info(
            "webhook_delivered",
            channel=channel,
            status_code=response.status_code,
        )
        return response

    async def send_test(self, text: str) -> Dict[str, Optional[int]]:
        """
        PURPOSE: Send text to every configured channel and report each status.

        CALLED BY: POST /api/alerts/test

        Args:
            text: Message text.

        Returns:
            dict: channel -> HTTP status code, None if the request failed.
        """
        sent: Dict[str, Optional[int]] = {}
        for channel in self.channels():
            try:
                response = await self.send(channel, text)
                sent[channel] = response.status_code
            except httpx.HTTPError as e:
                logger.warning(
                    "webhook_test_failed",
                    channel=channel,
                    error=str(e),
                    exception_type=type(e).__name__,
                )
                sent[channel] = None
        return sent
