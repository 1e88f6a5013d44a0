"""
PURPOSE: Configuration settings for the Aviator Signals service.

This module uses Pydantic Settings to manage configuration from environment
variables and .env files. A single Settings instance is built at process
start and handed to create_app(); handlers reach it through app.state.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    PURPOSE: Central configuration class for Aviator Signals.

    Manages database and Redis connections, ingestion authentication and
    throttling, alert channel credentials, and live feed behaviour.
    Settings are loaded from environment variables and .env file.
    """

    # Database & Cache Configuration
    DATABASE_URL: str = "sqlite+aiosqlite:///./aviator_signals.db"
    DB_AUTO_CREATE: bool = True
    # Empty means the live feed channel stays in-process
    REDIS_URL: str = ""

    # Ingestion
    # Shared secret for the x-signature HMAC (body + x-timestamp)
    INGEST_HMAC_SECRET: str = ""
    # 0 disables the timestamp freshness check
    INGEST_MAX_SKEW_SECONDS: int = 0
    INGEST_RATE_LIMIT_PER_MIN: int = 240
    # Header set by the fronting proxy with the real client address
    TRUSTED_IP_HEADER: str = "cf-connecting-ip"

    # Read endpoint throttling (slowapi); limits live in core/rate_limit.py
    READ_RATE_LIMIT_ENABLED: bool = True

    # Alerts
    # Unset disables alerting on ingestion
    ALERT_MIN_CONFIDENCE: Optional[float] = None
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_CHAT_ID: str = ""
    TELEGRAM_API_BASE: str = "https://api.telegram.org"
    DISCORD_WEBHOOK_URL: str = ""
    WEBHOOK_TIMEOUT_SECONDS: float = 10.0

    # Live feed (push | poll)
    LIVE_FEED_MODE: str = "push"
    LIVE_FEED_POLL_SECONDS: float = 2.0

    # System Settings
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: List[str] = ["*"]

    def is_development(self) -> bool:
        """
        PURPOSE: Determine whether the app is running in development mode.

        Returns:
            bool: True when APP_ENV indicates development or debug is on.
        """
        return self.APP_ENV.strip().lower() in {"dev", "development", "test"} or self.DEBUG

    def telegram_enabled(self) -> bool:
        """Telegram needs both the bot token and the target chat."""
        return bool(self.TELEGRAM_BOT_TOKEN and self.TELEGRAM_CHAT_ID)

    def discord_enabled(self) -> bool:
        return bool(self.DISCORD_WEBHOOK_URL)

    def alert_channels(self) -> List[str]:
        """
        PURPOSE: Return the alert channels that have credentials configured.

        Returns:
            list[str]: Channel names in delivery order ("telegram", "discord").
        """
        channels = []
        if self.telegram_enabled():
            channels.append("telegram")
        if self.discord_enabled():
            channels.append("discord")
        return channels

    def get_insecure_defaults(self) -> List[str]:
        """
        PURPOSE: Return list of settings whose current value leaves ingestion unprotected.

        Returns:
            list[str]: Setting names that still need a value.
        """
        insecure = []
        if not self.INGEST_HMAC_SECRET:
            insecure.append("INGEST_HMAC_SECRET")
        return insecure

    def validate_credentials(self) -> None:
        """
        PURPOSE: Enforce that ingestion is not left without a secret outside development.

        CALLED BY: create_app()

        In production/staging: raises ValueError with clear instructions.
        In development: returns silently; the startup hook logs a warning.

        Raises:
            ValueError: If required secrets are missing in non-dev mode.
        """
        insecure = self.get_insecure_defaults()
        if not insecure:
            return

        hint = (
            "Set these in your .env file or as environment variables:\n"
            + "\n".join(f"  {name}=<your-secure-value>" for name in insecure)
        )

        if not self.is_development():
            raise ValueError(
                f"SECURITY: Missing credentials for: {', '.join(insecure)}.\n{hint}"
            )

    class Config:
        """Pydantic model configuration."""

        env_file: str = ".env"
        env_file_encoding: str = "utf-8"
        case_sensitive: bool = True
        extra: str = "ignore"


@lru_cache
def get_settings() -> Settings:
    """
    PURPOSE: Return the process-wide Settings instance, built on first call.

    CALLED BY: Module-level app creation in aviator_signals.main, alembic env
    """
    return Settings()
