"""
PURPOSE: Rate limiting for the Aviator Signals API.

Two limiters live here:
    - limiter:             slowapi Limiter keyed by client IP, applied to the
                           read endpoints (READ_LIMIT) and the test alert
                           endpoint (WRITE_LIMIT).
    - IngestRateLimiter:   fixed one-minute window counter persisted in the
                           rate_limits table, applied to signal ingestion so
                           the ceiling holds across every API process.
"""

from typing import Callable

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from aviator_signals.config.constants import RATE_LIMIT_WINDOW_MS, UNKNOWN_CLIENT_IP
from aviator_signals.models.system import RateLimit
from aviator_signals.utils.logger import get_logger
from aviator_signals.utils.time_utils import now_ms, window_start

logger = get_logger(__name__)


def client_ip(request: Request, header_name: str) -> str:
    """
    PURPOSE: Resolve the ingesting client's IP from the trusted proxy header.

    Proxy headers may carry a chain ("client, proxy1, proxy2"); the first
    entry is the client.

    Args:
        request: Incoming request.
        header_name: Header set by the fronting proxy.

    Returns:
        str: Client IP, or "unknown" when the header is absent or empty.
    """
    raw = request.headers.get(header_name, "") if header_name else ""
    first = raw.split(",")[0].strip()
    return first or UNKNOWN_CLIENT_IP


def rate_limit_key(request: Request) -> str:
    """
    PURPOSE: slowapi key function using the same client IP as ingestion.

    Falls back to the socket peer address when the trusted proxy header is
    absent, so direct local calls still get a bucket of their own.
    """
    header_name = request.app.state.settings.TRUSTED_IP_HEADER
    ip = client_ip(request, header_name)
    if ip == UNKNOWN_CLIENT_IP:
        return get_remote_address(request)
    return ip


# Shared limiter instance, keyed by trusted client IP
limiter = Limiter(key_func=rate_limit_key)

# ── Rate limit tiers ──────────────────────────────────────────
READ_LIMIT = "120/minute"
WRITE_LIMIT = "10/minute"


class IngestRateLimiter:
    """
    PURPOSE: Fixed-window per-IP request ceiling backed by the rate_limits table.

    Each (ip, window) pair owns one row keyed "ingest:<ip>:<window_start>".
    A request is admitted while the row's count is below the ceiling and the
    count is incremented; the (limit+1)th request in the window is refused.
    Storage errors admit the request so that a database hiccup on the counter
    does not take ingestion down with it.

    Attributes:
        limit_per_min: Requests admitted per IP per window.
        window_ms: Window length in milliseconds.
        prefix: Key namespace.
    """

    def __init__(
        self,
        limit_per_min: int,
        clock: Callable[[], int] = now_ms,
        window_ms: int = RATE_LIMIT_WINDOW_MS,
        prefix: str = "ingest",
    ) -> None:
        self.limit_per_min = limit_per_min
        self.window_ms = window_ms
        self.prefix = prefix
        self._clock = clock

    def key_for(self, ip: str, start: int) -> str:
        return f"{self.prefix}:{ip}:{start}"

    async def hit(self, db: AsyncSession, ip: str) -> bool:
        """
        PURPOSE: Count one request for ip and report whether it is admitted.

        CALLED BY: POST /api/signals, after signature verification

        Args:
            db: Async database session (committed by this call).
            ip: Client IP as resolved by client_ip().

        Returns:
            bool: True if admitted, False if the window's ceiling is reached.
        """
        start = window_start(self._clock(), self.window_ms)
        key = self.key_for(ip, start)

        try:
            row = await db.get(RateLimit, key, populate_existing=True)
            if row is not None and row.count >= self.limit_per_min:
                logger.warning(
                    "ingest_rate_limited",
                    ip=ip,
                    window_start=start,
                    count=row.count,
                    limit=self.limit_per_min,
                )
                return False

            if row is None:
                db.add(RateLimit(key=key, count=1, window_start=start))
                # First hit of a new window: earlier windows can never match again
                await db.execute(
                    delete(RateLimit).where(
                        RateLimit.key.like(f"{self.prefix}:%"),
                        RateLimit.window_start < start,
                    )
                )
            else:
                row.count = RateLimit.count + 1

            await db.commit()
            return True
        except SQLAlchemyError as e:
            await db.rollback()
            logger.warning(
                "ingest_rate_limit_check_failed_open",
                ip=ip,
                key=key,
                error=str(e),
                exception_type=type(e).__name__,
            )
            return True
