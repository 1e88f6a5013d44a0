"""
PURPOSE: HMAC request authentication for signal ingestion.

The producer signs every ingestion request with a shared secret:
    x-signature = hex(HMAC-SHA256(secret, raw_body + x-timestamp))
The signature is compared exactly (lowercase hex, case-sensitive).

Freshness of x-timestamp is only enforced when INGEST_MAX_SKEW_SECONDS is
positive; with the default of 0 a captured (body, timestamp, signature)
triple stays valid and can be replayed.
"""

import hashlib
import hmac
from typing import Callable, Optional

from fastapi import Request

from aviator_signals.config.settings import Settings
from aviator_signals.core.errors import invalid_signature
from aviator_signals.utils.logger import get_logger
from aviator_signals.utils.time_utils import now_ms

logger = get_logger(__name__)


def compute_signature(secret: str, raw_body: bytes, timestamp: str) -> str:
    """
    PURPOSE: Compute the expected x-signature for a request.

    Args:
        secret: Shared ingestion secret.
        raw_body: Request body exactly as received.
        timestamp: Value of the x-timestamp header.

    Returns:
        str: Lowercase hex HMAC-SHA256 digest of raw_body + timestamp.
    """
    message = raw_body + timestamp.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def is_fresh(timestamp: str, max_skew_seconds: int, clock: Callable[[], int] = now_ms) -> bool:
    """
    PURPOSE: Check that an epoch-ms x-timestamp lies within max_skew_seconds of now.

    Returns True when the check is disabled (max_skew_seconds <= 0).
    """
    if max_skew_seconds <= 0:
        return True
    try:
        ts = int(timestamp)
    except ValueError:
        return False
    return abs(clock() - ts) <= max_skew_seconds * 1000


def verify_signature(
    raw_body: bytes,
    timestamp: Optional[str],
    signature: Optional[str],
    secret: Optional[str],
    max_skew_seconds: int = 0,
    clock: Callable[[], int] = now_ms,
) -> bool:
    """
    PURPOSE: Verify an ingestion request's HMAC signature.

    CALLED BY: verify_ingest_request dependency

    Args:
        raw_body: Request body exactly as received.
        timestamp: x-timestamp header value.
        signature: x-signature header value.
        secret: Configured shared secret.
        max_skew_seconds: Allowed clock distance for timestamp, 0 disables.
        clock: Epoch-ms clock used for the freshness check.

    Returns:
        bool: True only if secret, timestamp and signature are all present
        and the signature matches.
    """
    if not secret or not timestamp or not signature:
        return False
    if not is_fresh(timestamp, max_skew_seconds, clock):
        return False
    expected = compute_signature(secret, raw_body, timestamp)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


async def verify_ingest_request(request: Request) -> bytes:
    """
    PURPOSE: FastAPI dependency that authenticates an ingestion request.

    CALLED BY: POST /api/signals via Depends(verify_ingest_request)

    Args:
        request: Incoming request (headers x-timestamp, x-signature).

    Returns:
        bytes: The raw request body, for the route to parse.

    Raises:
        ApiError: 401 invalid_signature on any verification failure.
    """
    settings: Settings = request.app.state.settings
    raw_body = await request.body()
    timestamp = request.headers.get("x-timestamp")
    signature = request.headers.get("x-signature")

    if not verify_signature(
        raw_body,
        timestamp,
        signature,
        settings.INGEST_HMAC_SECRET,
        settings.INGEST_MAX_SKEW_SECONDS,
    ):
        logger.warning(
            "ingest_auth_failed",
            has_secret=bool(settings.INGEST_HMAC_SECRET),
            has_timestamp=bool(timestamp),
            has_signature=bool(signature),
        )
        raise invalid_signature()

    return raw_body
