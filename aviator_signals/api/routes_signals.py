"""
PURPOSE: Signal API routes for Aviator Signals.

Provides the signed ingestion endpoint, the query endpoints used by the
dashboard and external consumers, aggregate stats, and the live feed.

The POST /signals endpoint carries no session or bearer auth: producers sign
each request with the shared HMAC secret instead (see api/auth.py).

CALLED BY:
    - Prediction producers (POST /api/signals, signed)
    - Dashboard script (latest, stats, stream)
"""

import json
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import StreamingResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from aviator_signals.api.auth import verify_ingest_request
from aviator_signals.api.deps import (
    get_alert_dispatcher,
    get_alert_worker,
    get_app_settings,
    get_event_bus,
    get_ingest_limiter,
    get_live_feed,
)
from aviator_signals.config.constants import REQUIRED_SIGNAL_FIELDS
from aviator_signals.config.settings import Settings
from aviator_signals.core.errors import (
    ApiError,
    invalid_field,
    missing_field,
    not_found,
    rate_limited,
    store_error,
)
from aviator_signals.core.rate_limit import READ_LIMIT, IngestRateLimiter, client_ip, limiter
from aviator_signals.db.engine import get_db
from aviator_signals.events.bus import EventBus
from aviator_signals.events.types import EventType
from aviator_signals.schemas.signal import SignalCreate, first_invalid_field
from aviator_signals.services.alert_service import AlertDispatcher
from aviator_signals.services.live_feed import SSE_HEADERS, LiveFeed
from aviator_signals.services.signal_service import (
    SignalService,
    SignalStoreError,
    serialize_signal,
)
from aviator_signals.utils.logger import get_logger
from aviator_signals.workers.alert_worker import AlertWorker

logger = get_logger(__name__)

router = APIRouter(tags=["signals"])

MAX_QUERY_LIMIT = 1000


# ════════════════════════════════════════════════════════════════
# Internal Helpers
# ════════════════════════════════════════════════════════════════


def _first_missing_field(body: Dict[str, Any]) -> Optional[str]:
    """Return the first required field absent from body (null counts as present)."""
    for field in REQUIRED_SIGNAL_FIELDS:
        if field not in body:
            return field
    return None


def _parse_signal(raw_body: bytes) -> SignalCreate:
    """
    PURPOSE: Decode and validate an ingestion body.

    CALLED BY: ingest_signal route handler

    Args:
        raw_body: Request body as signed by the producer.

    Returns:
        SignalCreate: Validated payload.

    Raises:
        ApiError: 400 invalid_json, missing_<field> or invalid_<field>.
    """
    try:
        body = json.loads(raw_body)
    except ValueError:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "invalid_json")
    if not isinstance(body, dict):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "invalid_json")

    missing = _first_missing_field(body)
    if missing:
        raise missing_field(missing)

    try:
        return SignalCreate.model_validate(body)
    except ValidationError as e:
        raise invalid_field(first_invalid_field(e))


# ════════════════════════════════════════════════════════════════
# Ingestion
# ════════════════════════════════════════════════════════════════


@router.post("/signals")
async def ingest_signal(
    request: Request,
    raw_body: bytes = Depends(verify_ingest_request),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    ingest_limiter: IngestRateLimiter = Depends(get_ingest_limiter),
    event_bus: EventBus = Depends(get_event_bus),
    dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
    alert_worker: AlertWorker = Depends(get_alert_worker),
) -> Dict[str, Any]:
    """
    PURPOSE: Store a signed prediction signal and schedule its side effects.

    Steps:
      1. HMAC verification (dependency; HTTP 401 on failure).
      2. Per-IP fixed-window limit (HTTP 429 past INGEST_RATE_LIMIT_PER_MIN).
      3. JSON parsing and field validation (HTTP 400).
      4. Insert (HTTP 500 store_error on any store failure, duplicates included).
      5. Publish to the live feed; enqueue alert delivery when confidence
         reaches ALERT_MIN_CONFIDENCE. Neither affects the response.

    Returns:
        dict: {"ok": true, "changes": 1}

    Raises:
        HTTP 400 / 401 / 429 / 500 as listed above.
    """
    ip = client_ip(request, settings.TRUSTED_IP_HEADER)
    if not await ingest_limiter.hit(db, ip):
        raise rate_limited()

    signal_data = _parse_signal(raw_body)

    try:
        signal = await SignalService.create_signal(db, signal_data)
    except SignalStoreError as e:
        logger.warning(
            "signal_ingest_rejected_by_store",
            signal_id=signal_data.id,
            duplicate=e.duplicate,
        )
        raise store_error()

    item = serialize_signal(signal)

    # Side effects run after the commit and never roll the signal back
    try:
        await event_bus.publish(EventType.SIGNAL_INGESTED.value, item, source="ingest")
    except Exception as e:
        logger.warning("event_publish_failed", error=str(e), signal_id=signal.id)

    alert_queued = False
    if dispatcher.should_alert(signal.confidence):
        alert_queued = alert_worker.enqueue(item)

    logger.info(
        "signal_ingested",
        signal_id=signal.id,
        platform=signal.platform,
        ip=ip,
        alert_queued=alert_queued,
    )
    return {"ok": True, "changes": 1}


# ════════════════════════════════════════════════════════════════
# Read Endpoints
# ════════════════════════════════════════════════════════════════


@router.get("/signals/latest")
@limiter.limit(READ_LIMIT)
async def get_latest_signals(
    request: Request,
    platform: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=MAX_QUERY_LIMIT),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    PURPOSE: Return the newest signals, optionally for one platform.

    Returns:
        dict: {items: [...]} newest first.
    """
    rows = await SignalService.get_latest(db, platform=platform, limit=limit)
    return {"items": [serialize_signal(row) for row in rows]}


@router.get("/signals/stream")
async def stream_signals(
    request: Request,
    platform: Optional[str] = Query(None),
    live_feed: LiveFeed = Depends(get_live_feed),
) -> StreamingResponse:
    """
    PURPOSE: Server-sent event stream of signals for the dashboard.

    Each event is "data: <signal json>\\n\\n". The stream ends when the client
    disconnects.
    """
    return StreamingResponse(
        live_feed.stream(request.is_disconnected, platform=platform),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/signals")
@limiter.limit(READ_LIMIT)
async def list_signals(
    request: Request,
    platform: Optional[str] = Query(None),
    from_ts: Optional[int] = Query(None, alias="from"),
    to_ts: Optional[int] = Query(None, alias="to"),
    limit: int = Query(100, ge=1, le=MAX_QUERY_LIMIT),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    PURPOSE: Return signals filtered by platform and inclusive time range.

    Args:
        platform: Optional platform filter.
        from_ts: Optional lower timestamp bound, epoch ms (query "from").
        to_ts: Optional upper timestamp bound, epoch ms (query "to").
        limit: Maximum rows (default 100).

    Returns:
        dict: {items: [...]} newest first.
    """
    rows = await SignalService.list_signals(
        db,
        platform=platform,
        from_ts=from_ts,
        to_ts=to_ts,
        limit=limit,
    )
    return {"items": [serialize_signal(row) for row in rows]}


@router.get("/signals/{signal_id}")
@limiter.limit(READ_LIMIT)
async def get_signal(
    request: Request,
    signal_id: str,
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    PURPOSE: Return one signal by id.

    Raises:
        HTTP 404: {"error": "not_found"}.
    """
    signal = await SignalService.get_signal(db, signal_id)
    if signal is None:
        raise not_found()
    return serialize_signal(signal)


@router.get("/platforms")
@limiter.limit(READ_LIMIT)
async def list_platforms(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Distinct platform names, alphabetical: {items: [...]}."""
    return {"items": await SignalService.list_platforms(db)}


@router.get("/stats")
@limiter.limit(READ_LIMIT)
async def get_stats(
    request: Request,
    platform: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    PURPOSE: Aggregate signal statistics.

    Returns:
        dict: {total, byClass: [{class, n}], lastTs}
    """
    stats = await SignalService.get_stats(db, platform=platform)
    return stats.model_dump(by_alias=True)
