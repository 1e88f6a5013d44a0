"""
Signal service for Aviator Signals.

PURPOSE: Persist ingested signals and serve the parameterized reads behind
the query, stats and live feed endpoints.

CALLED BY: aviator_signals.api.routes_signals, aviator_signals.services.live_feed
"""

import json
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from aviator_signals.config.constants import DEFAULT_SIGNAL_SOURCE
from aviator_signals.models.signal import Signal
from aviator_signals.schemas.signal import ClassCount, SignalCreate, SignalStats
from aviator_signals.utils.logger import get_logger


logger = get_logger("services.signal")

# PostgreSQL unique_violation
UNIQUE_VIOLATION_SQLSTATE = "23505"


class SignalStoreError(Exception):
    """
    Raised when the store rejects a signal insert.

    Attributes:
        duplicate: True when the failure is a uniqueness violation
            (same id, or same platform and round_id).
    """

    def __init__(self, message: str, duplicate: bool = False) -> None:
        super().__init__(message)
        self.duplicate = duplicate


def _where(stmt, conditions):
    return stmt.where(*conditions) if conditions else stmt


def _is_unique_violation(exc: IntegrityError) -> bool:
    """True for primary key or unique index conflicts, False for CHECK or NOT NULL failures."""
    if getattr(exc.orig, "sqlstate", None) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    message = str(exc.orig).lower()
    return "unique constraint" in message or "duplicate key" in message


def serialize_signal(signal: Signal) -> Dict[str, Any]:
    """
    PURPOSE: Render a signal row as the flat JSON object returned by the API.

    cashout_targets is decoded from its stored JSON text; text that does not
    decode is returned unchanged.

    Args:
        signal: ORM row.

    Returns:
        dict: Column name to value.
    """
    item = signal.to_dict()
    raw_targets = item.get("cashout_targets")
    if raw_targets:
        try:
            item["cashout_targets"] = json.loads(raw_targets)
        except ValueError:
            logger.warning("cashout_targets_undecodable", signal_id=signal.id)
    return item


class SignalService:
    """
    Service for storing and querying signals.

    PURPOSE: Keep every SQL statement against the signals table in one place.
    All reads are ordered newest first by timestamp unless stated otherwise.

    CALLED BY: Signal API routes, live feed
    """

    @staticmethod
    async def create_signal(db: AsyncSession, signal_data: SignalCreate) -> Signal:
        """
        Insert a new signal row.

        PURPOSE: Persist an ingested signal. A null or absent source becomes 'inference';
        cashout_targets is stored as JSON text whenever it is not null, empty list included.

        CALLED BY: POST /api/signals endpoint

        Args:
            db: Async database session
            signal_data: Validated SignalCreate payload

        Returns:
            Signal: The stored row

        Raises:
            SignalStoreError: On any store failure, including a duplicate
                (platform, round_id) pair
        """
        signal = Signal(
            id=signal_data.id,
            platform=signal_data.platform,
            round_id=signal_data.round_id,
            timestamp=signal_data.timestamp,
            predicted_class=signal_data.predicted_class,
            predicted_multiplier=signal_data.predicted_multiplier,
            confidence=signal_data.confidence,
            model_version=signal_data.model_version,
            recommended_action=signal_data.recommended_action,
            suggested_bet_pct=signal_data.suggested_bet_pct,
            cashout_targets=(
                json.dumps(signal_data.cashout_targets)
                if signal_data.cashout_targets is not None
                else None
            ),
            source=signal_data.source if signal_data.source is not None else DEFAULT_SIGNAL_SOURCE,
            created_at=signal_data.created_at,
        )

        try:
            db.add(signal)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            duplicate = _is_unique_violation(e)
            logger.warning(
                "signal_insert_conflict" if duplicate else "signal_insert_rejected",
                signal_id=signal_data.id,
                platform=signal_data.platform,
                round_id=signal_data.round_id,
                error=str(e.orig),
            )
            raise SignalStoreError("signal violates a store constraint", duplicate=duplicate) from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                "signal_insert_failed",
                signal_id=signal_data.id,
                error=str(e),
                exception_type=type(e).__name__,
            )
            raise SignalStoreError("signal insert failed") from e

        logger.info(
            "signal_stored",
            signal_id=signal.id,
            platform=signal.platform,
            round_id=signal.round_id,
            predicted_class=signal.predicted_class,
            confidence=signal.confidence,
        )
        return signal

    @staticmethod
    async def get_signal(db: AsyncSession, signal_id: str) -> Optional[Signal]:
        """Return the signal with this id, or None."""
        return await db.get(Signal, signal_id)

    @staticmethod
    async def get_latest(
        db: AsyncSession,
        platform: Optional[str] = None,
        limit: int = 20,
    ) -> List[Signal]:
        """
        Return the most recent signals.

        CALLED BY: GET /api/signals/latest, live feed polling (limit=1)

        Args:
            db: Async database session
            platform: Optional platform filter
            limit: Maximum number of rows

        Returns:
            list[Signal]: Newest first
        """
        stmt = select(Signal)
        if platform:
            stmt = stmt.where(Signal.platform == platform)
        stmt = stmt.order_by(desc(Signal.timestamp)).limit(limit)

        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_signals(
        db: AsyncSession,
        platform: Optional[str] = None,
        from_ts: Optional[int] = None,
        to_ts: Optional[int] = None,
        limit: int = 100,
    ) -> List[Signal]:
        """
        Return signals matching optional filters.

        CALLED BY: GET /api/signals

        Args:
            db: Async database session
            platform: Optional platform filter
            from_ts: Optional inclusive lower bound on timestamp (epoch ms)
            to_ts: Optional inclusive upper bound on timestamp (epoch ms)
            limit: Maximum number of rows

        Returns:
            list[Signal]: Newest first
        """
        conditions = []
        if platform:
            conditions.append(Signal.platform == platform)
        if from_ts is not None:
            conditions.append(Signal.timestamp >= from_ts)
        if to_ts is not None:
            conditions.append(Signal.timestamp <= to_ts)

        stmt = _where(select(Signal), conditions).order_by(desc(Signal.timestamp)).limit(limit)

        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_platforms(db: AsyncSession) -> List[str]:
        """Distinct platform names, alphabetical."""
        stmt = select(Signal.platform).distinct().order_by(Signal.platform)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_stats(db: AsyncSession, platform: Optional[str] = None) -> SignalStats:
        """
        Aggregate signal statistics.

        PURPOSE: Count signals, count them per predicted class, and find the
        latest timestamp, all under the same optional platform filter so that
        the per-class counts sum to the total.

        CALLED BY: GET /api/stats

        Args:
            db: Async database session
            platform: Optional platform filter

        Returns:
            SignalStats: total, by_class, last_ts
        """
        conditions = [Signal.platform == platform] if platform else []

        total_stmt = _where(select(func.count()).select_from(Signal), conditions)
        total = (await db.execute(total_stmt)).scalar_one()

        by_class_stmt = (
            _where(select(Signal.predicted_class, func.count().label("n")), conditions)
            .group_by(Signal.predicted_class)
            .order_by(Signal.predicted_class)
        )
        by_class = [
            ClassCount(predicted_class=row.predicted_class, n=row.n)
            for row in (await db.execute(by_class_stmt)).all()
        ]

        last_stmt = _where(select(func.max(Signal.timestamp)), conditions)
        last_ts = (await db.execute(last_stmt)).scalar_one_or_none()

        return SignalStats(total=total, by_class=by_class, last_ts=last_ts)
