"""
PURPOSE: Tests for SignalService storage and query behaviour.

Exercises the service against a real SQLite schema:
- Insert defaults and JSON encoding of cashout targets
- Uniqueness and check constraints
- Alert rows cascading with their signal
"""

import pytest
from sqlalchemy import delete, func, select

from aviator_signals.models.signal import Alert, Signal
from aviator_signals.schemas.signal import SignalCreate
from aviator_signals.services.signal_service import (
    SignalService,
    SignalStoreError,
    serialize_signal,
)


class TestCreateSignal:
    """Test signal inserts."""

    @pytest.mark.asyncio
    async def test_defaults_and_encoding(self, async_session, make_signal):
        signal = await SignalService.create_signal(
            async_session, SignalCreate(**make_signal(cashout_targets=[1.2, 3]))
        )

        assert signal.source == "inference"
        assert signal.cashout_targets == "[1.2, 3]"
        assert serialize_signal(signal)["cashout_targets"] == [1.2, 3]

    @pytest.mark.asyncio
    async def test_duplicate_round_flagged(self, async_session, make_signal):
        await SignalService.create_signal(async_session, SignalCreate(**make_signal(id="s1")))

        with pytest.raises(SignalStoreError) as exc_info:
            await SignalService.create_signal(async_session, SignalCreate(**make_signal(id="s2")))

        assert exc_info.value.duplicate is True
        count = (await async_session.execute(select(func.count()).select_from(Signal))).scalar_one()
        assert count == 1

    @pytest.mark.asyncio
    async def test_confidence_check_constraint(self, async_session, make_signal):
        data = SignalCreate(**make_signal()).model_copy(update={"confidence": 1.5})

        with pytest.raises(SignalStoreError) as exc_info:
            await SignalService.create_signal(async_session, data)

        assert exc_info.value.duplicate is False

    @pytest.mark.asyncio
    async def test_not_null_violation_not_flagged_duplicate(self, async_session, make_signal):
        data = SignalCreate(**make_signal()).model_copy(update={"platform": None})

        with pytest.raises(SignalStoreError) as exc_info:
            await SignalService.create_signal(async_session, data)

        assert exc_info.value.duplicate is False

    @pytest.mark.asyncio
    async def test_empty_values_kept_verbatim(self, async_session, make_signal):
        signal = await SignalService.create_signal(
            async_session, SignalCreate(**make_signal(cashout_targets=[], source=""))
        )

        assert signal.source == ""
        assert signal.cashout_targets == "[]"
        assert serialize_signal(signal)["cashout_targets"] == []


class TestSerializeSignal:
    def test_undecodable_targets_left_as_text(self):
        signal = Signal(
            id="s1",
            platform="demo",
            round_id="r1",
            timestamp=1,
            predicted_class="low",
            confidence=0.1,
            model_version="v1",
            recommended_action="WAIT",
            cashout_targets="not-json",
            created_at=1,
        )

        assert serialize_signal(signal)["cashout_targets"] == "not-json"


class TestQueries:
    """Test read helpers."""

    @pytest.mark.asyncio
    async def test_latest_orders_by_timestamp_not_insert_order(self, async_session, make_signal):
        for signal_id, ts in (("late", 3000), ("early", 1000), ("middle", 2000)):
            await SignalService.create_signal(
                async_session,
                SignalCreate(**make_signal(id=signal_id, round_id=signal_id, timestamp=ts)),
            )

        rows = await SignalService.get_latest(async_session, limit=3)

        assert [row.id for row in rows] == ["late", "middle", "early"]

    @pytest.mark.asyncio
    async def test_get_missing_signal(self, async_session):
        assert await SignalService.get_signal(async_session, "nope") is None


class TestAlertCascade:
    @pytest.mark.asyncio
    async def test_deleting_signal_removes_alerts(self, async_session, make_signal):
        await SignalService.create_signal(async_session, SignalCreate(**make_signal()))
        async_session.add(Alert(id="a1", signal_id="s1", channel="telegram", status="queued"))
        await async_session.commit()

        await async_session.execute(delete(Signal).where(Signal.id == "s1"))
        await async_session.commit()

        remaining = (await async_session.execute(select(func.count()).select_from(Alert))).scalar_one()
        assert remaining == 0
