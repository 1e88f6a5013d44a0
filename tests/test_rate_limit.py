"""
PURPOSE: Tests for ingestion rate limiting.

Tests the persisted fixed-window limiter:
- Client IP resolution from the trusted proxy header
- Admission up to the ceiling, refusal past it
- Window rollover and pruning of finished windows
- Fail-open behaviour on storage errors
- Ordering relative to authentication and validation on the endpoint
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from starlette.requests import Request

from aviator_signals.core.rate_limit import IngestRateLimiter, client_ip, rate_limit_key
from aviator_signals.models.system import RateLimit

WINDOW_START = 1_700_000_040_000  # multiple of 60_000


def _request(headers):
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/signals",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
    }
    return Request(scope)


class FakeClock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class TestClientIp:
    """Test client IP resolution."""

    def test_single_address(self):
        assert client_ip(_request({"cf-connecting-ip": "203.0.113.7"}), "cf-connecting-ip") == "203.0.113.7"

    def test_first_entry_of_chain(self):
        request = _request({"cf-connecting-ip": " 203.0.113.7 , 10.0.0.1"})
        assert client_ip(request, "cf-connecting-ip") == "203.0.113.7"

    def test_missing_header_is_unknown(self):
        assert client_ip(_request({}), "cf-connecting-ip") == "unknown"

    def test_custom_header(self):
        request = _request({"x-forwarded-for": "198.51.100.2, 10.0.0.1"})
        assert client_ip(request, "x-forwarded-for") == "198.51.100.2"


class TestRateLimitKey:
    """Test the slowapi key used for read and test-alert throttling."""

    @staticmethod
    def _keyed_request(headers, header_name="cf-connecting-ip"):
        request = _request(headers)
        settings = SimpleNamespace(TRUSTED_IP_HEADER=header_name)
        request.scope["app"] = SimpleNamespace(state=SimpleNamespace(settings=settings))
        request.scope["client"] = ("127.0.0.1", 51000)
        return request

    def test_uses_trusted_header(self):
        request = self._keyed_request({"cf-connecting-ip": "203.0.113.7, 10.0.0.1"})
        assert rate_limit_key(request) == "203.0.113.7"

    def test_honours_configured_header(self):
        request = self._keyed_request({"x-real-ip": "198.51.100.2"}, header_name="x-real-ip")
        assert rate_limit_key(request) == "198.51.100.2"

    def test_falls_back_to_peer_address(self):
        assert rate_limit_key(self._keyed_request({})) == "127.0.0.1"


class TestIngestRateLimiter:
    """Test the persisted fixed-window counter."""

    @pytest.mark.asyncio
    async def test_admits_up_to_limit_then_refuses(self, async_session):
        limiter = IngestRateLimiter(3, clock=FakeClock(WINDOW_START + 5_000))

        results = [await limiter.hit(async_session, "1.2.3.4") for _ in range(4)]

        assert results == [True, True, True, False]
        row = await async_session.get(RateLimit, f"ingest:1.2.3.4:{WINDOW_START}", populate_existing=True)
        assert row.count == 3
        assert row.window_start == WINDOW_START

    @pytest.mark.asyncio
    async def test_ips_are_counted_separately(self, async_session):
        limiter = IngestRateLimiter(1, clock=FakeClock(WINDOW_START))

        assert await limiter.hit(async_session, "1.1.1.1") is True
        assert await limiter.hit(async_session, "2.2.2.2") is True
        assert await limiter.hit(async_session, "1.1.1.1") is False

    @pytest.mark.asyncio
    async def test_next_window_admits_again_and_prunes_old_rows(self, async_session):
        clock = FakeClock(WINDOW_START + 59_999)
        limiter = IngestRateLimiter(1, clock=clock)

        assert await limiter.hit(async_session, "1.2.3.4") is True
        assert await limiter.hit(async_session, "1.2.3.4") is False

        clock.now = WINDOW_START + 60_000
        assert await limiter.hit(async_session, "1.2.3.4") is True

        keys = (await async_session.execute(select(RateLimit.key))).scalars().all()
        assert keys == [f"ingest:1.2.3.4:{WINDOW_START + 60_000}"]

    @pytest.mark.asyncio
    async def test_storage_error_fails_open(self):
        db = MagicMock()
        db.get = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("db down")))
        db.rollback = AsyncMock()
        limiter = IngestRateLimiter(1, clock=FakeClock(WINDOW_START))

        assert await limiter.hit(db, "1.2.3.4") is True
        db.rollback.assert_awaited_once()

    def test_key_format(self):
        assert IngestRateLimiter(5).key_for("1.2.3.4", 60_000) == "ingest:1.2.3.4:60000"


class TestIngestEndpointRateLimit:
    """Test HTTP 429 on the ingestion endpoint."""

    @pytest.mark.asyncio
    async def test_request_past_limit_gets_429(self, build_app, test_settings, make_signal, post_signal):
        settings = test_settings.model_copy(update={"INGEST_RATE_LIMIT_PER_MIN": 2})
        async with build_app(settings) as (app, client):
            app.state.ingest_limiter._clock = FakeClock(WINDOW_START)
            first = await post_signal(client, make_signal(id="a", round_id="1"), ip="9.9.9.9")
            second = await post_signal(client, make_signal(id="b", round_id="2"), ip="9.9.9.9")
            third = await post_signal(client, make_signal(id="c", round_id="3"), ip="9.9.9.9")
            other_ip = await post_signal(client, make_signal(id="d", round_id="4"), ip="8.8.8.8")

        assert [first.status_code, second.status_code] == [200, 200]
        assert third.status_code == 429
        assert third.json() == {"error": "rate_limited"}
        assert other_ip.status_code == 200

    @pytest.mark.asyncio
    async def test_limit_checked_before_body_validation(self, build_app, test_settings, post_signal):
        settings = test_settings.model_copy(update={"INGEST_RATE_LIMIT_PER_MIN": 1})
        async with build_app(settings) as (app, client):
            app.state.ingest_limiter._clock = FakeClock(WINDOW_START)
            first = await post_signal(client, {"platform": "demo"}, ip="9.9.9.9")
            second = await post_signal(client, {"platform": "demo"}, ip="9.9.9.9")

        assert first.status_code == 400
        assert second.status_code == 429

    @pytest.mark.asyncio
    async def test_unauthenticated_requests_do_not_count(
        self, build_app, test_settings, make_signal, post_signal
    ):
        settings = test_settings.model_copy(update={"INGEST_RATE_LIMIT_PER_MIN": 1})
        async with build_app(settings) as (_, client):
            for _ in range(3):
                rejected = await client.post(
                    "/api/signals",
                    json=make_signal(),
                    headers={"cf-connecting-ip": "9.9.9.9"},
                )
                assert rejected.status_code == 401
            accepted = await post_signal(client, make_signal(), ip="9.9.9.9")

        assert accepted.status_code == 200

    @pytest.mark.asyncio
    async def test_requests_without_ip_header_share_unknown_bucket(
        self, build_app, test_settings, make_signal, post_signal
    ):
        settings = test_settings.model_copy(update={"INGEST_RATE_LIMIT_PER_MIN": 1})
        async with build_app(settings) as (app, client):
            app.state.ingest_limiter._clock = FakeClock(WINDOW_START)
            await post_signal(client, make_signal(id="a", round_id="1"))
            refused = await post_signal(client, make_signal(id="b", round_id="2"))
            async with app.state.session_factory() as db:
                keys = (await db.execute(select(RateLimit.key))).scalars().all()

        assert refused.status_code == 429
        assert len(keys) == 1
        assert keys[0].startswith("ingest:unknown:")
