"""
PURPOSE: Pytest fixtures for Aviator Signals tests.

Provides shared test data and collaborators including:
- Test configuration settings (file-backed SQLite per test)
- Async engine, session factory and session on a fresh schema
- Application running inside its lifespan, with an httpx client
- Signed request helper and signal body factory
- Fake chat webhooks served through httpx.MockTransport
"""

import json
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from aviator_signals.api.auth import compute_signature
from aviator_signals.config.settings import Settings
from aviator_signals.db.engine import create_all, create_engine, create_session_factory
from aviator_signals.main import create_app
from aviator_signals.utils.time_utils import now_ms

TEST_SECRET = "test-ingest-secret"
TELEGRAM_HOST = "api.telegram.org"
DISCORD_HOST = "discord.test"
DISCORD_URL = f"https://{DISCORD_HOST}/api/webhooks/1/token"


class FakeWebhooks:
    """
    Callable handler for httpx.MockTransport recording outbound webhook calls.

    Attributes:
        requests: Every request received, in order.
        status_codes: Response status per host (default 200).
        failing_hosts: Hosts whose requests raise httpx.ConnectError.
    """

    def __init__(self) -> None:
        self.requests = []
        self.status_codes: Dict[str, int] = {}
        self.failing_hosts = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host in self.failing_hosts:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(self.status_codes.get(host, 200), json={"ok": True})

    def bodies_for(self, host: str) -> list:
        return [json.loads(r.content) for r in self.requests if r.url.host == host]


@pytest.fixture
def test_settings(tmp_path):
    """
    PURPOSE: Settings override with test values.

    Provides a Settings object with test-appropriate defaults:
    - SQLite file under the test's tmp_path
    - In-process event bus (no Redis)
    - Known ingestion secret
    - Read throttling disabled, alerting disabled

    Returns:
        Settings: Configuration object with test values.
    """
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'signals.db'}",
        DB_AUTO_CREATE=True,
        REDIS_URL="",
        INGEST_HMAC_SECRET=TEST_SECRET,
        INGEST_MAX_SKEW_SECONDS=0,
        INGEST_RATE_LIMIT_PER_MIN=240,
        READ_RATE_LIMIT_ENABLED=False,
        ALERT_MIN_CONFIDENCE=None,
        TELEGRAM_BOT_TOKEN="",
        TELEGRAM_CHAT_ID="",
        DISCORD_WEBHOOK_URL="",
        LIVE_FEED_MODE="push",
        APP_ENV="test",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def alert_settings(test_settings):
    """Test settings with both chat channels configured and a 0.8 alert threshold."""
    return test_settings.model_copy(
        update={
            "ALERT_MIN_CONFIDENCE": 0.8,
            "TELEGRAM_BOT_TOKEN": "tok",
            "TELEGRAM_CHAT_ID": "chat-1",
            "DISCORD_WEBHOOK_URL": DISCORD_URL,
        }
    )


@pytest.fixture
def fake_webhooks():
    return FakeWebhooks()


@pytest_asyncio.fixture
async def session_factory(test_settings):
    """
    PURPOSE: Session factory bound to a fresh schema.

    Returns:
        async_sessionmaker: Factory producing AsyncSession objects.
    """
    engine = create_engine(test_settings)
    await create_all(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def async_session(session_factory):
    """
    PURPOSE: Async session for testing services directly.

    Returns:
        AsyncSession: SQLAlchemy async session on the test database.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def build_app(fake_webhooks):
    """
    PURPOSE: Factory running an application with given settings inside its lifespan.

    Usage:
        async with build_app(settings) as (app, client):
            ...

    Returns:
        Callable returning an async context manager of (FastAPI, httpx.AsyncClient).
    """

    @asynccontextmanager
    async def _build(settings: Settings):
        application = create_app(settings, webhook_transport=httpx.MockTransport(fake_webhooks))
        async with application.router.lifespan_context(application):
            transport = httpx.ASGITransport(app=application)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                yield application, client

    return _build


@pytest_asyncio.fixture
async def app_client(build_app, test_settings):
    async with build_app(test_settings) as pair:
        yield pair


@pytest.fixture
def app(app_client):
    return app_client[0]


@pytest.fixture
def client(app_client):
    return app_client[1]


@pytest.fixture
def make_signal():
    """
    PURPOSE: Factory for valid ingestion bodies.

    Returns:
        Callable[..., dict]: Keyword overrides replace fields of the default
        body (id s1, platform demo, round r1).
    """

    def _make(**overrides: Any) -> Dict[str, Any]:
        body = {
            "id": "s1",
            "platform": "demo",
            "round_id": "r1",
            "timestamp": 1700000000000,
            "predicted_class": "high",
            "confidence": 0.9,
            "model_version": "v1",
            "recommended_action": "BET",
            "created_at": 1700000000000,
        }
        body.update(overrides)
        return body

    return _make


@pytest.fixture
def sign():
    """
    PURPOSE: Sign a request body the way a producer does.

    Returns:
        Callable returning (raw_body, headers). body may be a dict (JSON
        encoded) or raw bytes.
    """

    def _sign(
        body: Any,
        secret: str = TEST_SECRET,
        timestamp: Optional[str] = None,
    ) -> Tuple[bytes, Dict[str, str]]:
        raw = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
        ts = timestamp or str(now_ms())
        headers = {
            "content-type": "application/json",
            "x-timestamp": ts,
            "x-signature": compute_signature(secret, raw, ts),
        }
        return raw, headers

    return _sign


@pytest.fixture
def post_signal(sign):
    """
    PURPOSE: POST a signed body to /api/signals.

    Returns:
        Async callable (client, body, ip=None) -> httpx.Response.
    """

    async def _post(client: httpx.AsyncClient, body: Any, ip: Optional[str] = None) -> httpx.Response:
        raw, headers = sign(body)
        if ip is not None:
            headers["cf-connecting-ip"] = ip
        return await client.post("/api/signals", content=raw, headers=headers)

    return _post
