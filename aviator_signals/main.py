"""
PURPOSE: Main FastAPI application factory and lifecycle management for Aviator Signals.

Initializes the FastAPI application with:
- API routers (signals, alerts, system) and the dashboard page
- CORS middleware and slowapi throttling
- Exception handlers rendering {"error": <code>} bodies
- Startup (database, event bus, HTTP client, alert worker, live feed)
- Shutdown (worker drain, resource cleanup)
- Metadata from version.json

Settings are built once and injected: create_app(settings) keeps them on
app.state and every collaborator built at startup is stored there too.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded

from aviator_signals.api import api_router
from aviator_signals.config.settings import Settings, get_settings
from aviator_signals.core.errors import ApiError
from aviator_signals.core.rate_limit import IngestRateLimiter, limiter
from aviator_signals.db.engine import create_all, create_engine, create_session_factory
from aviator_signals.events.bus import EventBus
from aviator_signals.services.alert_service import AlertDispatcher
from aviator_signals.services.live_feed import LiveFeed
from aviator_signals.services.notifier import WebhookNotifier, create_http_client
from aviator_signals.utils.logger import get_logger, setup_logging
from aviator_signals.version import get_version, version_label
from aviator_signals.workers.alert_worker import AlertWorker


logger = get_logger(__name__)

STATIC_DIR = Path(__file__).parent / "static"


# ════════════════════════════════════════════════════════════════
# Lifecycle Events
# ════════════════════════════════════════════════════════════════


async def on_startup(app: FastAPI) -> None:
    """
    PURPOSE: Build every runtime collaborator and store it on app.state.

    CALLED BY: FastAPI lifespan startup

    Tasks:
        1. Setup logging with configured level
        2. Create the engine and, if enabled, the schema
        3. Connect the event bus (Redis when configured)
        4. Create the webhook client, notifier and alert dispatcher
        5. Start the alert worker
        6. Build the ingestion limiter and live feed
    """
    settings: Settings = app.state.settings
    try:
        setup_logging(settings.LOG_LEVEL)
        logger.info(
            "application_startup_starting",
            version=version_label(),
            log_level=settings.LOG_LEVEL,
            app_env=settings.APP_ENV,
        )

        insecure = settings.get_insecure_defaults()
        if insecure:
            logger.warning(
                "insecure_default_credentials",
                message="Ingestion secret missing: every signed request will be rejected.",
                settings=insecure,
            )
        if settings.INGEST_MAX_SKEW_SECONDS <= 0:
            logger.warning(
                "ingest_replay_window_disabled",
                message="x-timestamp freshness is not checked; signed requests can be replayed.",
            )

        engine = create_engine(settings)
        app.state.engine = engine
        app.state.session_factory = create_session_factory(engine)
        if settings.DB_AUTO_CREATE:
            await create_all(engine)
            logger.info("database_schema_ready")

        event_bus = EventBus(settings.REDIS_URL)
        await event_bus.connect()
        app.state.event_bus = event_bus
        logger.info("event_bus_connected", distributed=event_bus.is_distributed)

        http_client = create_http_client(settings, transport=app.state.webhook_transport)
        app.state.http_client = http_client
        notifier = WebhookNotifier(settings, http_client)
        app.state.notifier = notifier

        dispatcher = AlertDispatcher(
            app.state.session_factory,
            notifier,
            settings.ALERT_MIN_CONFIDENCE,
        )
        app.state.alert_dispatcher = dispatcher
        alert_worker = AlertWorker(dispatcher)
        alert_worker.start()
        app.state.alert_worker = alert_worker
        logger.info(
            "alerting_configured",
            channels=settings.alert_channels(),
            min_confidence=settings.ALERT_MIN_CONFIDENCE,
        )

        app.state.ingest_limiter = IngestRateLimiter(settings.INGEST_RATE_LIMIT_PER_MIN)
        app.state.live_feed = LiveFeed(
            app.state.session_factory,
            event_bus,
            mode=settings.LIVE_FEED_MODE,
            interval=settings.LIVE_FEED_POLL_SECONDS,
        )

        logger.info("application_startup_complete")

    except Exception as e:
        logger.critical("application_startup_failed", error=str(e))
        raise


async def on_shutdown(app: FastAPI) -> None:
    """
    PURPOSE: Execute shutdown tasks to gracefully close resources.

    CALLED BY: FastAPI lifespan shutdown

    Tasks:
        1. Drain and stop the alert worker
        2. Close the webhook client
        3. Disconnect the event bus
        4. Dispose the engine
    """
    try:
        logger.info("application_shutdown_starting")

        await app.state.alert_worker.stop()
        await app.state.http_client.aclose()
        await app.state.event_bus.disconnect()
        await app.state.engine.dispose()

        logger.info("application_shutdown_complete")

    except Exception as e:
        logger.error("application_shutdown_error", error=str(e))
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    PURPOSE: Manage application lifespan with startup and shutdown events.

    CALLED BY: FastAPI during application startup and shutdown
    """
    await on_startup(app)

    yield

    await on_shutdown(app)


# ════════════════════════════════════════════════════════════════
# Exception Handlers
# ════════════════════════════════════════════════════════════════


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Render an ApiError as {"error": code}."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Render slowapi throttling with the same body as the ingestion limiter."""
    logger.warning("read_rate_limited", path=request.url.path, limit=str(exc.detail))
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"error": "rate_limited"},
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    PURPOSE: Handle query/body validation errors with consistent JSON response.

    CALLED BY: FastAPI when request validation fails

    Returns:
        JSONResponse: 422 {"error": "invalid_request", "details": [...]}
    """
    logger.warning(
        "request_validation_failed",
        path=request.url.path,
        method=request.method,
        error_count=len(exc.errors())
    )

    safe_errors = jsonable_encoder(
        exc.errors(),
        custom_encoder={
            ValueError: lambda e: str(e),
            Exception: lambda e: str(e),
        },
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "invalid_request", "details": safe_errors},
    )


async def general_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    PURPOSE: Handle unexpected exceptions with logging and safe error response.

    Returns:
        JSONResponse: 500 {"error": "internal_error"} without internals
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exception_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error"},
    )


# ════════════════════════════════════════════════════════════════
# FastAPI Application Factory
# ════════════════════════════════════════════════════════════════


def create_app(
    settings: Optional[Settings] = None,
    webhook_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    PURPOSE: Create and configure FastAPI application with all routers, middleware, and handlers.

    CALLED BY: Module-level app below (uvicorn entrypoint), tests

    Args:
        settings: Configuration; defaults to the process-wide get_settings().
        webhook_transport: Optional httpx transport for outbound webhooks.

    Returns:
        FastAPI: Configured FastAPI application ready to run

    Raises:
        ValueError: If required secrets are missing outside development
    """
    settings = settings or get_settings()
    settings.validate_credentials()

    try:
        version_data = get_version()
        version = version_data.get("version", "unknown")
        description = f"Aviator signal ingestion and dashboard - {version_data.get('codename', '')}"
    except Exception as e:
        logger.warning("version_data_unavailable", error=str(e))
        version = "unknown"
        description = "Aviator signal ingestion and dashboard"

    app = FastAPI(
        title="Aviator Signals",
        description=description,
        version=version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.webhook_transport = webhook_transport

    # ────────────────────────────────────────────────────────────
    # Middleware
    # ────────────────────────────────────────────────────────────

    limiter.enabled = settings.READ_RATE_LIMIT_ENABLED
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials="*" not in settings.CORS_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Timestamp", "X-Signature"],
    )

    # ────────────────────────────────────────────────────────────
    # Routes
    # ────────────────────────────────────────────────────────────

    app.include_router(api_router)
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    @app.get("/", include_in_schema=False)
    async def dashboard() -> FileResponse:
        """Dashboard page; data is loaded client-side by /static/app.js."""
        return FileResponse(STATIC_DIR / "index.html", media_type="text/html")

    # ────────────────────────────────────────────────────────────
    # Exception Handlers
    # ────────────────────────────────────────────────────────────

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info(
        "fastapi_application_created",
        version=version,
        api_prefix="/api",
        live_feed_mode=settings.LIVE_FEED_MODE,
    )

    return app


# Create the application
app = create_app()


def run() -> None:
    """
    PURPOSE: Run the application with Uvicorn.

    Usage:
        aviator-signals
        OR
        python -m aviator_signals.main
        OR
        uvicorn aviator_signals.main:app --host 0.0.0.0 --port 8000
    """
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "aviator_signals.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
