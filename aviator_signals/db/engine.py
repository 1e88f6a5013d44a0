"""
PURPOSE: Async engine and session factory construction for Aviator Signals.

The engine is built once per application from the injected Settings and kept
on app.state; routes obtain sessions through the get_db dependency.
"""

from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from aviator_signals.config.settings import Settings
from aviator_signals.db.base import Base


def create_engine(settings: Settings) -> AsyncEngine:
    """
    PURPOSE: Create the async engine for the configured DATABASE_URL.

    SQLite connections get PRAGMA foreign_keys=ON so alert rows cascade
    with their signal. Pool sizing only applies to server databases.

    Args:
        settings: Application settings.

    Returns:
        AsyncEngine: Configured engine (no connection opened yet).
    """
    url = settings.DATABASE_URL
    is_sqlite = url.startswith("sqlite")

    if is_sqlite:
        engine = create_async_engine(url, echo=settings.DEBUG)

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    else:
        engine = create_async_engine(
            url,
            echo=settings.DEBUG,
            pool_pre_ping=True,
            pool_size=20,
            max_overflow=0,
        )

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory bound to engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_all(engine: AsyncEngine) -> None:
    """
    PURPOSE: Create every table and index that does not exist yet.

    CALLED BY: Application startup when DB_AUTO_CREATE is on, test fixtures
    """
    # Register all models on Base.metadata
    import aviator_signals.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """
    Async generator that yields database sessions for FastAPI Depends.

    Usage in routes:
        async def get_signal(db: AsyncSession = Depends(get_db)):
            ...
    """
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
