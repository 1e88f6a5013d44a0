"""
PURPOSE: API router initialization and exports for Aviator Signals.

This module aggregates all API routers (signals, alerts, system) into a
single api_router that is included in the main FastAPI application.
"""

from fastapi import APIRouter

from aviator_signals.api.routes_alerts import router as alerts_router
from aviator_signals.api.routes_signals import router as signals_router
from aviator_signals.api.routes_system import router as system_router

# Create the main API router
api_router = APIRouter(prefix="/api")

# Include all sub-routers
api_router.include_router(system_router)
api_router.include_router(signals_router)
api_router.include_router(alerts_router)

__all__ = ["api_router"]
