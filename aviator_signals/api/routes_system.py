"""
PURPOSE: System-level API routes for Aviator Signals.
"""

from fastapi import APIRouter

router = APIRouter(tags=["system"])


@router.get("/health")
async def health() -> dict:
    """Liveness check: {"ok": true}."""
    return {"ok": True}
