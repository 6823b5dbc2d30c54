"""Health check endpoint -- no auth required."""

from __future__ import annotations

import time

from fastapi import APIRouter, Request

router = APIRouter()

_start_time = time.monotonic()


@router.get("")
async def health_check(request: Request):
    """Return system health status. No auth required."""
    uptime = time.monotonic() - _start_time

    # Check database
    db_status = "ok"
    try:
        db = request.app.state.db
        await db.execute("SELECT 1")
    except Exception:
        db_status = "error"

    registry = getattr(request.app.state, "connection_registry", None)

    return {
        "status": "ok" if db_status == "ok" else "degraded",
        "uptime_seconds": round(uptime, 1),
        "database": db_status,
        "connections": len(registry) if registry is not None else 0,
        "version": "1.0.0",
    }
