"""Health check endpoint. Public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from src.config import get_settings
from src.dependencies import Engine
from src.services.database import get_pool

router = APIRouter(tags=["system"])
logger = logging.getLogger("vibehealth.health")


@router.get("/health")
async def health_check(engine: Engine) -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    When a Postgres store is configured, also performs a lightweight DB
    connectivity check.
    """
    settings = get_settings()
    db_state = "in_memory"
    if settings.database_url:
        db_state = "unreachable"
        try:
            pool = get_pool()
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            db_state = "connected"
        except Exception as exc:
            logger.warning("Health check DB probe failed: %s", exc)

    status = await engine.current_status()
    return {
        "status": "degraded" if db_state == "unreachable" else "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "database": db_state,
        "sync_status": status.value,
        "scheduler_running": engine.scheduler.running,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
