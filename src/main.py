"""VibeHealth engine API: FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.config import get_settings
from src.middleware.security import SecurityHeadersMiddleware
from src.models.base import ErrorDetail
from src.routers import goals, health, profile, sync
from src.services import database
from src.wellness.base import EngineError, StorageError
from src.wellness.engine import build_engine
from src.wellness.sync.postgres_store import PostgresRecordStore

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("vibehealth")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logger.info(
        "Starting %s v%s [%s]",
        settings.app_name,
        settings.app_version,
        settings.environment,
    )

    store = None
    if settings.database_url:
        await database.init_pool(settings)
        store = PostgresRecordStore()

    engine = build_engine(settings, store=store)
    app.state.engine = engine
    engine.scheduler.start()

    probe_task = None
    if settings.connectivity_probe_url:
        probe_task = asyncio.create_task(
            engine.connectivity.probe_loop(settings.connectivity_probe_interval_seconds)
        )

    yield

    if probe_task:
        probe_task.cancel()
        await asyncio.gather(probe_task, return_exceptions=True)
    await engine.scheduler.stop()
    if settings.database_url:
        await database.close_pool()
    logger.info("%s shut down", settings.app_name)


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="VibeHealth Engine API",
        description=(
            "Personalised daily activity goals with offline-first, "
            "eventually consistent sync."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Security headers on every response
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS must be the innermost middleware so it can handle preflight
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Engine errors ----------

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
        status_code = 503 if isinstance(exc, StorageError) else 500
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content=ErrorDetail(
                detail=str(exc), user_message=exc.user_message, can_retry=exc.can_retry
            ).model_dump(),
        )

    # ---------- Health check (outside v1 prefix, always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(goals.router, prefix=v1_prefix)
    app.include_router(profile.router, prefix=v1_prefix)
    app.include_router(sync.router, prefix=v1_prefix)

    return app


app = create_app()
