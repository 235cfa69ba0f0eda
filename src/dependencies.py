"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from src.wellness.engine import WellnessEngine


def get_engine(request: Request) -> WellnessEngine:
    """Return the engine created by the app lifespan."""
    engine: WellnessEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return engine


# Annotated shortcuts for route signatures
Engine = Annotated[WellnessEngine, Depends(get_engine)]
