"""Goal calculation endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from src.dependencies import Engine
from src.models.wellness import (
    BreakdownOut,
    GoalBreakdownOut,
    GoalSetOut,
    ProfileIn,
)
from src.wellness.base import MetricKind
from src.wellness.goals.fallback import fallback_explanation

router = APIRouter(prefix="/goals", tags=["goals"])


@router.post("/calculate", response_model=GoalSetOut)
async def calculate_goals(engine: Engine, body: ProfileIn) -> Any:
    """Compute goals for a profile without saving anything."""
    goals = engine.calculate_goals(body.to_domain())
    return GoalSetOut.from_domain(goals)


@router.get("/{user_id}", response_model=GoalSetOut)
async def get_goals(user_id: str, engine: Engine) -> Any:
    goals = await engine.get_goals(user_id)
    if goals is None:
        raise HTTPException(status_code=404, detail="Goals not found")
    return GoalSetOut.from_domain(goals)


@router.get("/{user_id}/breakdown", response_model=GoalBreakdownOut)
async def get_breakdown(user_id: str, engine: Engine) -> Any:
    """Explain how each goal is derived from the user's saved profile."""
    profile = await engine.get_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")

    breakdowns = engine.orchestrator.breakdown(profile)
    out = {
        metric.value: BreakdownOut.from_domain(b) if b else None
        for metric, b in breakdowns.items()
    }
    explanation = None
    if any(b is None for b in breakdowns.values()):
        goals = engine.calculate_goals(profile)
        reason = goals.failures[0].reason if goals.failures else None
        explanation = fallback_explanation(reason)

    return GoalBreakdownOut(
        user_id=user_id,
        steps=out[MetricKind.steps.value],
        calories=out[MetricKind.calories.value],
        heart_points=out[MetricKind.heart_points.value],
        fallback_explanation=explanation,
    )
