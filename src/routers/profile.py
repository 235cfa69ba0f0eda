"""Profile save and onboarding endpoints.

Both are offline-first: the response is 200 once the data is saved
locally, with ``pending`` telling the caller whether it still has to sync.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from src.dependencies import Engine
from src.models.wellness import OnboardingOut, ProfileIn, SaveOutcomeOut
from src.wellness.base import UserProfile

router = APIRouter(tags=["profile"])


@router.put("/profile", response_model=OnboardingOut)
async def save_profile(engine: Engine, body: ProfileIn) -> Any:
    """Save an edited profile and the goals recalculated from it."""
    previous = await engine.get_goals(body.user_id)
    outcome = await engine.update_profile(body.to_domain(), previous)
    return OnboardingOut.from_domain(outcome)


@router.get("/profile/{user_id}", response_model=ProfileIn)
async def get_profile(user_id: str, engine: Engine) -> Any:
    profile: UserProfile | None = await engine.get_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return ProfileIn.model_validate(profile)


@router.put("/profile/{user_id}/local", response_model=SaveOutcomeOut)
async def save_profile_only(user_id: str, engine: Engine, body: ProfileIn) -> Any:
    """Save the profile without touching goals (mid-onboarding drafts)."""
    if body.user_id != user_id:
        raise HTTPException(status_code=400, detail="user_id does not match path")
    outcome = await engine.save_profile_offline(body.to_domain())
    return SaveOutcomeOut.from_domain(outcome)


@router.post("/onboarding/complete", response_model=OnboardingOut)
async def complete_onboarding(engine: Engine, body: ProfileIn) -> Any:
    outcome = await engine.complete_onboarding(body.to_domain())
    return OnboardingOut.from_domain(outcome)
