"""Pydantic request/response models for goals, profiles and sync."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from src.models.base import VibeHealthBase
from src.wellness.base import (
    DEFAULT_ACTIVITY_LEVEL,
    ActivityLevel,
    BiologicalSex,
    GoalSet,
    GoalSource,
    MetricKind,
    UserProfile,
)
from src.wellness.engine import OnboardingOutcome, SaveOutcome
from src.wellness.goals.calculators import CalculationBreakdown
from src.wellness.sync.coordinator import SyncOutcome, SyncOutcomeKind
from src.wellness.sync.policy import ConnectivityRequirement, OfflineOperation
from src.wellness.sync.status import SyncStatus


# ---------- Profile ----------

class ProfileIn(VibeHealthBase):
    """Profile as entered during onboarding or editing.

    Range checks are left to the calculators: an out-of-range value still
    saves and falls back to default goals.
    """

    user_id: str = Field(min_length=1)
    age: int | None = None
    sex: BiologicalSex | None = None
    height_cm: float | None = None
    weight_kg: float | None = None
    activity_level: ActivityLevel = DEFAULT_ACTIVITY_LEVEL

    def to_domain(self) -> UserProfile:
        return UserProfile(
            user_id=self.user_id,
            age=self.age,
            sex=self.sex,
            height_cm=self.height_cm,
            weight_kg=self.weight_kg,
            activity_level=self.activity_level,
        )


# ---------- Goals ----------

class GoalOut(VibeHealthBase):
    metric: MetricKind
    value: int
    source: GoalSource


class CalculationFailureOut(VibeHealthBase):
    metric: MetricKind
    reason: str


class GoalSetOut(VibeHealthBase):
    user_id: str
    steps: GoalOut
    calories: GoalOut
    heart_points: GoalOut
    computed_at: datetime
    is_fallback: bool
    failures: list[CalculationFailureOut] = Field(default_factory=list)
    summary: str

    @classmethod
    def from_domain(cls, goals: GoalSet) -> "GoalSetOut":
        return cls(
            user_id=goals.user_id,
            steps=GoalOut.model_validate(goals.steps),
            calories=GoalOut.model_validate(goals.calories),
            heart_points=GoalOut.model_validate(goals.heart_points),
            computed_at=goals.computed_at,
            is_fallback=goals.is_fallback,
            failures=[CalculationFailureOut.model_validate(f) for f in goals.failures],
            summary=goals.summary(),
        )


class BreakdownOut(VibeHealthBase):
    metric: MetricKind
    base: float
    factors: dict[str, float]
    raw_value: float
    final_value: int
    bounds_applied: bool
    equation: str | None = None
    explanation: str

    @classmethod
    def from_domain(cls, breakdown: CalculationBreakdown) -> "BreakdownOut":
        return cls(
            metric=breakdown.metric,
            base=breakdown.base,
            factors=breakdown.factors,
            raw_value=breakdown.raw_value,
            final_value=breakdown.final_value,
            bounds_applied=breakdown.bounds_applied,
            equation=breakdown.equation,
            explanation=breakdown.explanation(),
        )


class GoalBreakdownOut(VibeHealthBase):
    """Per-metric breakdown; ``None`` where the metric falls back."""

    user_id: str
    steps: BreakdownOut | None = None
    calories: BreakdownOut | None = None
    heart_points: BreakdownOut | None = None
    fallback_explanation: str | None = None


# ---------- Saves ----------

class SaveOutcomeOut(VibeHealthBase):
    record_id: str
    synced: bool
    pending: bool
    message: str
    error_kind: str | None = None

    @classmethod
    def from_domain(cls, outcome: SaveOutcome) -> "SaveOutcomeOut":
        error = outcome.attempt.error if outcome.attempt else None
        return cls(
            record_id=outcome.record_id,
            synced=outcome.synced,
            pending=outcome.pending,
            message=outcome.message,
            error_kind=error.kind if error else None,
        )


class OnboardingOut(VibeHealthBase):
    goals: GoalSetOut
    profile: SaveOutcomeOut
    goals_saved: SaveOutcomeOut

    @classmethod
    def from_domain(cls, outcome: OnboardingOutcome) -> "OnboardingOut":
        return cls(
            goals=GoalSetOut.from_domain(outcome.goals),
            profile=SaveOutcomeOut.from_domain(outcome.profile),
            goals_saved=SaveOutcomeOut.from_domain(outcome.goals_saved),
        )


# ---------- Sync ----------

class SyncOutcomeOut(VibeHealthBase):
    kind: SyncOutcomeKind
    synced_count: int
    failed_count: int
    failed_ids: list[str] = Field(default_factory=list)
    message: str
    finished_at: datetime

    @classmethod
    def from_domain(cls, outcome: SyncOutcome) -> "SyncOutcomeOut":
        return cls(
            kind=outcome.kind,
            synced_count=outcome.synced_count,
            failed_count=outcome.failed_count,
            failed_ids=outcome.failed_ids,
            message=outcome.message,
            finished_at=outcome.finished_at,
        )


class StatusOut(VibeHealthBase):
    status: SyncStatus
    message: str
    pending_count: int


class PendingOut(VibeHealthBase):
    pending_count: int


class PolicyOut(VibeHealthBase):
    operation: OfflineOperation
    requirement: ConnectivityRequirement
    can_proceed: bool


class ConnectivityIn(VibeHealthBase):
    online: bool | None
