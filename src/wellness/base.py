"""Canonical data models and error types for the VibeHealth wellness engine.

Every calculator, the fallback generator, the orchestrator and the sync
coordinator exchange these types.  Payloads are immutable values: an edit
produces a new UserProfile / GoalSet, never an in-place mutation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: str | datetime | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class BiologicalSex(str, Enum):
    male = "male"
    female = "female"
    other = "other"
    prefer_not_to_say = "prefer_not_to_say"


class ActivityLevel(str, Enum):
    """Self-reported activity level with its TDEE multiplier."""

    sedentary = "sedentary"
    light = "light"
    moderate = "moderate"
    active = "active"
    very_active = "very_active"

    @property
    def factor(self) -> float:
        return _ACTIVITY_FACTORS[self]

    @property
    def description(self) -> str:
        return _ACTIVITY_DESCRIPTIONS[self]


_ACTIVITY_FACTORS: dict[ActivityLevel, float] = {
    ActivityLevel.sedentary: 1.2,
    ActivityLevel.light: 1.375,
    ActivityLevel.moderate: 1.55,
    ActivityLevel.active: 1.725,
    ActivityLevel.very_active: 1.9,
}

_ACTIVITY_DESCRIPTIONS: dict[ActivityLevel, str] = {
    ActivityLevel.sedentary: "Little to no exercise, desk job",
    ActivityLevel.light: "Light exercise 1-3 days/week",
    ActivityLevel.moderate: "Moderate exercise 3-5 days/week",
    ActivityLevel.active: "Heavy exercise 6-7 days/week",
    ActivityLevel.very_active: "Very heavy exercise, physical job",
}

# Urban professionals default to light activity when nothing was reported
DEFAULT_ACTIVITY_LEVEL = ActivityLevel.light


class MetricKind(str, Enum):
    """The closed set of daily goal metrics."""

    steps = "steps"
    calories = "calories"
    heart_points = "heart_points"


class GoalSource(str, Enum):
    calculated = "calculated"
    fallback = "fallback"


class RecordKind(str, Enum):
    profile = "profile"
    goals = "goals"


# ---------------------------------------------------------------------------
# User profile
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UserProfile:
    """Identity plus physiological attributes used for goal derivation.

    All attributes except ``user_id`` are optional: onboarding can save a
    partial profile, and the calculators decide whether what is present is
    enough.  Units are metric.

    Attributes:
        user_id:        Authenticated user id (opaque string).
        age:            Age in whole years.
        sex:            Biological sex category.
        height_cm:      Height in centimetres.
        weight_kg:      Weight in kilograms.
        activity_level: Self-reported activity level.
    """

    user_id: str
    age: int | None = None
    sex: BiologicalSex | None = None
    height_cm: float | None = None
    weight_kg: float | None = None
    activity_level: ActivityLevel = DEFAULT_ACTIVITY_LEVEL

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "age": self.age,
            "sex": self.sex.value if self.sex else None,
            "height_cm": self.height_cm,
            "weight_kg": self.weight_kg,
            "activity_level": self.activity_level.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserProfile":
        sex = data.get("sex")
        level = data.get("activity_level")
        return cls(
            user_id=data["user_id"],
            age=data.get("age"),
            sex=BiologicalSex(sex) if sex else None,
            height_cm=data.get("height_cm"),
            weight_kg=data.get("weight_kg"),
            activity_level=ActivityLevel(level) if level else DEFAULT_ACTIVITY_LEVEL,
        )

    def sanitized(self) -> dict[str, str]:
        """Bracketed view of the profile that is safe to log."""

        def bracket(value: float | None, edges: tuple[float, float], labels: tuple[str, str, str]) -> str:
            if value is None:
                return "unknown"
            if value < edges[0]:
                return labels[0]
            if value < edges[1]:
                return labels[1]
            return labels[2]

        return {
            "age": bracket(self.age, (18, 65), ("youth", "adult", "older_adult")),
            "sex": self.sex.value if self.sex else "unknown",
            "height": bracket(self.height_cm, (160, 180), ("below_avg", "avg", "above_avg")),
            "weight": bracket(self.weight_kg, (60, 80), ("below_avg", "avg", "above_avg")),
            "activity_level": self.activity_level.value,
        }


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CalculationError:
    """Expected, recoverable failure of one calculator.

    Returned as a value, never raised: the orchestrator masks it with a
    fallback goal and keeps it on the GoalSet for diagnostics.
    """

    metric: MetricKind
    reason: str

    def __str__(self) -> str:
        return f"{self.metric.value}: {self.reason}"


@dataclass(frozen=True)
class Goal:
    """One daily goal value and where it came from."""

    metric: MetricKind
    value: int
    source: GoalSource

    def __post_init__(self) -> None:
        if self.value <= 0:
            raise ValueError(f"{self.metric.value} goal must be positive, got {self.value}")


@dataclass(frozen=True)
class MetricResult:
    """Outcome of a single calculator: exactly one of ``goal`` or ``error``."""

    metric: MetricKind
    goal: Goal | None = None
    error: CalculationError | None = None

    @property
    def ok(self) -> bool:
        return self.goal is not None

    @classmethod
    def success(cls, metric: MetricKind, value: int) -> "MetricResult":
        return cls(metric=metric, goal=Goal(metric, value, GoalSource.calculated))

    @classmethod
    def failure(cls, metric: MetricKind, reason: str) -> "MetricResult":
        return cls(metric=metric, error=CalculationError(metric, reason))


@dataclass(frozen=True)
class GoalSet:
    """A complete set of daily goals for one user.

    Never partially populated: all three goals are always present and
    positive.  ``failures`` lists the calculators that were masked by a
    fallback goal.

    Attributes:
        user_id:      Owner of the goals.
        steps:        Daily step goal.
        calories:     Daily calorie goal (kcal).
        heart_points: Daily heart-points goal.
        computed_at:  UTC timestamp of computation.
        failures:     Calculator errors absorbed by fallback.
    """

    user_id: str
    steps: Goal
    calories: Goal
    heart_points: Goal
    computed_at: datetime = field(default_factory=utc_now)
    failures: tuple[CalculationError, ...] = ()

    def __post_init__(self) -> None:
        for metric, goal in self.by_metric().items():
            if goal.metric is not metric:
                raise ValueError(f"Goal for {goal.metric.value} stored in the {metric.value} slot")

    def by_metric(self) -> dict[MetricKind, Goal]:
        return {
            MetricKind.steps: self.steps,
            MetricKind.calories: self.calories,
            MetricKind.heart_points: self.heart_points,
        }

    def source_of(self, metric: MetricKind) -> GoalSource:
        return self.by_metric()[metric].source

    @property
    def is_fallback(self) -> bool:
        return any(g.source is GoalSource.fallback for g in self.by_metric().values())

    def summary(self) -> str:
        return (
            f"Steps: {self.steps.value}, Calories: {self.calories.value}, "
            f"Heart Points: {self.heart_points.value}"
        )

    def sanitized(self) -> str:
        sources = ",".join(
            f"{m.value}={g.source.value}" for m, g in self.by_metric().items()
        )
        return (
            f"Goals(steps={self.steps.value}, calories={self.calories.value}, "
            f"heart_points={self.heart_points.value}, sources=[{sources}])"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "goals": {
                m.value: {"value": g.value, "source": g.source.value}
                for m, g in self.by_metric().items()
            },
            "computed_at": self.computed_at.isoformat(),
            "failures": [{"metric": f.metric.value, "reason": f.reason} for f in self.failures],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GoalSet":
        goals = {
            MetricKind(name): Goal(MetricKind(name), int(g["value"]), GoalSource(g["source"]))
            for name, g in data["goals"].items()
        }
        return cls(
            user_id=data["user_id"],
            steps=goals[MetricKind.steps],
            calories=goals[MetricKind.calories],
            heart_points=goals[MetricKind.heart_points],
            computed_at=_parse_ts(data.get("computed_at")) or utc_now(),
            failures=tuple(
                CalculationError(MetricKind(f["metric"]), f["reason"])
                for f in data.get("failures", [])
            ),
        )


# ---------------------------------------------------------------------------
# Syncable records
# ---------------------------------------------------------------------------

Payload = Union[UserProfile, GoalSet]


def record_id_for(kind: RecordKind, user_id: str) -> str:
    """Return the store key for a user's profile or goal record."""
    return f"{kind.value}:{user_id}"


@dataclass(frozen=True)
class SyncableRecord:
    """A payload plus its local sync bookkeeping.

    Invariant: ``is_dirty`` is True whenever ``last_synced_at`` is None or
    older than ``updated_at``.

    Attributes:
        record_id:      Store key (``profile:{user_id}`` / ``goals:{user_id}``).
        kind:           Which payload type this record holds.
        payload:        The UserProfile or GoalSet.
        is_dirty:       True until a push of this exact version succeeds.
        updated_at:     UTC time of the last local write.
        last_synced_at: UTC time of the last successful push, if any.
    """

    record_id: str
    kind: RecordKind
    payload: Payload
    is_dirty: bool = True
    updated_at: datetime = field(default_factory=utc_now)
    last_synced_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.is_dirty and (
            self.last_synced_at is None or self.updated_at > self.last_synced_at
        ):
            raise ValueError(
                f"Record {self.record_id} is marked clean but has unsynced changes"
            )

    def payload_dict(self) -> dict[str, Any]:
        return self.payload.to_dict()

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "kind": self.kind.value,
            "payload": self.payload_dict(),
            "is_dirty": self.is_dirty,
            "updated_at": self.updated_at.isoformat(),
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncableRecord":
        kind = RecordKind(data["kind"])
        payload_cls = UserProfile if kind is RecordKind.profile else GoalSet
        return cls(
            record_id=data["record_id"],
            kind=kind,
            payload=payload_cls.from_dict(data["payload"]),
            is_dirty=bool(data["is_dirty"]),
            updated_at=_parse_ts(data["updated_at"]),
            last_synced_at=_parse_ts(data.get("last_synced_at")),
        )


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class EngineError(Exception):
    """Base class for errors surfaced to engine callers.

    Attributes:
        user_message: Text safe to show in the UI.
        can_retry:    Whether retrying the same operation may succeed.
    """

    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str, user_message: str | None = None, can_retry: bool = True) -> None:
        super().__init__(message)
        self.user_message = user_message or self.default_message
        self.can_retry = can_retry


class StorageError(EngineError):
    """The local record store could not complete a read or write.

    Fatal to the in-progress operation and never retried internally:
    without local durability there is no progress to sync later.
    """

    default_message = "Unable to save your information. Please try again."


class RemoteErrorKind(str, Enum):
    network = "network"
    timeout = "timeout"
    server = "server"
    rejected = "rejected"
    conflict = "conflict"


class RemoteError(EngineError):
    """A push to the remote store failed.  Always recoverable."""

    default_message = "Your data is saved locally and will sync automatically."

    def __init__(self, message: str, kind: RemoteErrorKind = RemoteErrorKind.network) -> None:
        super().__init__(message, can_retry=True)
        self.kind = kind
