"""Daily goal calculators: steps, calories and heart points.

Each calculator maps a UserProfile to one daily goal.  Missing or
out-of-range attributes produce a ``CalculationError`` inside the returned
MetricResult; nothing here raises for bad input, and nothing performs I/O.

Formulas:
    - Steps:        10,000 baseline (WHO 2020) x age factor x sex factor
    - Calories:     BMR (Harris-Benedict revised / Mifflin-St Jeor) x activity factor
    - Heart points: 150 moderate min/week / 7 x age factor x activity factor

All constants come from goals_config.yaml via config_loader.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from src.wellness.base import (
    BiologicalSex,
    MetricKind,
    MetricResult,
    UserProfile,
)
from src.wellness.config_loader import GoalsConfig, get_goals_config

logger = logging.getLogger("vibehealth.goals.calculators")


@dataclass
class CalculationBreakdown:
    """Intermediate values behind one calculated goal.

    Attributes:
        metric:         Metric the breakdown belongs to.
        base:           Baseline value before adjustments (BMR for calories).
        factors:        Named multipliers applied to the baseline.
        raw_value:      Value before clamping to the safety bounds.
        final_value:    Goal actually returned.
        bounds_applied: True if clamping changed the value.
        equation:       Formula name, where one applies.
    """

    metric: MetricKind
    base: float
    factors: dict[str, float] = field(default_factory=dict)
    raw_value: float = 0.0
    final_value: int = 0
    bounds_applied: bool = False
    equation: str | None = None

    def explanation(self) -> str:
        lines = [f"{self.metric.value.replace('_', ' ').title()} goal calculation:"]
        label = "BMR" if self.metric is MetricKind.calories else "Baseline"
        if self.equation:
            lines.append(f"  {label} ({self.equation}): {self.base:.0f}")
        else:
            lines.append(f"  {label}: {self.base:.1f}")
        for name, factor in self.factors.items():
            lines.append(f"  {name.replace('_', ' ').capitalize()}: {factor}x")
        note = " (adjusted for medical safety)" if self.bounds_applied else ""
        lines.append(f"  Final goal: {self.final_value}{note}")
        return "\n".join(lines)


def _clamp(value: int, bounds: tuple[int, int]) -> int:
    return max(bounds[0], min(bounds[1], value))


class GoalCalculator(ABC):
    """Base class for the three metric calculators.

    Subclasses implement ``_breakdown()`` for a profile that has already
    passed ``_missing_or_invalid()``.  ``compute()`` and ``explain()`` are
    shared.
    """

    metric: MetricKind
    required: tuple[str, ...] = ("age",)

    def __init__(self, config: GoalsConfig | None = None) -> None:
        self._config = config or get_goals_config()

    def compute(self, profile: UserProfile) -> MetricResult:
        """Compute this metric's daily goal for a profile."""
        reason = self._missing_or_invalid(profile)
        if reason:
            return MetricResult.failure(self.metric, reason)
        breakdown = self._breakdown(profile)
        if breakdown.final_value <= 0:
            return MetricResult.failure(
                self.metric, f"computed non-positive goal {breakdown.final_value}"
            )
        return MetricResult.success(self.metric, breakdown.final_value)

    def explain(self, profile: UserProfile) -> CalculationBreakdown | None:
        """Return the calculation breakdown, or None if the goal cannot be computed."""
        if self._missing_or_invalid(profile):
            return None
        return self._breakdown(profile)

    def _missing_or_invalid(self, profile: UserProfile) -> str | None:
        ranges = self._config.profile_ranges
        for attr in self.required:
            value = getattr(profile, attr)
            if value is None:
                return f"missing {attr}"
            low, high = getattr(ranges, attr)
            if not (low <= value <= high):
                return f"{attr} {value} outside {low:g}-{high:g}"
        return None

    def _age_factor(self, age: int, factors: dict[str, float]) -> float:
        return factors[self._config.age_brackets.bracket(age)]

    @abstractmethod
    def _breakdown(self, profile: UserProfile) -> CalculationBreakdown:
        ...


class StepsCalculator(GoalCalculator):
    """Daily step target by age bracket and sex."""

    metric = MetricKind.steps

    def _breakdown(self, profile: UserProfile) -> CalculationBreakdown:
        cfg = self._config.steps
        age_factor = self._age_factor(profile.age, cfg.age_factors)
        sex_factor = cfg.sex_factors.get(profile.sex.value, 1.0) if profile.sex else 1.0
        raw = cfg.base * age_factor * sex_factor
        final = _clamp(int(raw), cfg.bounds)
        return CalculationBreakdown(
            metric=self.metric,
            base=cfg.base,
            factors={"age_adjustment": age_factor, "sex_adjustment": sex_factor},
            raw_value=raw,
            final_value=final,
            bounds_applied=int(raw) != final,
        )


class CaloriesCalculator(GoalCalculator):
    """Total daily energy expenditure: BMR x activity factor.

    Male and female profiles use the revised Harris-Benedict equations.
    Everyone else uses Mifflin-St Jeor, which makes no assumption about sex.
    """

    metric = MetricKind.calories
    required = ("age", "height_cm", "weight_kg")

    _EQUATION_NAMES = {
        "harris_benedict_male": "Harris-Benedict Revised (1984)",
        "harris_benedict_female": "Harris-Benedict Revised (1984)",
        "mifflin_st_jeor": "Mifflin-St Jeor (1990)",
    }

    def _equation_key(self, sex: BiologicalSex | None) -> str:
        if sex is BiologicalSex.male:
            return "harris_benedict_male"
        if sex is BiologicalSex.female:
            return "harris_benedict_female"
        return "mifflin_st_jeor"

    def _breakdown(self, profile: UserProfile) -> CalculationBreakdown:
        cfg = self._config.calories
        key = self._equation_key(profile.sex)
        bmr = cfg.equations[key].bmr(profile.weight_kg, profile.height_cm, profile.age)
        activity_factor = profile.activity_level.factor
        tdee = bmr * activity_factor
        final = _clamp(int(tdee), cfg.bounds)
        return CalculationBreakdown(
            metric=self.metric,
            base=bmr,
            factors={"activity_factor": activity_factor},
            raw_value=tdee,
            final_value=final,
            bounds_applied=int(tdee) != final,
            equation=self._EQUATION_NAMES[key],
        )


class HeartPointsCalculator(GoalCalculator):
    """WHO weekly moderate-activity minutes converted to daily heart points."""

    metric = MetricKind.heart_points

    def _breakdown(self, profile: UserProfile) -> CalculationBreakdown:
        cfg = self._config.heart_points
        base = cfg.daily_moderate_minutes * cfg.points_per_moderate_minute
        age_factor = self._age_factor(profile.age, cfg.age_factors)
        activity_factor = cfg.activity_factors[profile.activity_level.value]
        raw = base * age_factor * activity_factor
        final = _clamp(int(raw), cfg.bounds)
        return CalculationBreakdown(
            metric=self.metric,
            base=base,
            factors={"age_adjustment": age_factor, "activity_adjustment": activity_factor},
            raw_value=raw,
            final_value=final,
            bounds_applied=int(raw) != final,
        )

    def weekly_equivalent(self, daily_points: int) -> int:
        return daily_points * 7


CALCULATOR_TYPES: dict[MetricKind, type[GoalCalculator]] = {
    MetricKind.steps: StepsCalculator,
    MetricKind.calories: CaloriesCalculator,
    MetricKind.heart_points: HeartPointsCalculator,
}


def build_calculators(config: GoalsConfig | None = None) -> dict[MetricKind, GoalCalculator]:
    """Instantiate one calculator per metric, sharing a config."""
    cfg = config or get_goals_config()
    return {metric: cls(cfg) for metric, cls in CALCULATOR_TYPES.items()}
