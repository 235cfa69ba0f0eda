"""Safe default goals for when personalised calculation is not possible.

The fallback generator has no failure path.  It uses whatever profile
attributes are usable (age bracket, sex category) and otherwise returns
population defaults, always clamped to conservative bounds.
"""

from __future__ import annotations

import logging

from src.wellness.base import (
    Goal,
    GoalSet,
    GoalSource,
    MetricKind,
    UserProfile,
    utc_now,
)
from src.wellness.config_loader import GoalsConfig, get_goals_config

logger = logging.getLogger("vibehealth.goals.fallback")

_BASE_EXPLANATION = (
    "We've set safe default wellness goals for you based on WHO health guidelines. "
    "These goals provide proven health benefits and are achievable for most people."
)

_REASON_HINTS: dict[str, str] = {
    "missing": (
        "Complete your profile to receive goals calculated for your age, "
        "sex and physical characteristics."
    ),
    "outside": (
        "To get personalised goals, please check that your height, weight "
        "and age are entered correctly."
    ),
}


class FallbackGoalGenerator:
    """Produce medically-safe default goals, one metric at a time."""

    def __init__(self, config: GoalsConfig | None = None) -> None:
        self._config = config or get_goals_config()

    def fallback(self, metric: MetricKind, profile: UserProfile | None = None) -> Goal:
        """Return a fallback goal for ``metric``, adjusted by usable attributes.

        Args:
            metric:  Which goal to produce.
            profile: Possibly partial or invalid profile; may be None.

        Returns:
            A positive Goal tagged ``GoalSource.fallback``.
        """
        cfg = self._config.fallback.for_metric(metric.value)
        age = self._usable_age(profile)
        age_factor = cfg.age_factors[self._config.age_brackets.bracket(age)] if age is not None else 1.0
        sex = profile.sex.value if profile is not None and profile.sex else None
        sex_factor = cfg.sex_factors.get(sex, 1.0) if sex else 1.0

        value = int(cfg.base * age_factor * sex_factor)
        value = max(cfg.bounds[0], min(cfg.bounds[1], value))
        return Goal(metric=metric, value=value, source=GoalSource.fallback)

    def fallback_goals(self, user_id: str, profile: UserProfile | None = None) -> GoalSet:
        """Return a full GoalSet made only of fallback goals."""
        logger.info("Generating fallback goals for all metrics")
        goals = {metric: self.fallback(metric, profile) for metric in MetricKind}
        return GoalSet(
            user_id=user_id,
            steps=goals[MetricKind.steps],
            calories=goals[MetricKind.calories],
            heart_points=goals[MetricKind.heart_points],
        )

    def emergency_goal(self, metric: MetricKind) -> Goal:
        """Fixed conservative goal that ignores the profile entirely."""
        return Goal(metric, self._config.fallback.emergency[metric.value], GoalSource.fallback)

    def emergency_goals(self, user_id: str) -> GoalSet:
        logger.warning("Creating emergency fallback goals")
        return GoalSet(
            user_id=user_id,
            steps=self.emergency_goal(MetricKind.steps),
            calories=self.emergency_goal(MetricKind.calories),
            heart_points=self.emergency_goal(MetricKind.heart_points),
            computed_at=utc_now(),
        )

    def _usable_age(self, profile: UserProfile | None) -> int | None:
        if profile is None or profile.age is None:
            return None
        low, high = self._config.profile_ranges.age
        return profile.age if low <= profile.age <= high else None


def fallback_explanation(reason: str | None = None) -> str:
    """User-facing text explaining why default goals are shown."""
    hint = "You can update your profile anytime to receive personalised goal calculations."
    if reason:
        for keyword, text in _REASON_HINTS.items():
            if keyword in reason:
                hint = text
                break
    return f"{_BASE_EXPLANATION}\n\n{hint}"
