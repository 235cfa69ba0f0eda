"""Goal orchestrator: run every calculator and mask failures with fallbacks.

``calculate()`` is total.  A calculator that reports a CalculationError (or
blows up) is replaced by the fallback goal for that metric only; the other
metrics keep their calculated values.  Which metrics fell back stays visible
through each goal's ``source`` and the GoalSet's ``failures``.

Usage::

    orchestrator = GoalOrchestrator()
    goals = orchestrator.calculate(profile)
    goals.source_of(MetricKind.calories)   # GoalSource.calculated
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from src.wellness.base import (
    CalculationError,
    Goal,
    GoalSet,
    MetricKind,
    MetricResult,
    UserProfile,
    utc_now,
)
from src.wellness.config_loader import GoalsConfig, get_goals_config
from src.wellness.goals.calculators import (
    CalculationBreakdown,
    GoalCalculator,
    build_calculators,
)
from src.wellness.goals.fallback import FallbackGoalGenerator

logger = logging.getLogger("vibehealth.goals.orchestrator")


class GoalOrchestrator:
    """Compute a complete GoalSet from a profile."""

    def __init__(
        self,
        config: GoalsConfig | None = None,
        calculators: dict[MetricKind, GoalCalculator] | None = None,
        fallback: FallbackGoalGenerator | None = None,
    ) -> None:
        self._config = config or get_goals_config()
        self._calculators = calculators or build_calculators(self._config)
        self._fallback = fallback or FallbackGoalGenerator(self._config)

        missing = set(MetricKind) - set(self._calculators)
        if missing:
            raise ValueError(f"No calculator for metrics: {sorted(m.value for m in missing)}")

    def calculate(self, profile: UserProfile) -> GoalSet:
        """Return a complete GoalSet.  Never raises for profile content."""
        goals: dict[MetricKind, Goal] = {}
        failures: list[CalculationError] = []

        for metric in MetricKind:
            result = self._run(metric, profile)
            if result.ok:
                goals[metric] = result.goal
                continue
            failures.append(result.error)
            goals[metric] = self._fallback_goal(metric, profile)
            logger.warning(
                "Goal calculation for %s fell back (%s); profile=%s",
                metric.value, result.error.reason, profile.sanitized(),
            )

        goal_set = GoalSet(
            user_id=profile.user_id,
            steps=goals[MetricKind.steps],
            calories=goals[MetricKind.calories],
            heart_points=goals[MetricKind.heart_points],
            computed_at=utc_now(),
            failures=tuple(failures),
        )
        logger.debug("Calculated goals: %s", goal_set.sanitized())
        return goal_set

    def _run(self, metric: MetricKind, profile: UserProfile) -> MetricResult:
        try:
            return self._calculators[metric].compute(profile)
        except Exception as exc:
            logger.exception("Calculator for %s raised unexpectedly", metric.value)
            return MetricResult.failure(metric, f"unexpected calculation error: {exc}")

    def _fallback_goal(self, metric: MetricKind, profile: UserProfile) -> Goal:
        try:
            return self._fallback.fallback(metric, profile)
        except Exception:
            logger.exception("Fallback for %s raised; using emergency goal", metric.value)
            return self._fallback.emergency_goal(metric)

    def should_recalculate(self, previous: GoalSet, now: datetime | None = None) -> bool:
        """Return True if stored goals are stale or contain fallback values."""
        now = now or utc_now()
        max_age = timedelta(days=self._config.recalculation_max_age_days)
        if now - previous.computed_at > max_age:
            return True
        return previous.is_fallback

    def recalculate(self, profile: UserProfile, previous: GoalSet | None = None) -> GoalSet:
        """Recompute goals after a profile edit.

        Profile edits always change at least one input, so a new GoalSet is
        computed even when ``previous`` is fresh.
        """
        if previous is not None and self.should_recalculate(previous):
            logger.info("Previous goals are stale or fallback; recalculating")
        return self.calculate(profile)

    def breakdown(self, profile: UserProfile) -> dict[MetricKind, CalculationBreakdown | None]:
        """Per-metric calculation breakdown (None where the calculator cannot run)."""
        return {metric: calc.explain(profile) for metric, calc in self._calculators.items()}
