"""Tests for the goal orchestrator: totality, source tags, recalculation."""

from __future__ import annotations

from datetime import timedelta

import pytest

from src.wellness.base import GoalSource, MetricKind, MetricResult, UserProfile, utc_now
from src.wellness.config_loader import GoalsConfig
from src.wellness.goals.calculators import GoalCalculator, build_calculators
from src.wellness.goals.fallback import FallbackGoalGenerator
from src.wellness.goals.orchestrator import GoalOrchestrator
from src.wellness.tests.conftest import TEST_USER_ID


class ExplodingCalculator(GoalCalculator):
    metric = MetricKind.steps

    def compute(self, profile: UserProfile) -> MetricResult:
        raise ZeroDivisionError("boom")

    def _breakdown(self, profile):  # pragma: no cover
        raise NotImplementedError


class BrokenFallback(FallbackGoalGenerator):
    def fallback(self, metric, profile=None):
        raise RuntimeError("fallback table corrupted")


class TestCalculate:
    """Tests for GoalOrchestrator.calculate()."""

    def test_reference_profile(self, orchestrator: GoalOrchestrator, reference_profile: UserProfile) -> None:
        goals = orchestrator.calculate(reference_profile)
        assert goals.steps.value == 10000
        assert goals.calories.value == 2555
        assert goals.heart_points.value == 21
        assert not goals.is_fallback
        assert goals.failures == ()

    def test_repeated_calls_are_identical(
        self, orchestrator: GoalOrchestrator, reference_profile: UserProfile
    ) -> None:
        first = orchestrator.calculate(reference_profile)
        second = orchestrator.calculate(reference_profile)
        assert first.by_metric() == second.by_metric()

    def test_partial_profile_falls_back_per_metric(
        self, orchestrator: GoalOrchestrator, age_only_profile: UserProfile
    ) -> None:
        """Only calories lacks inputs; the other metrics stay calculated."""
        goals = orchestrator.calculate(age_only_profile)
        assert goals.source_of(MetricKind.steps) is GoalSource.calculated
        assert goals.source_of(MetricKind.heart_points) is GoalSource.calculated
        assert goals.source_of(MetricKind.calories) is GoalSource.fallback
        assert goals.calories.value == 1800
        assert [f.metric for f in goals.failures] == [MetricKind.calories]
        assert goals.failures[0].reason == "missing height_cm"

    def test_invalid_profile_is_all_fallback(
        self, orchestrator: GoalOrchestrator, invalid_profile: UserProfile
    ) -> None:
        goals = orchestrator.calculate(invalid_profile)
        assert all(goals.source_of(m) is GoalSource.fallback for m in MetricKind)
        assert goals.summary() == "Steps: 7500, Calories: 1800, Heart Points: 21"
        assert len(goals.failures) == 3

    def test_empty_profile_still_complete(self, orchestrator: GoalOrchestrator) -> None:
        goals = orchestrator.calculate(UserProfile(user_id=TEST_USER_ID))
        assert all(g.value > 0 for g in goals.by_metric().values())
        assert goals.user_id == TEST_USER_ID

    @pytest.mark.parametrize("age", [None, 0, 12, 13, 40, 120, 121, -3])
    @pytest.mark.parametrize("height_cm", [None, 50.0, 170.0, 400.0])
    @pytest.mark.parametrize("weight_kg", [None, 10.0, 75.0, 500.0])
    def test_total_over_profile_space(
        self,
        orchestrator: GoalOrchestrator,
        age: int | None,
        height_cm: float | None,
        weight_kg: float | None,
    ) -> None:
        """Three positive goals for any profile; fallback exactly where a calculator failed."""
        profile = UserProfile(
            user_id=TEST_USER_ID, age=age, height_cm=height_cm, weight_kg=weight_kg
        )
        goals = orchestrator.calculate(profile)
        failed = {f.metric for f in goals.failures}
        for metric, goal in goals.by_metric().items():
            assert goal.value > 0
            expected = GoalSource.fallback if metric in failed else GoalSource.calculated
            assert goal.source is expected

    def test_raising_calculator_is_masked(
        self, goals_config: GoalsConfig, reference_profile: UserProfile
    ) -> None:
        calculators = build_calculators(goals_config)
        calculators[MetricKind.steps] = ExplodingCalculator(goals_config)
        orchestrator = GoalOrchestrator(goals_config, calculators=calculators)

        goals = orchestrator.calculate(reference_profile)
        assert goals.source_of(MetricKind.steps) is GoalSource.fallback
        assert goals.source_of(MetricKind.calories) is GoalSource.calculated
        assert "unexpected calculation error" in goals.failures[0].reason

    def test_broken_fallback_uses_emergency_goal(
        self, goals_config: GoalsConfig, invalid_profile: UserProfile
    ) -> None:
        orchestrator = GoalOrchestrator(goals_config, fallback=BrokenFallback(goals_config))
        goals = orchestrator.calculate(invalid_profile)
        assert goals.summary() == "Steps: 6000, Calories: 1600, Heart Points: 18"

    def test_missing_calculator_rejected(self, goals_config: GoalsConfig) -> None:
        calculators = build_calculators(goals_config)
        del calculators[MetricKind.heart_points]
        with pytest.raises(ValueError, match="heart_points"):
            GoalOrchestrator(goals_config, calculators=calculators)


class TestRecalculation:
    """Tests for should_recalculate() / recalculate()."""

    def test_fresh_calculated_goals_are_kept(
        self, orchestrator: GoalOrchestrator, reference_profile: UserProfile
    ) -> None:
        goals = orchestrator.calculate(reference_profile)
        assert not orchestrator.should_recalculate(goals)

    def test_stale_goals_are_recalculated(
        self, orchestrator: GoalOrchestrator, reference_profile: UserProfile
    ) -> None:
        goals = orchestrator.calculate(reference_profile)
        assert orchestrator.should_recalculate(goals, now=utc_now() + timedelta(days=8))

    def test_fallback_goals_are_recalculated(
        self, orchestrator: GoalOrchestrator, age_only_profile: UserProfile
    ) -> None:
        goals = orchestrator.calculate(age_only_profile)
        assert orchestrator.should_recalculate(goals)

    def test_recalculate_uses_new_profile(
        self,
        orchestrator: GoalOrchestrator,
        age_only_profile: UserProfile,
        reference_profile: UserProfile,
    ) -> None:
        previous = orchestrator.calculate(age_only_profile)
        updated = orchestrator.recalculate(reference_profile, previous)
        assert not updated.is_fallback
        assert updated.calories.value == 2555


class TestBreakdown:
    def test_breakdown_none_where_fallback(
        self, orchestrator: GoalOrchestrator, age_only_profile: UserProfile
    ) -> None:
        breakdown = orchestrator.breakdown(age_only_profile)
        assert breakdown[MetricKind.calories] is None
        assert breakdown[MetricKind.steps].final_value == 10000
