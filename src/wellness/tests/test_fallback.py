"""Tests for the fallback goal generator."""

from __future__ import annotations

import pytest

from src.wellness.base import BiologicalSex, GoalSource, MetricKind, UserProfile
from src.wellness.config_loader import GoalsConfig
from src.wellness.goals.fallback import FallbackGoalGenerator, fallback_explanation
from src.wellness.tests.conftest import TEST_USER_ID


@pytest.fixture
def generator(goals_config: GoalsConfig) -> FallbackGoalGenerator:
    return FallbackGoalGenerator(goals_config)


class TestFallbackGoals:
    """Tests for per-metric fallback goals."""

    def test_no_profile_uses_population_defaults(self, generator: FallbackGoalGenerator) -> None:
        assert generator.fallback(MetricKind.steps).value == 7500
        assert generator.fallback(MetricKind.calories).value == 1800
        assert generator.fallback(MetricKind.heart_points).value == 21

    def test_tagged_as_fallback(self, generator: FallbackGoalGenerator) -> None:
        for metric in MetricKind:
            goal = generator.fallback(metric)
            assert goal.source is GoalSource.fallback
            assert goal.metric is metric

    def test_older_adult_heart_points(self, generator: FallbackGoalGenerator) -> None:
        """21 x 0.85 = 17.85 → 17, the lower bound."""
        profile = UserProfile(user_id=TEST_USER_ID, age=70)
        assert generator.fallback(MetricKind.heart_points, profile).value == 17

    def test_invalid_age_is_ignored(self, generator: FallbackGoalGenerator) -> None:
        """An out-of-range age does not pick an age bracket."""
        profile = UserProfile(user_id=TEST_USER_ID, age=5)
        assert generator.fallback(MetricKind.steps, profile).value == 7500

    def test_sex_adjusts_steps(self, generator: FallbackGoalGenerator) -> None:
        male = UserProfile(user_id=TEST_USER_ID, sex=BiologicalSex.male)
        female = UserProfile(user_id=TEST_USER_ID, sex=BiologicalSex.female)
        assert generator.fallback(MetricKind.steps, male).value > 7500
        assert generator.fallback(MetricKind.steps, female).value < 7500

    def test_other_sex_gets_no_adjustment(self, generator: FallbackGoalGenerator) -> None:
        profile = UserProfile(user_id=TEST_USER_ID, sex=BiologicalSex.other)
        assert generator.fallback(MetricKind.calories, profile).value == 1800

    @pytest.mark.parametrize("age", [13, 16, 30, 64, 65, 90, 120, None])
    @pytest.mark.parametrize("sex", [None, *BiologicalSex])
    def test_always_within_bounds(
        self,
        generator: FallbackGoalGenerator,
        goals_config: GoalsConfig,
        age: int | None,
        sex: BiologicalSex | None,
    ) -> None:
        profile = UserProfile(user_id=TEST_USER_ID, age=age, sex=sex)
        for metric in MetricKind:
            low, high = goals_config.fallback.for_metric(metric.value).bounds
            assert low <= generator.fallback(metric, profile).value <= high

    def test_fallback_goals_full_set(self, generator: FallbackGoalGenerator) -> None:
        goals = generator.fallback_goals(TEST_USER_ID, None)
        assert goals.user_id == TEST_USER_ID
        assert all(goals.source_of(m) is GoalSource.fallback for m in MetricKind)


class TestEmergencyGoals:
    """Tests for the fixed last-resort goals."""

    def test_emergency_values(self, generator: FallbackGoalGenerator) -> None:
        goals = generator.emergency_goals(TEST_USER_ID)
        assert goals.summary() == "Steps: 6000, Calories: 1600, Heart Points: 18"
        assert goals.is_fallback


class TestFallbackExplanation:
    """Tests for the user-facing fallback explanation."""

    def test_missing_data_hint(self) -> None:
        text = fallback_explanation("missing height_cm")
        assert "WHO health guidelines" in text
        assert "Complete your profile" in text

    def test_out_of_range_hint(self) -> None:
        assert "entered correctly" in fallback_explanation("age 5 outside 13-120")

    def test_generic_hint(self) -> None:
        assert "update your profile anytime" in fallback_explanation()
