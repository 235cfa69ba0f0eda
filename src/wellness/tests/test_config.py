"""Tests for goals_config.yaml loading and validation."""

from __future__ import annotations

import copy
from pathlib import Path

import pytest
import yaml

from src.wellness.config_loader import (
    _CONFIG_PATH,
    ConfigValidationError,
    GoalsConfig,
    _validate_and_build,
    get_goals_config,
    load_goals_config,
    reload_goals_config,
)


@pytest.fixture
def raw_config() -> dict:
    return yaml.safe_load(_CONFIG_PATH.read_text())


class TestConfigLoading:
    """Tests for loading goals_config.yaml."""

    def test_load_default_config(self, goals_config: GoalsConfig) -> None:
        """The bundled goals_config.yaml loads without errors."""
        assert goals_config.version == "1.0"
        assert goals_config.recalculation_max_age_days == 7

    def test_profile_ranges(self, goals_config: GoalsConfig) -> None:
        pr = goals_config.profile_ranges
        assert pr.age == (13, 120)
        assert pr.height_cm == (100.0, 250.0)
        assert pr.weight_kg == (30.0, 300.0)

    def test_age_brackets(self, goals_config: GoalsConfig) -> None:
        ab = goals_config.age_brackets
        assert ab.bracket(13) == "youth"
        assert ab.bracket(17) == "youth"
        assert ab.bracket(18) == "adult"
        assert ab.bracket(64) == "adult"
        assert ab.bracket(65) == "older_adult"

    def test_steps_constants(self, goals_config: GoalsConfig) -> None:
        assert goals_config.steps.base == 10000
        assert goals_config.steps.bounds == (5000, 20000)
        assert goals_config.steps.sex_factors == {"male": 1.05, "female": 0.95}

    def test_mifflin_equation(self, goals_config: GoalsConfig) -> None:
        """Mifflin-St Jeor for 70 kg / 175 cm / 30 y is 1648.75 kcal."""
        eq = goals_config.calories.equations["mifflin_st_jeor"]
        assert eq.bmr(70, 175, 30) == pytest.approx(1648.75)

    def test_heart_points_daily_minutes(self, goals_config: GoalsConfig) -> None:
        assert goals_config.heart_points.daily_moderate_minutes == pytest.approx(150 / 7)

    def test_fallback_bounds_are_conservative(self, goals_config: GoalsConfig) -> None:
        """Fallback bounds sit inside the calculated-goal bounds."""
        fb = goals_config.fallback
        assert goals_config.steps.bounds[0] <= fb.steps.bounds[0]
        assert fb.steps.bounds[1] <= goals_config.steps.bounds[1]
        assert goals_config.calories.bounds[0] <= fb.calories.bounds[0]
        assert goals_config.heart_points.bounds[0] <= fb.heart_points.bounds[0]

    def test_emergency_goals(self, goals_config: GoalsConfig) -> None:
        assert goals_config.fallback.emergency == {
            "steps": 6000,
            "calories": 1600,
            "heart_points": 18,
        }

    def test_singleton_is_cached(self) -> None:
        assert get_goals_config() is get_goals_config()


class TestConfigValidation:
    """Tests for config validation logic."""

    def test_valid_raw_config_builds(self, raw_config: dict) -> None:
        config = _validate_and_build(raw_config)
        assert config.steps.base == 10000

    def test_inverted_bounds_raise(self, raw_config: dict) -> None:
        raw = copy.deepcopy(raw_config)
        raw["steps"]["bounds"] = [20000, 5000]
        with pytest.raises(ConfigValidationError, match="low <= high"):
            _validate_and_build(raw)

    def test_non_numeric_factor_raises(self, raw_config: dict) -> None:
        raw = copy.deepcopy(raw_config)
        raw["steps"]["age_factors"]["adult"] = "lots"
        with pytest.raises(ConfigValidationError, match="must be a number"):
            _validate_and_build(raw)

    def test_missing_age_factor_raises(self, raw_config: dict) -> None:
        raw = copy.deepcopy(raw_config)
        del raw["heart_points"]["age_factors"]["older_adult"]
        with pytest.raises(ConfigValidationError, match="older_adult"):
            _validate_and_build(raw)

    def test_missing_equation_raises(self, raw_config: dict) -> None:
        raw = copy.deepcopy(raw_config)
        del raw["calories"]["equations"]["mifflin_st_jeor"]
        with pytest.raises(ConfigValidationError, match="mifflin_st_jeor"):
            _validate_and_build(raw)

    def test_all_errors_reported_together(self, raw_config: dict) -> None:
        """A broken file reports every problem in one exception."""
        raw = copy.deepcopy(raw_config)
        raw["steps"]["bounds"] = [0, 0]
        raw["fallback"]["emergency"]["calories"] = -1
        with pytest.raises(ConfigValidationError) as exc_info:
            _validate_and_build(raw)
        message = str(exc_info.value)
        assert "steps.bounds" in message
        assert "fallback.emergency.calories" in message

    def test_hot_reload(self, raw_config: dict, tmp_path: Path) -> None:
        """reload_goals_config() should replace the global singleton."""
        raw = copy.deepcopy(raw_config)
        raw["version"] = "2.0-test"
        config_file = tmp_path / "goals_config.yaml"
        config_file.write_text(yaml.safe_dump(raw))

        try:
            new_config = reload_goals_config(path=config_file)
            assert new_config.version == "2.0-test"
            assert get_goals_config() is new_config
        finally:
            reload_goals_config()

    def test_failed_reload_keeps_old_config(self, tmp_path: Path) -> None:
        before = get_goals_config()
        config_file = tmp_path / "goals_config.yaml"
        config_file.write_text("steps: [not, a, mapping]\n")
        with pytest.raises(ConfigValidationError):
            reload_goals_config(path=config_file)
        assert get_goals_config() is before

    def test_load_nonexistent_file_raises(self) -> None:
        """Loading a nonexistent file should raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_goals_config(path=Path("/nonexistent/path/goals_config.yaml"))

    def test_malformed_yaml_raises(self, tmp_path: Path) -> None:
        config_file = tmp_path / "goals_config.yaml"
        config_file.write_text("steps: [unclosed\n")
        with pytest.raises(ConfigValidationError, match="YAML parse error"):
            load_goals_config(path=config_file)
