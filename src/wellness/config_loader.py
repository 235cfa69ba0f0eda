"""Load, validate, and hot-reload the goal computation configuration.

The config lives in ``goals_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_goals_config()`` to re-read from
disk after an update, no restart required.

Usage::

    from src.wellness.config_loader import get_goals_config

    config = get_goals_config()
    config.steps.base                      # 10000
    config.fallback.calories.bounds        # (1400, 2400)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("vibehealth.wellness.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "goals_config.yaml"

_AGE_BRACKETS = ("youth", "adult", "older_adult")


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class ProfileRanges:
    """Inclusive domain ranges a profile attribute must fall in."""

    age: tuple[int, int]
    height_cm: tuple[float, float]
    weight_kg: tuple[float, float]


@dataclass
class AgeBrackets:
    youth_below: int
    older_adult_from: int

    def bracket(self, age: int) -> str:
        """Return 'youth', 'adult' or 'older_adult' for an age in years."""
        if age < self.youth_below:
            return "youth"
        if age >= self.older_adult_from:
            return "older_adult"
        return "adult"


@dataclass
class StepsConfig:
    base: int
    bounds: tuple[int, int]
    age_factors: dict[str, float]
    sex_factors: dict[str, float]


@dataclass
class BmrEquation:
    """Linear BMR equation: constant + w*kg + h*cm - a*years."""

    name: str
    constant: float
    weight: float
    height: float
    age: float

    def bmr(self, weight_kg: float, height_cm: float, age: int) -> float:
        return self.constant + self.weight * weight_kg + self.height * height_cm - self.age * age


@dataclass
class CaloriesConfig:
    bounds: tuple[int, int]
    equations: dict[str, BmrEquation]


@dataclass
class HeartPointsConfig:
    who_weekly_moderate_minutes: int
    points_per_moderate_minute: int
    bounds: tuple[int, int]
    age_factors: dict[str, float]
    activity_factors: dict[str, float]

    @property
    def daily_moderate_minutes(self) -> float:
        return self.who_weekly_moderate_minutes / 7


@dataclass
class FallbackMetricConfig:
    base: int
    bounds: tuple[int, int]
    age_factors: dict[str, float]
    sex_factors: dict[str, float] = field(default_factory=dict)


@dataclass
class FallbackConfig:
    steps: FallbackMetricConfig
    calories: FallbackMetricConfig
    heart_points: FallbackMetricConfig
    emergency: dict[str, int]

    def for_metric(self, metric: str) -> FallbackMetricConfig:
        return getattr(self, metric)


@dataclass
class GoalsConfig:
    """Complete, validated goal computation configuration.

    This is the single in-memory representation of goals_config.yaml.
    Calculators, the fallback generator and the orchestrator read from it.
    """

    version: str
    profile_ranges: ProfileRanges
    age_brackets: AgeBrackets
    steps: StepsConfig
    calories: CaloriesConfig
    heart_points: HeartPointsConfig
    fallback: FallbackConfig
    recalculation_max_age_days: int
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when goals_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Goals config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> GoalsConfig:
    """Validate the raw YAML dict and construct a GoalsConfig.

    Every problem is collected before raising so a broken file reports all
    of its errors at once.

    Raises:
        ConfigValidationError: If required fields are missing or invalid.
    """
    errors: list[str] = []

    def _section(d: Any, key: str, path: str) -> dict:
        value = d.get(key) if isinstance(d, dict) else None
        if not isinstance(value, dict):
            errors.append(f"'{path}' section is missing or not a mapping")
            return {}
        return value

    def _number(d: dict, key: str, path: str, default: float | None = None) -> float:
        if key not in d:
            if default is None:
                errors.append(f"Missing required key '{path}.{key}'")
                return 0.0
            return default
        try:
            return float(d[key])
        except (TypeError, ValueError):
            errors.append(f"{path}.{key} must be a number, got {d[key]!r}")
            return 0.0

    def _bounds(d: dict, key: str, path: str) -> tuple[float, float]:
        value = d.get(key)
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            errors.append(f"{path}.{key} must be a [low, high] pair, got {value!r}")
            return (0, 0)
        try:
            low, high = float(value[0]), float(value[1])
        except (TypeError, ValueError):
            errors.append(f"{path}.{key} must contain numbers, got {value!r}")
            return (0, 0)
        if low <= 0 or low > high:
            errors.append(f"{path}.{key} = {value!r} must satisfy 0 < low <= high")
        return (low, high)

    def _factors(d: dict, key: str, path: str, required: tuple[str, ...] = ()) -> dict[str, float]:
        raw_factors = d.get(key) or {}
        if not isinstance(raw_factors, dict):
            errors.append(f"{path}.{key} must be a mapping of name→factor")
            return {}
        factors: dict[str, float] = {}
        for name, value in raw_factors.items():
            try:
                f = float(value)
            except (TypeError, ValueError):
                errors.append(f"{path}.{key}.{name} must be a number, got {value!r}")
                continue
            if f <= 0:
                errors.append(f"{path}.{key}.{name} = {f} must be positive")
            factors[name] = f
        for name in required:
            if name not in factors:
                errors.append(f"Missing required factor '{path}.{key}.{name}'")
        return factors

    def _int_bounds(d: dict, key: str, path: str) -> tuple[int, int]:
        low, high = _bounds(d, key, path)
        return (int(low), int(high))

    version = str(raw.get("version", "1.0"))

    # ── Profile ranges ──
    pr_raw = _section(raw, "profile_ranges", "profile_ranges")
    age_low, age_high = _bounds(pr_raw, "age", "profile_ranges")
    profile_ranges = ProfileRanges(
        age=(int(age_low), int(age_high)),
        height_cm=_bounds(pr_raw, "height_cm", "profile_ranges"),
        weight_kg=_bounds(pr_raw, "weight_kg", "profile_ranges"),
    )

    # ── Age brackets ──
    ab_raw = _section(raw, "age_brackets", "age_brackets")
    age_brackets = AgeBrackets(
        youth_below=int(_number(ab_raw, "youth_below", "age_brackets", 18)),
        older_adult_from=int(_number(ab_raw, "older_adult_from", "age_brackets", 65)),
    )
    if age_brackets.youth_below >= age_brackets.older_adult_from:
        errors.append("age_brackets.youth_below must be below older_adult_from")

    # ── Steps ──
    st_raw = _section(raw, "steps", "steps")
    steps = StepsConfig(
        base=int(_number(st_raw, "base", "steps")),
        bounds=_int_bounds(st_raw, "bounds", "steps"),
        age_factors=_factors(st_raw, "age_factors", "steps", _AGE_BRACKETS),
        sex_factors=_factors(st_raw, "sex_factors", "steps"),
    )

    # ── Calories ──
    cal_raw = _section(raw, "calories", "calories")
    eq_raw = _section(cal_raw, "equations", "calories.equations")
    equations: dict[str, BmrEquation] = {}
    for name in ("harris_benedict_male", "harris_benedict_female", "mifflin_st_jeor"):
        eq = _section(eq_raw, name, f"calories.equations.{name}")
        path = f"calories.equations.{name}"
        equations[name] = BmrEquation(
            name=name,
            constant=_number(eq, "constant", path),
            weight=_number(eq, "weight", path),
            height=_number(eq, "height", path),
            age=_number(eq, "age", path),
        )
    calories = CaloriesConfig(
        bounds=_int_bounds(cal_raw, "bounds", "calories"),
        equations=equations,
    )

    # ── Heart points ──
    hp_raw = _section(raw, "heart_points", "heart_points")
    heart_points = HeartPointsConfig(
        who_weekly_moderate_minutes=int(
            _number(hp_raw, "who_weekly_moderate_minutes", "heart_points", 150)
        ),
        points_per_moderate_minute=int(
            _number(hp_raw, "points_per_moderate_minute", "heart_points", 1)
        ),
        bounds=_int_bounds(hp_raw, "bounds", "heart_points"),
        age_factors=_factors(hp_raw, "age_factors", "heart_points", _AGE_BRACKETS),
        activity_factors=_factors(
            hp_raw,
            "activity_factors",
            "heart_points",
            ("sedentary", "light", "moderate", "active", "very_active"),
        ),
    )

    # ── Fallback ──
    fb_raw = _section(raw, "fallback", "fallback")
    fallback_metrics: dict[str, FallbackMetricConfig] = {}
    for metric in ("steps", "calories", "heart_points"):
        m_raw = _section(fb_raw, metric, f"fallback.{metric}")
        path = f"fallback.{metric}"
        fallback_metrics[metric] = FallbackMetricConfig(
            base=int(_number(m_raw, "base", path)),
            bounds=_int_bounds(m_raw, "bounds", path),
            age_factors=_factors(m_raw, "age_factors", path, _AGE_BRACKETS),
            sex_factors=_factors(m_raw, "sex_factors", path),
        )
    em_raw = _section(fb_raw, "emergency", "fallback.emergency")
    emergency = {
        metric: int(_number(em_raw, metric, "fallback.emergency"))
        for metric in ("steps", "calories", "heart_points")
    }
    for metric, value in emergency.items():
        if value <= 0:
            errors.append(f"fallback.emergency.{metric} must be positive")
    fallback = FallbackConfig(emergency=emergency, **fallback_metrics)

    # ── Recalculation ──
    rc_raw = raw.get("recalculation") or {}
    max_age_days = int(_number(rc_raw, "max_age_days", "recalculation", 7))

    if errors:
        raise ConfigValidationError(
            f"goals_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return GoalsConfig(
        version=version,
        profile_ranges=profile_ranges,
        age_brackets=age_brackets,
        steps=steps,
        calories=calories,
        heart_points=heart_points,
        fallback=fallback,
        recalculation_max_age_days=max_age_days,
        _raw=raw,
    )


def load_goals_config(path: Path | None = None) -> GoalsConfig:
    """Load and validate the goals config from disk.

    Args:
        path: Override path to YAML. Uses the bundled goals_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded goals config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: GoalsConfig | None = None
_config_lock = threading.Lock()


def get_goals_config() -> GoalsConfig:
    """Return the global GoalsConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_goals_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_goals_config()
    return _config


def reload_goals_config(path: Path | None = None) -> GoalsConfig:
    """Reload the goals config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_goals_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded goals config: %s → %s", old_version, new_config.version)
    return new_config
