"""Goal computation for VibeHealth.

Modules:
    calculators   Steps, calories and heart-points calculators
    fallback      Safe default goals (never fails)
    orchestrator  Runs all calculators and applies per-metric fallback
"""

from src.wellness.goals.calculators import (
    CaloriesCalculator,
    CalculationBreakdown,
    GoalCalculator,
    HeartPointsCalculator,
    StepsCalculator,
)
from src.wellness.goals.fallback import FallbackGoalGenerator
from src.wellness.goals.orchestrator import GoalOrchestrator

__all__ = [
    "GoalCalculator",
    "StepsCalculator",
    "CaloriesCalculator",
    "HeartPointsCalculator",
    "CalculationBreakdown",
    "FallbackGoalGenerator",
    "GoalOrchestrator",
]
