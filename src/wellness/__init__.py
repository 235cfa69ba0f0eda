"""VibeHealth goal computation and offline-first sync engine.

Subpackages:
    goals/  Metric calculators, fallback generator, goal orchestrator
    sync/   Local record store, remote client, connectivity, coordinator, scheduler

Core modules:
    base           Canonical data models and error types
    config_loader  Load/validate/hot-reload goals_config.yaml
    engine         WellnessEngine facade offered to callers
"""

from src.wellness.base import (
    ActivityLevel,
    BiologicalSex,
    CalculationError,
    EngineError,
    Goal,
    GoalSet,
    GoalSource,
    MetricKind,
    RemoteError,
    StorageError,
    SyncableRecord,
    UserProfile,
)
from src.wellness.config_loader import GoalsConfig, get_goals_config

__all__ = [
    "UserProfile",
    "BiologicalSex",
    "ActivityLevel",
    "MetricKind",
    "Goal",
    "GoalSet",
    "GoalSource",
    "CalculationError",
    "SyncableRecord",
    "EngineError",
    "StorageError",
    "RemoteError",
    "GoalsConfig",
    "get_goals_config",
]
