"""WellnessEngine: the capabilities offered to UI and workflow callers.

Ties the goal orchestrator to the sync coordinator.  Collaborators are
injected; ``build_engine()`` wires the default ones from settings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AsyncIterator

from src.config import Settings, get_settings
from src.wellness.base import (
    GoalSet,
    Payload,
    RecordKind,
    UserProfile,
    record_id_for,
)
from src.wellness.goals.orchestrator import GoalOrchestrator
from src.wellness.sync.connectivity import ConnectivityMonitor, ConnectivityObserver
from src.wellness.sync.coordinator import SyncAttempt, SyncCoordinator, SyncOutcome
from src.wellness.sync.policy import OfflineOperation
from src.wellness.sync.remote import HttpRemoteSyncClient, RemoteSyncClient
from src.wellness.sync.scheduler import ReconciliationScheduler
from src.wellness.sync.status import SyncStatus
from src.wellness.sync.store import InMemoryRecordStore, LocalRecordStore

logger = logging.getLogger("vibehealth.engine")


@dataclass(frozen=True)
class SaveOutcome:
    """Result of a local-first save.

    The save itself succeeded whenever a SaveOutcome is returned; ``pending``
    only says the remote copy is not up to date yet.
    """

    record_id: str
    synced: bool
    attempt: SyncAttempt | None = None

    @property
    def pending(self) -> bool:
        return not self.synced

    @property
    def message(self) -> str:
        if self.synced:
            return "Saved and synced"
        return "Saved on this device. It will sync when the connection improves."


@dataclass(frozen=True)
class OnboardingOutcome:
    goals: GoalSet
    profile: SaveOutcome
    goals_saved: SaveOutcome


class WellnessEngine:
    """Goal computation plus offline-first persistence for one app instance."""

    def __init__(
        self,
        store: LocalRecordStore,
        remote: RemoteSyncClient,
        connectivity: ConnectivityObserver,
        orchestrator: GoalOrchestrator | None = None,
        reconcile_interval_seconds: float = 300,
    ) -> None:
        self.connectivity = connectivity
        self.orchestrator = orchestrator or GoalOrchestrator()
        self.coordinator = SyncCoordinator(store, remote, connectivity)
        self.scheduler = ReconciliationScheduler(
            self.coordinator, connectivity, interval_seconds=reconcile_interval_seconds
        )

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------

    def calculate_goals(self, profile: UserProfile) -> GoalSet:
        return self.orchestrator.calculate(profile)

    # ------------------------------------------------------------------
    # Saves
    # ------------------------------------------------------------------

    async def _save(self, kind: RecordKind, user_id: str, payload: Payload) -> SaveOutcome:
        record_id = record_id_for(kind, user_id)
        await self.coordinator.save_local_first(kind, record_id, payload)
        if self.connectivity.is_online_now() is not True:
            return SaveOutcome(record_id=record_id, synced=False)
        attempt = await self.coordinator.try_sync_now(record_id)
        return SaveOutcome(record_id=record_id, synced=attempt.synced, attempt=attempt)

    async def save_profile_offline(self, profile: UserProfile) -> SaveOutcome:
        """Save a profile locally first and push it if online.

        Raises:
            StorageError: If the local save fails.
        """
        return await self._save(RecordKind.profile, profile.user_id, profile)

    async def save_goals_offline(self, goals: GoalSet) -> SaveOutcome:
        return await self._save(RecordKind.goals, goals.user_id, goals)

    async def complete_onboarding(self, profile: UserProfile) -> OnboardingOutcome:
        """Compute goals and save profile plus goals.  Allowed offline."""
        goals = self.calculate_goals(profile)
        profile_outcome = await self.save_profile_offline(profile)
        goals_outcome = await self.save_goals_offline(goals)
        logger.info(
            "Onboarding complete (profile pending=%s, goals pending=%s, fallback=%s)",
            profile_outcome.pending, goals_outcome.pending, goals.is_fallback,
        )
        return OnboardingOutcome(goals=goals, profile=profile_outcome, goals_saved=goals_outcome)

    async def update_profile(
        self, profile: UserProfile, previous_goals: GoalSet | None = None
    ) -> OnboardingOutcome:
        """Save an edited profile and the goals recalculated from it."""
        goals = self.orchestrator.recalculate(profile, previous_goals)
        profile_outcome = await self.save_profile_offline(profile)
        goals_outcome = await self.save_goals_offline(goals)
        return OnboardingOutcome(goals=goals, profile=profile_outcome, goals_saved=goals_outcome)

    async def get_profile(self, user_id: str) -> UserProfile | None:
        record = await self.coordinator.get_record(record_id_for(RecordKind.profile, user_id))
        return record.payload if record else None

    async def get_goals(self, user_id: str) -> GoalSet | None:
        record = await self.coordinator.get_record(record_id_for(RecordKind.goals, user_id))
        return record.payload if record else None

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def sync_pending_changes(self) -> SyncOutcome:
        return await self.coordinator.reconcile_all()

    async def pending_sync_count(self) -> int:
        return await self.coordinator.pending_sync_count()

    async def current_status(self) -> SyncStatus:
        return await self.coordinator.current_status()

    def offline_status_stream(self) -> AsyncIterator[SyncStatus]:
        return self.coordinator.status_stream()

    def can_proceed_offline(self, operation: OfflineOperation) -> bool:
        return self.coordinator.can_proceed_offline(operation)


def build_engine(
    settings: Settings | None = None,
    store: LocalRecordStore | None = None,
) -> WellnessEngine:
    """Wire an engine from settings.

    Uses the in-memory store unless one is passed in; the app lifespan
    passes the Postgres store when DATABASE_URL is set.
    """
    s = settings or get_settings()
    connectivity = ConnectivityMonitor(
        initial=s.assume_online_at_start,
        probe_url=s.connectivity_probe_url or None,
    )
    remote = HttpRemoteSyncClient(
        base_url=s.remote_sync_url,
        timeout_seconds=s.remote_sync_timeout_seconds,
    )
    return WellnessEngine(
        store=store or InMemoryRecordStore(),
        remote=remote,
        connectivity=connectivity,
        reconcile_interval_seconds=s.reconcile_interval_seconds,
    )
