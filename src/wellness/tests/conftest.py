"""Shared fixtures and fakes for goal computation and sync engine tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from src.wellness.base import (
    ActivityLevel,
    BiologicalSex,
    RemoteError,
    RemoteErrorKind,
    StorageError,
    SyncableRecord,
    UserProfile,
)
from src.wellness.config_loader import GoalsConfig, load_goals_config
from src.wellness.goals.orchestrator import GoalOrchestrator
from src.wellness.sync.connectivity import ConnectivityMonitor
from src.wellness.sync.coordinator import SyncCoordinator
from src.wellness.sync.remote import RemoteSyncClient
from src.wellness.sync.store import InMemoryRecordStore

# Canonical test user ID
TEST_USER_ID = "user_2abcDEF123"
TEST_TIME = datetime(2026, 10, 17, 8, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def goals_config() -> GoalsConfig:
    """Load the real goals config for tests."""
    return load_goals_config()


@pytest.fixture
def orchestrator(goals_config: GoalsConfig) -> GoalOrchestrator:
    return GoalOrchestrator(goals_config)


# ---------------------------------------------------------------------------
# Profile fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def reference_profile() -> UserProfile:
    """30y, 70 kg, 175 cm, moderately active, sex not given."""
    return UserProfile(
        user_id=TEST_USER_ID,
        age=30,
        height_cm=175.0,
        weight_kg=70.0,
        activity_level=ActivityLevel.moderate,
    )


@pytest.fixture
def male_profile() -> UserProfile:
    return UserProfile(
        user_id=TEST_USER_ID,
        age=30,
        sex=BiologicalSex.male,
        height_cm=180.0,
        weight_kg=80.0,
        activity_level=ActivityLevel.moderate,
    )


@pytest.fixture
def age_only_profile() -> UserProfile:
    """Onboarding stopped after the age question."""
    return UserProfile(user_id=TEST_USER_ID, age=30)


@pytest.fixture
def invalid_profile() -> UserProfile:
    """Every attribute outside its valid range."""
    return UserProfile(
        user_id=TEST_USER_ID,
        age=5,
        height_cm=20.0,
        weight_kg=1000.0,
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeRemote(RemoteSyncClient):
    """Records pushes; fails ids listed in ``fail`` with the given kind.

    ``delay`` makes each push yield to the event loop so concurrency tests
    can observe overlapping calls.
    """

    def __init__(
        self,
        fail: dict[str, RemoteErrorKind] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.fail = dict(fail or {})
        self.delay = delay
        self.pushed: list[SyncableRecord] = []
        self.active: set[str] = set()
        self.max_overlap_per_id: dict[str, int] = {}
        self.gate: asyncio.Event | None = None

    async def push(self, record: SyncableRecord) -> None:
        rid = record.record_id
        if rid in self.active:
            self.max_overlap_per_id[rid] = self.max_overlap_per_id.get(rid, 1) + 1
        self.active.add(rid)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if rid in self.fail:
                raise RemoteError(f"forced failure for {rid}", self.fail[rid])
            self.pushed.append(record)
        finally:
            self.active.discard(rid)

    def pushed_ids(self) -> list[str]:
        return [r.record_id for r in self.pushed]


class FlakyStore(InMemoryRecordStore):
    """In-memory store whose operations can be switched to raise StorageError."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_upsert = False
        self.fail_mark = False
        self.fail_list = False

    async def upsert(self, record: SyncableRecord) -> None:
        if self.fail_upsert:
            raise StorageError("disk full")
        await super().upsert(record)

    async def mark_synced(self, record_id, synced_at, expected_updated_at=None) -> bool:
        if self.fail_mark:
            raise StorageError("database is locked")
        return await super().mark_synced(record_id, synced_at, expected_updated_at)

    async def list_dirty(self) -> list[SyncableRecord]:
        if self.fail_list:
            raise StorageError("database is locked")
        return await super().list_dirty()


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def connectivity() -> ConnectivityMonitor:
    """Starts online; tests flip it with ``set_online``."""
    return ConnectivityMonitor(initial=True)


@pytest.fixture
def coordinator(
    store: FlakyStore, remote: FakeRemote, connectivity: ConnectivityMonitor
) -> SyncCoordinator:
    return SyncCoordinator(store, remote, connectivity)
