"""Offline-first sync coordinator.

Every mutation is written to the local store first (dirty, ``updated_at``
bumped) and only then, if online, pushed to the remote store.  Remote
failures are absorbed into the dirty flag; the reconciliation pass is the
only recovery path.

Guarantees:
    - Local durability before any network activity.
    - Single-flight per record id: ``try_sync_now`` and ``reconcile_all``
      never push the same record concurrently, and a record is never marked
      synced twice for one push.
    - A record is only marked clean if it was not rewritten while its push
      was in flight.
    - Cancelling a reconciliation leaves every record either synced or dirty.

Conflicts follow last-write-wins on ``updated_at``: when the remote reports
it holds a newer version, the local record is marked synced as superseded.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import AsyncIterator
from weakref import WeakValueDictionary

from src.wellness.base import (
    Payload,
    RecordKind,
    RemoteError,
    RemoteErrorKind,
    StorageError,
    SyncableRecord,
    utc_now,
)
from src.wellness.sync.connectivity import ConnectivityObserver
from src.wellness.sync.policy import OfflineOperation, can_proceed
from src.wellness.sync.remote import RemoteSyncClient
from src.wellness.sync.status import (
    Broadcaster,
    SyncStatus,
    combine_latest,
    derive_status,
    distinct_until_changed,
    status_message,
)
from src.wellness.sync.store import LocalRecordStore

logger = logging.getLogger("vibehealth.sync.coordinator")

_VERSION_STEP = timedelta(microseconds=1)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SyncError:
    """Recoverable sync failure for one record.  Returned, never raised.

    Attributes:
        record_id: Record that stays dirty.
        kind:      RemoteErrorKind value, or 'storage', 'changed',
                   'missing' or 'unexpected'.
        message:   Diagnostic detail.
    """

    record_id: str
    kind: str
    message: str

    @property
    def user_message(self) -> str:
        return "Your data is saved locally and will sync automatically."


@dataclass(frozen=True)
class SyncAttempt:
    """Result of pushing one record.

    Attributes:
        record_id:  Record that was attempted.
        synced:     True if the record is now clean.
        pushed:     True if a push was actually sent.
        superseded: True if the remote held a newer version (last-write-wins).
        error:      Why the record is still dirty, if it is.
    """

    record_id: str
    synced: bool
    pushed: bool = False
    superseded: bool = False
    error: SyncError | None = None

    @property
    def pending(self) -> bool:
        return not self.synced


class SyncOutcomeKind(str, Enum):
    fully_synced = "fully_synced"
    partially_synced = "partially_synced"
    skipped_offline = "skipped_offline"


@dataclass
class SyncOutcome:
    """Aggregate result of a reconciliation pass.

    ``partially_synced`` covers every pass where at least one record stayed
    dirty, including the case where none succeeded.

    Attributes:
        kind:          Overall classification.
        synced_count:  Records marked clean in this pass.
        failed_count:  Records left dirty.
        failed_ids:    Ids of the records left dirty.
        errors:        Per-record failure details.
        finished_at:   UTC timestamp of completion.
    """

    kind: SyncOutcomeKind
    synced_count: int = 0
    failed_count: int = 0
    failed_ids: list[str] = field(default_factory=list)
    errors: list[SyncError] = field(default_factory=list)
    finished_at: datetime = field(default_factory=utc_now)

    @property
    def fully_synced(self) -> bool:
        return self.kind is SyncOutcomeKind.fully_synced

    @property
    def message(self) -> str:
        if self.kind is SyncOutcomeKind.skipped_offline:
            return "No internet connection available for sync."
        if self.kind is SyncOutcomeKind.partially_synced:
            return "Some data couldn't be synced. Will retry automatically."
        return "All data is synced"

    @classmethod
    def from_attempts(cls, attempts: list[SyncAttempt]) -> "SyncOutcome":
        failed = [a for a in attempts if not a.synced]
        synced_count = len(attempts) - len(failed)
        return cls(
            kind=SyncOutcomeKind.partially_synced if failed else SyncOutcomeKind.fully_synced,
            synced_count=synced_count,
            failed_count=len(failed),
            failed_ids=[a.record_id for a in failed],
            errors=[a.error for a in failed if a.error is not None],
        )


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------


class SyncCoordinator:
    """Local-first persistence with best-effort, eventually consistent push.

    Usage::

        coordinator = SyncCoordinator(store, remote, connectivity)
        record = await coordinator.save_local_first(RecordKind.profile, rid, profile)
        if connectivity.is_online_now():
            attempt = await coordinator.try_sync_now(rid)
        outcome = await coordinator.reconcile_all()
    """

    def __init__(
        self,
        store: LocalRecordStore,
        remote: RemoteSyncClient,
        connectivity: ConnectivityObserver,
        max_concurrent: int = 4,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store:          Local record store (authoritative cache).
            remote:         Remote sync client.
            connectivity:   Online-state observer.
            max_concurrent: Maximum simultaneous pushes during reconciliation.
        """
        self._store = store
        self._remote = remote
        self._connectivity = connectivity
        self._max_concurrent = max_concurrent
        self._record_locks: WeakValueDictionary[str, asyncio.Lock] = WeakValueDictionary()
        self._in_flight: set[str] = set()
        self._dirty_changes: Broadcaster[None] = Broadcaster()

    # ------------------------------------------------------------------
    # Local writes
    # ------------------------------------------------------------------

    async def save_local_first(
        self, kind: RecordKind, record_id: str, payload: Payload
    ) -> SyncableRecord:
        """Write ``payload`` locally as a dirty record.

        Completes before returning, so the data is durable locally before
        any push is attempted.

        Raises:
            StorageError: If the local store fails.  Not retried here.
        """
        existing = await self._store.get(record_id)
        now = utc_now()
        if existing is not None and now <= existing.updated_at:
            now = existing.updated_at + _VERSION_STEP

        record = SyncableRecord(
            record_id=record_id,
            kind=kind,
            payload=payload,
            is_dirty=True,
            updated_at=now,
        )
        await self._store.upsert(record)
        self._dirty_changes.publish(None)
        logger.info("Saved %s locally (dirty)", record_id)
        return record

    # ------------------------------------------------------------------
    # Remote push
    # ------------------------------------------------------------------

    async def try_sync_now(self, record_id: str) -> SyncAttempt:
        """Push one record immediately.

        Never raises for remote or store trouble after the local save: the
        result says whether the record is still pending.
        """
        return await self._sync_record(record_id)

    async def reconcile_all(self, since: datetime | None = None) -> SyncOutcome:
        """Push every dirty record, isolating per-record failures.

        Args:
            since: Only reconcile records dirty since this time.

        Returns:
            SyncOutcome (``skipped_offline`` if the device is offline).

        Raises:
            StorageError: If the dirty records cannot be listed.
        """
        if not self._connectivity_allows_push():
            logger.info("Reconciliation skipped: offline")
            return SyncOutcome(kind=SyncOutcomeKind.skipped_offline)

        dirty = await (self._store.list_dirty_since(since) if since else self._store.list_dirty())
        if not dirty:
            logger.debug("Reconciliation: nothing to sync")
            return SyncOutcome(kind=SyncOutcomeKind.fully_synced)

        logger.info("Reconciliation: %d dirty record(s)", len(dirty))
        semaphore = asyncio.Semaphore(self._max_concurrent)

        async def _limited(record_id: str) -> SyncAttempt:
            async with semaphore:
                return await self._sync_record(record_id)

        results = await asyncio.gather(
            *(_limited(r.record_id) for r in dirty), return_exceptions=True
        )

        attempts: list[SyncAttempt] = []
        for record, result in zip(dirty, results):
            if isinstance(result, SyncAttempt):
                attempts.append(result)
                continue
            logger.error("Sync of %s failed with exception: %s", record.record_id, result)
            attempts.append(
                SyncAttempt(
                    record_id=record.record_id,
                    synced=False,
                    error=SyncError(record.record_id, "unexpected", str(result)),
                )
            )

        outcome = SyncOutcome.from_attempts(attempts)
        logger.info(
            "Reconciliation complete: %s (synced=%d, failed=%d)",
            outcome.kind.value, outcome.synced_count, outcome.failed_count,
        )
        return outcome

    def _lock_for(self, record_id: str) -> asyncio.Lock:
        # Weakly held: a lock lives only while a holder or waiter references it
        lock = self._record_locks.get(record_id)
        if lock is None:
            lock = asyncio.Lock()
            self._record_locks[record_id] = lock
        return lock

    async def _sync_record(self, record_id: str) -> SyncAttempt:
        async with self._lock_for(record_id):
            try:
                record = await self._store.get(record_id)
            except StorageError as exc:
                return SyncAttempt(record_id, synced=False, error=SyncError(record_id, "storage", str(exc)))

            if record is None:
                return SyncAttempt(
                    record_id, synced=False, error=SyncError(record_id, "missing", "no local record")
                )
            if not record.is_dirty:
                # Another caller pushed this version while we waited for the lock
                return SyncAttempt(record_id, synced=True)

            superseded = False
            self._in_flight.add(record_id)
            try:
                await self._remote.push(record)
            except RemoteError as exc:
                if exc.kind is not RemoteErrorKind.conflict:
                    logger.warning("Push of %s failed (%s): %s", record_id, exc.kind.value, exc)
                    return SyncAttempt(
                        record_id,
                        synced=False,
                        pushed=True,
                        error=SyncError(record_id, exc.kind.value, str(exc)),
                    )
                logger.warning("Remote holds a newer %s; local version superseded", record_id)
                superseded = True
            except Exception as exc:
                logger.exception("Push of %s failed unexpectedly", record_id)
                return SyncAttempt(
                    record_id,
                    synced=False,
                    pushed=True,
                    error=SyncError(record_id, "unexpected", str(exc)),
                )
            finally:
                self._in_flight.discard(record_id)

            try:
                marked = await self._store.mark_synced(
                    record_id, utc_now(), expected_updated_at=record.updated_at
                )
            except StorageError as exc:
                logger.error("Could not mark %s synced: %s", record_id, exc)
                return SyncAttempt(
                    record_id, synced=False, pushed=True, error=SyncError(record_id, "storage", str(exc))
                )

            if not marked:
                return SyncAttempt(
                    record_id,
                    synced=False,
                    pushed=True,
                    error=SyncError(record_id, "changed", "record was rewritten during sync"),
                )

            self._dirty_changes.publish(None)
            logger.debug("Synced %s", record_id)
            return SyncAttempt(record_id, synced=True, pushed=True, superseded=superseded)

    def is_in_flight(self, record_id: str) -> bool:
        return record_id in self._in_flight

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def _online_now(self) -> bool | None:
        try:
            return self._connectivity.is_online_now()
        except Exception as exc:
            logger.warning("Connectivity state unavailable: %s", exc)
            return None

    def _connectivity_allows_push(self) -> bool:
        return self._online_now() is True

    async def pending_sync_count(self) -> int:
        return await self._store.count_dirty()

    async def has_unsaved_changes(self, record_id: str) -> bool:
        record = await self._store.get(record_id)
        return record is not None and record.is_dirty

    async def get_record(self, record_id: str) -> SyncableRecord | None:
        return await self._store.get(record_id)

    async def current_status(self) -> SyncStatus:
        """Recompute the status from live connectivity and the dirty count."""
        online = self._online_now()
        if online is None:
            return SyncStatus.unknown
        return derive_status(online, await self._store.count_dirty())

    def can_proceed_offline(self, operation: OfflineOperation) -> bool:
        return can_proceed(operation, self._online_now())

    @staticmethod
    def status_message(status: SyncStatus) -> str:
        return status_message(status)

    async def _dirty_counts(self) -> AsyncIterator[int]:
        queue = self._dirty_changes.open()
        try:
            yield await self._store.count_dirty()
            while True:
                await queue.get()
                while not queue.empty():
                    queue.get_nowait()
                yield await self._store.count_dirty()
        finally:
            self._dirty_changes.close(queue)

    async def status_stream(self) -> AsyncIterator[SyncStatus]:
        """Yield the status now and again whenever it actually changes."""

        async def _statuses() -> AsyncIterator[SyncStatus]:
            async for online, count in combine_latest(
                self._connectivity.observe(), self._dirty_counts()
            ):
                yield derive_status(online, count)

        async for status in distinct_until_changed(_statuses()):
            yield status
