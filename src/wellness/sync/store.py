"""Local record store contract and the in-memory implementation.

The store is the authoritative local cache.  Writes to the same record id
are serialized (read-modify-write of the payload and dirty flag is atomic
per key); writes to different ids proceed independently.

Every method may raise StorageError.  Callers treat that as fatal for the
operation in progress.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from weakref import WeakValueDictionary

from src.wellness.base import SyncableRecord

logger = logging.getLogger("vibehealth.sync.store")


class LocalRecordStore(ABC):
    """Contract for the local, authoritative record cache."""

    @abstractmethod
    async def upsert(self, record: SyncableRecord) -> None:
        """Insert or replace a record.

        If ``record.last_synced_at`` is None the stored ``last_synced_at`` is
        kept, so a local edit never forgets when the record was last pushed.
        """

    @abstractmethod
    async def get(self, record_id: str) -> SyncableRecord | None:
        """Return the record for ``record_id`` or None."""

    @abstractmethod
    async def mark_synced(
        self,
        record_id: str,
        synced_at: datetime,
        expected_updated_at: datetime | None = None,
    ) -> bool:
        """Clear the dirty flag and set ``last_synced_at``.

        When ``expected_updated_at`` is given the update only applies if the
        record has not been rewritten since that version was read.

        Returns:
            True if the record was marked synced.
        """

    @abstractmethod
    async def list_dirty(self) -> list[SyncableRecord]:
        """All dirty records, oldest ``updated_at`` first."""

    @abstractmethod
    async def list_dirty_since(self, since: datetime) -> list[SyncableRecord]:
        """Dirty records with ``updated_at >= since``, oldest first."""

    async def count_dirty(self) -> int:
        return len(await self.list_dirty())


class InMemoryRecordStore(LocalRecordStore):
    """Process-local store with one asyncio.Lock per record id.

    Suitable for tests, single-process deployments and as the cache in
    front of a slower persistent store.
    """

    def __init__(self) -> None:
        self._records: dict[str, SyncableRecord] = {}
        self._locks: WeakValueDictionary[str, asyncio.Lock] = WeakValueDictionary()

    def _lock_for(self, record_id: str) -> asyncio.Lock:
        lock = self._locks.get(record_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[record_id] = lock
        return lock

    async def upsert(self, record: SyncableRecord) -> None:
        async with self._lock_for(record.record_id):
            existing = self._records.get(record.record_id)
            if existing is not None and record.last_synced_at is None:
                record = replace(record, last_synced_at=existing.last_synced_at)
            self._records[record.record_id] = record
        logger.debug("Upserted %s (dirty=%s)", record.record_id, record.is_dirty)

    async def get(self, record_id: str) -> SyncableRecord | None:
        return self._records.get(record_id)

    async def mark_synced(
        self,
        record_id: str,
        synced_at: datetime,
        expected_updated_at: datetime | None = None,
    ) -> bool:
        async with self._lock_for(record_id):
            existing = self._records.get(record_id)
            if existing is None:
                logger.warning("mark_synced on unknown record %s", record_id)
                return False
            if expected_updated_at is not None and existing.updated_at != expected_updated_at:
                logger.info(
                    "Record %s changed during sync (%s → %s); keeping it dirty",
                    record_id, expected_updated_at, existing.updated_at,
                )
                return False
            self._records[record_id] = replace(
                existing,
                is_dirty=False,
                last_synced_at=max(synced_at, existing.updated_at),
            )
        return True

    async def list_dirty(self) -> list[SyncableRecord]:
        dirty = [r for r in self._records.values() if r.is_dirty]
        return sorted(dirty, key=lambda r: r.updated_at)

    async def list_dirty_since(self, since: datetime) -> list[SyncableRecord]:
        return [r for r in await self.list_dirty() if r.updated_at >= since]

    async def count_dirty(self) -> int:
        return sum(1 for r in self._records.values() if r.is_dirty)

    def __len__(self) -> int:
        return len(self._records)
