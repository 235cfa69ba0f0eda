"""Derived sync status and the stream helpers that keep it current.

SyncStatus is never stored.  It is a pure function of (online, dirty_count)
and is recomputed whenever either input changes.  The stream helpers here
are the asyncio building blocks for that: a change broadcaster,
combine-latest over two async sources, and de-duplication.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import AsyncIterator, Generic, TypeVar

logger = logging.getLogger("vibehealth.sync.status")

T = TypeVar("T")
A = TypeVar("A")
B = TypeVar("B")


class SyncStatus(str, Enum):
    online_synced = "online_synced"
    online_pending_sync = "online_pending_sync"
    offline_no_changes = "offline_no_changes"
    offline_with_changes = "offline_with_changes"
    unknown = "unknown"


STATUS_MESSAGES: dict[SyncStatus, str] = {
    SyncStatus.online_synced: "All data is synced",
    SyncStatus.online_pending_sync: "Syncing your data...",
    SyncStatus.offline_no_changes: "You're offline, but your data is saved",
    SyncStatus.offline_with_changes: "You're offline. Changes will sync when connection returns",
    SyncStatus.unknown: "Checking connection status...",
}


def derive_status(online: bool | None, dirty_count: int) -> SyncStatus:
    """Map connectivity and the dirty-record count to a SyncStatus.

    ``online=None`` means connectivity could not be determined; that is
    reported as ``unknown``, never as offline.
    """
    if online is None or dirty_count < 0:
        return SyncStatus.unknown
    if online:
        return SyncStatus.online_synced if dirty_count == 0 else SyncStatus.online_pending_sync
    return SyncStatus.offline_no_changes if dirty_count == 0 else SyncStatus.offline_with_changes


def status_message(status: SyncStatus) -> str:
    return STATUS_MESSAGES[status]


# ---------------------------------------------------------------------------
# Stream helpers
# ---------------------------------------------------------------------------


class Broadcaster(Generic[T]):
    """Fan a value out to every open subscriber queue.

    ``open()`` registers a queue immediately, so a subscriber that reads
    some state right after opening cannot miss a change published in
    between.
    """

    def __init__(self) -> None:
        self._queues: set[asyncio.Queue[T]] = set()

    def open(self) -> asyncio.Queue[T]:
        queue: asyncio.Queue[T] = asyncio.Queue()
        self._queues.add(queue)
        return queue

    def close(self, queue: asyncio.Queue[T]) -> None:
        self._queues.discard(queue)

    def publish(self, value: T) -> None:
        for queue in list(self._queues):
            queue.put_nowait(value)

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)


_MISSING = object()
_DONE = object()


async def combine_latest(
    first: AsyncIterator[A], second: AsyncIterator[B]
) -> AsyncIterator[tuple[A, B]]:
    """Yield (latest_first, latest_second) whenever either source emits.

    Nothing is yielded until both sources have produced a value.  Ends when
    both sources are exhausted; an exception in either source is re-raised.
    """
    queue: asyncio.Queue[tuple[int, object]] = asyncio.Queue()

    async def pump(index: int, source: AsyncIterator) -> None:
        try:
            async for value in source:
                await queue.put((index, value))
        except Exception as exc:
            await queue.put((index, exc))
        finally:
            await queue.put((index, _DONE))

    tasks = [
        asyncio.create_task(pump(0, first)),
        asyncio.create_task(pump(1, second)),
    ]
    latest: list[object] = [_MISSING, _MISSING]
    finished = 0
    try:
        while finished < 2:
            index, value = await queue.get()
            if value is _DONE:
                finished += 1
                continue
            if isinstance(value, Exception):
                raise value
            latest[index] = value
            if latest[0] is not _MISSING and latest[1] is not _MISSING:
                yield latest[0], latest[1]  # type: ignore[misc]
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def distinct_until_changed(source: AsyncIterator[T]) -> AsyncIterator[T]:
    """Drop values equal to the one emitted just before."""
    previous: object = _MISSING
    async for value in source:
        if value != previous:
            previous = value
            yield value
