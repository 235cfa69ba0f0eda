"""Background reconciliation scheduler.

Runs ``SyncCoordinator.reconcile_all()``:
1. every ``interval_seconds`` while online, and
2. immediately when connectivity flips from offline (or unknown) to online.

Passes never overlap.  Stopping the scheduler cancels an in-progress pass;
the coordinator guarantees records are left either synced or dirty.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from src.wellness.sync.connectivity import ConnectivityObserver
from src.wellness.sync.coordinator import SyncCoordinator, SyncOutcome

logger = logging.getLogger("vibehealth.sync.scheduler")

DEFAULT_RECONCILE_INTERVAL = 300  # 5 minutes


class ReconciliationScheduler:
    """Drive periodic and reconnect-triggered reconciliation passes.

    Usage::

        scheduler = ReconciliationScheduler(coordinator, connectivity, interval_seconds=300)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        coordinator: SyncCoordinator,
        connectivity: ConnectivityObserver,
        interval_seconds: float = DEFAULT_RECONCILE_INTERVAL,
    ) -> None:
        self._coordinator = coordinator
        self._connectivity = connectivity
        self._interval = interval_seconds
        self._pass_lock = asyncio.Lock()
        self._tasks: list[asyncio.Task] = []
        self.last_outcome: SyncOutcome | None = None
        self.last_run_at: datetime | None = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        """Start the interval and reconnect loops on the running event loop."""
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._interval_loop(), name="reconcile-interval"),
            asyncio.create_task(self._reconnect_loop(), name="reconcile-reconnect"),
        ]
        logger.info("Reconciliation scheduler started (interval=%ss)", self._interval)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Reconciliation scheduler stopped")

    async def run_once(self, reason: str = "manual") -> SyncOutcome | None:
        """Run one reconciliation pass unless one is already running.

        Returns:
            The pass outcome, or None if a pass was already in progress or
            the pass failed to list records.
        """
        if self._pass_lock.locked():
            logger.debug("Reconciliation already running; skipping %s trigger", reason)
            return None
        async with self._pass_lock:
            logger.info("Reconciliation pass triggered by %s", reason)
            try:
                outcome = await self._coordinator.reconcile_all()
            except Exception as exc:
                logger.error("Reconciliation pass (%s) failed: %s", reason, exc)
                return None
            self.runs += 1
            self.last_outcome = outcome
            self.last_run_at = outcome.finished_at
            return outcome

    async def _interval_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            if self._connectivity.is_online_now() is True:
                await self.run_once("interval")

    async def _reconnect_loop(self) -> None:
        previous: bool | None = None
        async for online in self._connectivity.observe():
            if online is True and previous is not True:
                await self.run_once("reconnect")
            previous = online
