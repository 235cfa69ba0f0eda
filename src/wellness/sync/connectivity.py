"""Connectivity observer contract and an in-process monitor.

The monitor holds the last known online state and broadcasts changes.  The
platform layer can push state in with ``set_online()``; server-side
deployments can instead run ``probe_loop()``, which polls a health URL with
httpx.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator

import httpx

from src.wellness.sync.status import Broadcaster

logger = logging.getLogger("vibehealth.sync.connectivity")


class ConnectivityObserver(ABC):
    """Contract for reading and observing online state."""

    @abstractmethod
    def is_online_now(self) -> bool | None:
        """Current online state, or None if it cannot be determined."""

    @abstractmethod
    def observe(self) -> AsyncIterator[bool | None]:
        """Yield the current state, then every change."""


class ConnectivityMonitor(ConnectivityObserver):
    """Holds the online flag and notifies observers when it flips.

    Usage::

        monitor = ConnectivityMonitor(probe_url="https://api.example.com/health")
        task = asyncio.create_task(monitor.probe_loop(interval_seconds=15))
        async for online in monitor.observe():
            ...
    """

    def __init__(
        self,
        initial: bool | None = None,
        probe_url: str | None = None,
        probe_timeout_seconds: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._online = initial
        self._changes: Broadcaster[bool | None] = Broadcaster()
        self._probe_url = probe_url
        self._probe_timeout = probe_timeout_seconds
        self._http_client = http_client

    def is_online_now(self) -> bool | None:
        return self._online

    def set_online(self, online: bool | None) -> None:
        """Record a new state; observers are only notified on change."""
        if online == self._online:
            return
        logger.info("Connectivity changed: %s → %s", self._online, online)
        self._online = online
        self._changes.publish(online)

    async def observe(self) -> AsyncIterator[bool | None]:
        queue = self._changes.open()
        try:
            yield self._online
            while True:
                yield await queue.get()
        finally:
            self._changes.close(queue)

    async def probe(self) -> bool:
        """Check reachability of the probe URL once and record the result."""
        if not self._probe_url:
            raise RuntimeError("No probe_url configured")
        try:
            if self._http_client:
                response = await self._http_client.get(self._probe_url)
            else:
                async with httpx.AsyncClient(timeout=self._probe_timeout) as client:
                    response = await client.get(self._probe_url)
            online = response.status_code < 500
        except httpx.HTTPError as exc:
            logger.debug("Connectivity probe failed: %s", exc)
            online = False
        self.set_online(online)
        return online

    async def probe_loop(self, interval_seconds: float) -> None:
        """Probe forever at a fixed interval.  Cancel the task to stop."""
        while True:
            await self.probe()
            await asyncio.sleep(interval_seconds)
