"""Tests for the connectivity monitor."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.wellness.sync.connectivity import ConnectivityMonitor


async def _take(source, n: int) -> list:
    values = []
    async for value in source:
        values.append(value)
        if len(values) == n:
            break
    return values


class TestConnectivityMonitor:
    def test_initial_state_unknown(self) -> None:
        assert ConnectivityMonitor().is_online_now() is None

    @pytest.mark.asyncio
    async def test_observe_yields_current_then_changes(self) -> None:
        monitor = ConnectivityMonitor(initial=False)
        task = asyncio.create_task(_take(monitor.observe(), 3))
        await asyncio.sleep(0)

        monitor.set_online(True)
        monitor.set_online(True)  # no change, not published
        monitor.set_online(False)

        assert await asyncio.wait_for(task, timeout=1) == [False, True, False]

    @pytest.mark.asyncio
    async def test_probe_marks_online(self) -> None:
        mock_client = MagicMock()
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_client.get = AsyncMock(return_value=mock_response)
        monitor = ConnectivityMonitor(probe_url="https://api.example.com/health", http_client=mock_client)

        assert await monitor.probe() is True
        assert monitor.is_online_now() is True

    @pytest.mark.asyncio
    async def test_probe_failure_marks_offline(self) -> None:
        mock_client = MagicMock()
        mock_client.get = AsyncMock(side_effect=httpx.ConnectError("unreachable"))
        monitor = ConnectivityMonitor(
            initial=True, probe_url="https://api.example.com/health", http_client=mock_client
        )

        assert await monitor.probe() is False
        assert monitor.is_online_now() is False

    @pytest.mark.asyncio
    async def test_probe_server_error_counts_as_offline(self) -> None:
        mock_client = MagicMock()
        mock_response = MagicMock()
        mock_response.status_code = 502
        mock_client.get = AsyncMock(return_value=mock_response)
        monitor = ConnectivityMonitor(probe_url="https://api.example.com/health", http_client=mock_client)
        assert await monitor.probe() is False

    @pytest.mark.asyncio
    async def test_probe_without_url_raises(self) -> None:
        with pytest.raises(RuntimeError):
            await ConnectivityMonitor().probe()
