"""Sync status, reconciliation and offline-policy endpoints."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

from fastapi import APIRouter, HTTPException
from sse_starlette.sse import EventSourceResponse

from src.dependencies import Engine
from src.models.wellness import (
    ConnectivityIn,
    PendingOut,
    PolicyOut,
    StatusOut,
    SyncOutcomeOut,
)
from src.wellness.sync.connectivity import ConnectivityMonitor
from src.wellness.sync.policy import OFFLINE_POLICY, OfflineOperation
from src.wellness.sync.status import SyncStatus, status_message

router = APIRouter(prefix="/sync", tags=["sync"])
logger = logging.getLogger("vibehealth.api.sync")


@router.post("", response_model=SyncOutcomeOut)
async def sync_pending(engine: Engine) -> Any:
    """Push every dirty record now.  Returns ``skipped_offline`` when offline."""
    outcome = await engine.sync_pending_changes()
    return SyncOutcomeOut.from_domain(outcome)


@router.get("/status", response_model=StatusOut)
async def get_status(engine: Engine) -> Any:
    status = await engine.current_status()
    return StatusOut(
        status=status,
        message=status_message(status),
        pending_count=await engine.pending_sync_count(),
    )


@router.get("/status/stream")
async def stream_status(engine: Engine) -> EventSourceResponse:
    """Server-sent events: the current status, then one event per change."""

    async def events() -> AsyncIterator[dict]:
        stream = engine.offline_status_stream()
        try:
            async for status in stream:
                data = {"status": status.value, "message": status_message(status)}
                yield {"event": "status", "data": json.dumps(data)}
        finally:
            await stream.aclose()
            logger.debug("Status stream closed")

    return EventSourceResponse(events())


@router.get("/pending", response_model=PendingOut)
async def get_pending(engine: Engine) -> Any:
    return PendingOut(pending_count=await engine.pending_sync_count())


@router.get("/policy/{operation}", response_model=PolicyOut)
async def get_policy(operation: OfflineOperation, engine: Engine) -> Any:
    return PolicyOut(
        operation=operation,
        requirement=OFFLINE_POLICY[operation],
        can_proceed=engine.can_proceed_offline(operation),
    )


@router.put("/connectivity", response_model=StatusOut)
async def set_connectivity(engine: Engine, body: ConnectivityIn) -> Any:
    """Let the platform layer report the device's online state."""
    monitor = engine.connectivity
    if not isinstance(monitor, ConnectivityMonitor):
        raise HTTPException(status_code=409, detail="Connectivity is not settable")
    monitor.set_online(body.online)
    status: SyncStatus = await engine.current_status()
    return StatusOut(
        status=status,
        message=status_message(status),
        pending_count=await engine.pending_sync_count(),
    )
