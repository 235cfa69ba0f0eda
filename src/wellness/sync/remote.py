"""Remote sync client contract and the HTTP implementation.

``push()`` either returns normally (the remote store accepted the record) or
raises RemoteError.  A RemoteError is always recoverable: the caller keeps
the record dirty and reconciliation retries it later.

Wire format (HTTP client)::

    PUT {base_url}/records/{record_id, percent-encoded}
    {"kind": "profile", "payload": {...}, "updated_at": "2026-10-17T08:00:00+00:00"}

The remote applies last-write-wins on ``updated_at`` and answers 409 when it
already holds a newer version.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable
from urllib.parse import quote

import httpx

from src.wellness.base import RemoteError, RemoteErrorKind, SyncableRecord

logger = logging.getLogger("vibehealth.sync.remote")


class RemoteSyncClient(ABC):
    """Contract for persisting a record to the remote store."""

    @abstractmethod
    async def push(self, record: SyncableRecord) -> None:
        """Persist ``record`` remotely.

        Raises:
            RemoteError: On any failure.  ``kind`` tells the caller why.
        """


class HttpRemoteSyncClient(RemoteSyncClient):
    """Push records to the VibeHealth sync API over HTTPS."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        token_provider: Callable[[], str | None] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url:        Root URL of the sync API.
            timeout_seconds: Per-request timeout.
            token_provider:  Returns the current bearer token, or None when
                             signed out.
            http_client:     Optional pre-configured httpx client (for testing).
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._token_provider = token_provider
        self._http_client = http_client

    def record_url(self, record_id: str) -> str:
        """URL for one record.  The id is a single escaped path segment."""
        return f"{self._base_url}/records/{quote(record_id, safe='')}"

    async def push(self, record: SyncableRecord) -> None:
        url = self.record_url(record.record_id)
        body = {
            "kind": record.kind.value,
            "payload": record.payload_dict(),
            "updated_at": record.updated_at.isoformat(),
        }
        headers = {}
        try:
            token = self._token_provider() if self._token_provider else None
        except Exception as exc:
            raise RemoteError(
                f"No credentials for pushing {record.record_id}: {exc}", RemoteErrorKind.rejected
            ) from exc
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            if self._http_client:
                response = await self._http_client.put(url, json=body, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.put(url, json=body, headers=headers)
        except httpx.TimeoutException as exc:
            raise RemoteError(f"Timed out pushing {record.record_id}", RemoteErrorKind.timeout) from exc
        except httpx.HTTPError as exc:
            raise RemoteError(
                f"Network error pushing {record.record_id}: {exc}", RemoteErrorKind.network
            ) from exc
        except (httpx.InvalidURL, httpx.CookieConflict, ValueError, TypeError) as exc:
            # Request could not be built; retrying the same record will not help
            raise RemoteError(
                f"Invalid request for {record.record_id}: {exc}", RemoteErrorKind.rejected
            ) from exc

        status = response.status_code
        if status < 300:
            logger.debug("Pushed %s (%d)", record.record_id, status)
            return
        if status == 409:
            raise RemoteError(
                f"Remote holds a newer version of {record.record_id}", RemoteErrorKind.conflict
            )
        if status >= 500:
            raise RemoteError(f"Remote error {status} for {record.record_id}", RemoteErrorKind.server)
        raise RemoteError(f"Remote rejected {record.record_id} ({status})", RemoteErrorKind.rejected)
