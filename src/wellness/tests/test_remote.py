"""Tests for the HTTP remote sync client (httpx mocked)."""

from __future__ import annotations

from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.wellness.base import RecordKind, RemoteError, RemoteErrorKind, SyncableRecord, UserProfile
from src.wellness.sync.remote import HttpRemoteSyncClient
from src.wellness.tests.conftest import TEST_TIME, TEST_USER_ID


@pytest.fixture
def record() -> SyncableRecord:
    return SyncableRecord(
        record_id=f"profile:{TEST_USER_ID}",
        kind=RecordKind.profile,
        payload=UserProfile(user_id=TEST_USER_ID, age=30),
        updated_at=TEST_TIME,
    )


def _client(status_code: int = 200, side_effect: Exception | None = None) -> MagicMock:
    mock_client = MagicMock()
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_client.put = AsyncMock(return_value=mock_response, side_effect=side_effect)
    return mock_client


class TestHttpRemoteSyncClient:
    @pytest.mark.asyncio
    async def test_push_sends_record(self, record: SyncableRecord) -> None:
        mock_client = _client(200)
        remote = HttpRemoteSyncClient(
            "https://sync.example.com/api/v1/",
            token_provider=lambda: "tok_123",
            http_client=mock_client,
        )
        await remote.push(record)

        call = mock_client.put.await_args
        assert call.args[0] == f"https://sync.example.com/api/v1/records/profile%3A{TEST_USER_ID}"
        assert call.kwargs["json"]["kind"] == "profile"
        assert call.kwargs["json"]["payload"]["age"] == 30
        assert call.kwargs["json"]["updated_at"] == TEST_TIME.isoformat()
        assert call.kwargs["headers"] == {"Authorization": "Bearer tok_123"}

    @pytest.mark.asyncio
    async def test_no_token_no_auth_header(self, record: SyncableRecord) -> None:
        mock_client = _client(204)
        await HttpRemoteSyncClient("https://sync.example.com", http_client=mock_client).push(record)
        assert mock_client.put.await_args.kwargs["headers"] == {}

    @pytest.mark.parametrize(
        ("status_code", "kind"),
        [
            (409, RemoteErrorKind.conflict),
            (500, RemoteErrorKind.server),
            (503, RemoteErrorKind.server),
            (400, RemoteErrorKind.rejected),
            (401, RemoteErrorKind.rejected),
        ],
    )
    @pytest.mark.asyncio
    async def test_status_codes_map_to_error_kinds(
        self, record: SyncableRecord, status_code: int, kind: RemoteErrorKind
    ) -> None:
        remote = HttpRemoteSyncClient("https://sync.example.com", http_client=_client(status_code))
        with pytest.raises(RemoteError) as exc_info:
            await remote.push(record)
        assert exc_info.value.kind is kind
        assert exc_info.value.can_retry

    @pytest.mark.asyncio
    async def test_timeout(self, record: SyncableRecord) -> None:
        remote = HttpRemoteSyncClient(
            "https://sync.example.com",
            http_client=_client(side_effect=httpx.ReadTimeout("slow")),
        )
        with pytest.raises(RemoteError) as exc_info:
            await remote.push(record)
        assert exc_info.value.kind is RemoteErrorKind.timeout

    @pytest.mark.asyncio
    async def test_network_error(self, record: SyncableRecord) -> None:
        remote = HttpRemoteSyncClient(
            "https://sync.example.com",
            http_client=_client(side_effect=httpx.ConnectError("no route to host")),
        )
        with pytest.raises(RemoteError) as exc_info:
            await remote.push(record)
        assert exc_info.value.kind is RemoteErrorKind.network
        assert "saved locally" in exc_info.value.user_message

    @pytest.mark.parametrize(
        ("user_id", "encoded"),
        [
            ("../../admin/users?x=1#", "profile%3A..%2F..%2Fadmin%2Fusers%3Fx%3D1%23"),
            ("a b/c", "profile%3Aa%20b%2Fc"),
            ("bad\x01id", "profile%3Abad%01id"),
        ],
    )
    @pytest.mark.asyncio
    async def test_record_id_is_one_escaped_path_segment(
        self, record: SyncableRecord, user_id: str, encoded: str
    ) -> None:
        mock_client = _client(200)
        remote = HttpRemoteSyncClient("https://sync.example.com/api", http_client=mock_client)
        await remote.push(replace(record, record_id=f"profile:{user_id}"))
        assert mock_client.put.await_args.args[0] == f"https://sync.example.com/api/records/{encoded}"

    @pytest.mark.asyncio
    async def test_invalid_url_is_rejected(self, record: SyncableRecord) -> None:
        remote = HttpRemoteSyncClient(
            "https://sync.example.com",
            http_client=_client(side_effect=httpx.InvalidURL("Invalid non-printable ASCII character in URL")),
        )
        with pytest.raises(RemoteError) as exc_info:
            await remote.push(record)
        assert exc_info.value.kind is RemoteErrorKind.rejected

    @pytest.mark.asyncio
    async def test_token_provider_failure_is_rejected(self, record: SyncableRecord) -> None:
        def broken_token() -> str:
            raise RuntimeError("session store unavailable")

        mock_client = _client(200)
        remote = HttpRemoteSyncClient(
            "https://sync.example.com", token_provider=broken_token, http_client=mock_client
        )
        with pytest.raises(RemoteError) as exc_info:
            await remote.push(record)
        assert exc_info.value.kind is RemoteErrorKind.rejected
        mock_client.put.assert_not_awaited()
