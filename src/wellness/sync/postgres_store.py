"""Postgres-backed LocalRecordStore.

Per-key atomicity comes from the database: upserts are a single
``INSERT ... ON CONFLICT DO UPDATE`` statement and ``mark_synced`` is a
version-checked ``UPDATE``.  Driver and connection failures are wrapped in
StorageError.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

import asyncpg

from src.services import database
from src.wellness.base import StorageError, SyncableRecord
from src.wellness.sync.store import LocalRecordStore

logger = logging.getLogger("vibehealth.sync.postgres_store")

_TABLE = "syncable_records"
_COLUMNS = ["record_id", "kind", "payload", "is_dirty", "updated_at", "last_synced_at"]


def build_upsert_query(
    table: str,
    columns: list[str],
    conflict_columns: list[str],
    update_columns: list[str] | None = None,
    keep_existing_if_null: list[str] | None = None,
) -> str:
    """Build a PostgreSQL INSERT ... ON CONFLICT DO UPDATE (upsert) query.

    Args:
        table:                 Target table name.
        columns:               All columns to insert.
        conflict_columns:      Columns that define the UNIQUE constraint.
        update_columns:        Columns to update on conflict (defaults to non-key columns).
        keep_existing_if_null: Update columns whose stored value survives a NULL.

    Returns:
        Parameterized SQL string.
    """
    if update_columns is None:
        update_columns = [c for c in columns if c not in conflict_columns]
    keep = set(keep_existing_if_null or [])

    placeholders = ", ".join(f"${i + 1}" for i in range(len(columns)))
    col_list = ", ".join(columns)
    conflict_target = ", ".join(conflict_columns)

    if update_columns:
        update_set = ", ".join(
            f"{col} = COALESCE(EXCLUDED.{col}, {table}.{col})"
            if col in keep
            else f"{col} = EXCLUDED.{col}"
            for col in update_columns
        )
        do_clause = f"DO UPDATE SET {update_set}"
    else:
        do_clause = "DO NOTHING"

    return (
        f"INSERT INTO {table} ({col_list}) "
        f"VALUES ({placeholders}) "
        f"ON CONFLICT ({conflict_target}) {do_clause}"
    )


_UPSERT_SQL = build_upsert_query(
    _TABLE, _COLUMNS, ["record_id"], keep_existing_if_null=["last_synced_at"]
)
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM {_TABLE}"


def _row_to_record(row: Any) -> SyncableRecord:
    payload = row["payload"]
    if isinstance(payload, str):
        payload = json.loads(payload)
    return SyncableRecord.from_dict(
        {
            "record_id": row["record_id"],
            "kind": row["kind"],
            "payload": payload,
            "is_dirty": row["is_dirty"],
            "updated_at": row["updated_at"],
            "last_synced_at": row["last_synced_at"],
        }
    )


class PostgresRecordStore(LocalRecordStore):
    """LocalRecordStore over the ``syncable_records`` table."""

    async def upsert(self, record: SyncableRecord) -> None:
        await self._run(
            "upsert",
            record.record_id,
            database.execute(
                _UPSERT_SQL,
                record.record_id,
                record.kind.value,
                json.dumps(record.payload_dict()),
                record.is_dirty,
                record.updated_at,
                record.last_synced_at,
            ),
        )

    async def get(self, record_id: str) -> SyncableRecord | None:
        row = await self._run(
            "get", record_id,
            database.fetchrow(f"{_SELECT} WHERE record_id = $1", record_id),
        )
        return _row_to_record(row) if row else None

    async def mark_synced(
        self,
        record_id: str,
        synced_at: datetime,
        expected_updated_at: datetime | None = None,
    ) -> bool:
        if expected_updated_at is None:
            query = (
                f"UPDATE {_TABLE} SET is_dirty = FALSE, "
                "last_synced_at = GREATEST($2, updated_at) WHERE record_id = $1"
            )
            args: tuple[Any, ...] = (record_id, synced_at)
        else:
            query = (
                f"UPDATE {_TABLE} SET is_dirty = FALSE, "
                "last_synced_at = GREATEST($2, updated_at) "
                "WHERE record_id = $1 AND updated_at = $3"
            )
            args = (record_id, synced_at, expected_updated_at)
        status = await self._run("mark_synced", record_id, database.execute(query, *args))
        # asyncpg returns e.g. "UPDATE 1"
        updated = status.split()[-1] != "0"
        if not updated:
            logger.info("Record %s not marked synced (missing or changed)", record_id)
        return updated

    async def list_dirty(self) -> list[SyncableRecord]:
        rows = await self._run(
            "list_dirty", "*",
            database.fetch(f"{_SELECT} WHERE is_dirty ORDER BY updated_at"),
        )
        return [_row_to_record(r) for r in rows]

    async def list_dirty_since(self, since: datetime) -> list[SyncableRecord]:
        rows = await self._run(
            "list_dirty_since", "*",
            database.fetch(
                f"{_SELECT} WHERE is_dirty AND updated_at >= $1 ORDER BY updated_at", since
            ),
        )
        return [_row_to_record(r) for r in rows]

    async def count_dirty(self) -> int:
        count = await self._run(
            "count_dirty", "*",
            database.fetchval(f"SELECT COUNT(*) FROM {_TABLE} WHERE is_dirty"),
        )
        return int(count or 0)

    async def _run(self, operation: str, record_id: str, awaitable: Any) -> Any:
        try:
            return await awaitable
        except (asyncpg.PostgresError, OSError, RuntimeError) as exc:
            logger.error("Record store %s failed for %s: %s", operation, record_id, exc)
            raise StorageError(f"{operation} failed for {record_id}: {exc}") from exc
