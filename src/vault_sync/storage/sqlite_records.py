"""SQLite record operations mixin."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import TYPE_CHECKING, Any

from vault_sync.core.record import Operation, Record
from vault_sync.storage.base import RecordNotFoundError, validate_write
from vault_sync.utils.timeutils import parse_timestamp, utcnow

if TYPE_CHECKING:
    import aiosqlite

logger = logging.getLogger(__name__)

# Filterable data fields: plain identifiers only, used to build a JSON path
_FIELD_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SQLiteRecordMixin:
    """Mixin providing entity record CRUD with same-transaction queueing."""

    # ------------------------------------------------------------------
    # Protocol stubs, satisfied by SQLiteStore at runtime.
    # ------------------------------------------------------------------

    def _ensure_conn(self) -> aiosqlite.Connection:
        raise NotImplementedError

    def _get_write_lock(self) -> asyncio.Lock:
        raise NotImplementedError

    async def _insert_mutation(
        self,
        conn: aiosqlite.Connection,
        entity_type: str,
        record_id: int,
        operation: Operation,
        payload: dict[str, Any] | None,
    ) -> int:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def write(
        self,
        entity: str,
        op: Operation,
        data: dict[str, Any] | None = None,
        record_id: int | None = None,
    ) -> int:
        op = Operation(op)
        validate_write(entity, op, data, record_id)
        conn = self._ensure_conn()

        async with self._get_write_lock():
            try:
                target_id = await self._apply_record_change(conn, entity, op, data, record_id)
                payload = None if op is Operation.DELETE else data
                await self._insert_mutation(conn, entity, target_id, op, payload)
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise

        logger.debug("Local %s on %s #%d queued for sync", op.value, entity, target_id)
        return target_id

    async def read(
        self,
        entity: str,
        filters: dict[str, Any] | None = None,
        *,
        include_deleted: bool = False,
        newest_first: bool = False,
    ) -> list[Record]:
        conn = self._ensure_conn()

        clauses = ["entity = ?"]
        params: list[Any] = [entity]
        if not include_deleted:
            clauses.append("deleted = 0")

        for name, value in (filters or {}).items():
            if not _FIELD_PATTERN.match(name):
                raise ValueError(f"Invalid filter field: {name!r}")
            if value is None:
                clauses.append("json_extract(data, ?) IS NULL")
                params.append(f"$.{name}")
            else:
                clauses.append("json_extract(data, ?) = ?")
                params.extend([f"$.{name}", value])

        order = "DESC" if newest_first else "ASC"
        # Clauses are built from fixed fragments; values stay parameterized.
        sql = f"SELECT * FROM records WHERE {' AND '.join(clauses)} ORDER BY id {order}"

        async with self._get_write_lock(), conn.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def get_record(self, entity: str, record_id: int) -> Record | None:
        conn = self._ensure_conn()
        async with (
            self._get_write_lock(),
            conn.execute(
                "SELECT * FROM records WHERE entity = ? AND id = ?",
                (entity, record_id),
            ) as cursor,
        ):
            row = await cursor.fetchone()
        return _row_to_record(row) if row is not None else None

    async def mark_synced(self, entity: str, record_id: int) -> bool:
        conn = self._ensure_conn()
        async with self._get_write_lock():
            flagged = await self._flag_synced(conn, entity, record_id)
            await conn.commit()
        return flagged

    async def purge_record(self, entity: str, record_id: int) -> bool:
        conn = self._ensure_conn()
        async with self._get_write_lock():
            purged = await self._delete_tombstone(conn, entity, record_id)
            await conn.commit()
        return purged

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _flag_synced(self, conn: aiosqlite.Connection, entity: str, record_id: int) -> bool:
        """Set ``synced`` unless the record still has queued entries. No commit."""
        cursor = await conn.execute(
            """UPDATE records SET synced = 1
               WHERE entity = ? AND id = ?
                 AND NOT EXISTS (
                     SELECT 1 FROM sync_queue WHERE entity_type = ? AND record_id = ?
                 )""",
            (entity, record_id, entity, record_id),
        )
        return cursor.rowcount > 0

    async def _delete_tombstone(
        self, conn: aiosqlite.Connection, entity: str, record_id: int
    ) -> bool:
        """Remove a tombstone with no queued entries left. No commit."""
        cursor = await conn.execute(
            """DELETE FROM records
               WHERE entity = ? AND id = ? AND deleted = 1
                 AND NOT EXISTS (
                     SELECT 1 FROM sync_queue WHERE entity_type = ? AND record_id = ?
                 )""",
            (entity, record_id, entity, record_id),
        )
        return cursor.rowcount > 0

    async def _apply_record_change(
        self,
        conn: aiosqlite.Connection,
        entity: str,
        op: Operation,
        data: dict[str, Any] | None,
        record_id: int | None,
    ) -> int:
        now = utcnow().isoformat()

        if op is Operation.CREATE:
            cursor = await conn.execute(
                """INSERT INTO records (entity, data, synced, deleted, created_at, updated_at)
                   VALUES (?, ?, 0, 0, ?, ?)""",
                (entity, json.dumps(data), now, now),
            )
            return int(cursor.lastrowid or 0)

        assert record_id is not None
        if op is Operation.UPDATE:
            cursor = await conn.execute(
                """UPDATE records SET data = ?, synced = 0, updated_at = ?
                   WHERE entity = ? AND id = ? AND deleted = 0""",
                (json.dumps(data), now, entity, record_id),
            )
        else:
            cursor = await conn.execute(
                """UPDATE records SET deleted = 1, synced = 0, updated_at = ?
                   WHERE entity = ? AND id = ? AND deleted = 0""",
                (now, entity, record_id),
            )

        if cursor.rowcount == 0:
            raise RecordNotFoundError(entity, record_id)
        return record_id


def _row_to_record(row: aiosqlite.Row) -> Record:
    """Convert a database row to a Record."""
    created_at = parse_timestamp(row["created_at"]) or utcnow()
    updated_at = parse_timestamp(row["updated_at"]) or created_at

    data: dict[str, Any] = {}
    if row["data"]:
        try:
            data = json.loads(row["data"])
        except (json.JSONDecodeError, TypeError):
            logger.warning("Corrupt data JSON in records #%s", row["id"])

    return Record(
        id=int(row["id"]),
        entity=str(row["entity"]),
        data=data,
        synced=bool(row["synced"]),
        deleted=bool(row["deleted"]),
        created_at=created_at,
        updated_at=updated_at,
    )
