"""SQLite mutation log (sync queue) operations mixin."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from vault_sync.core.record import MutationEntry, Operation
from vault_sync.utils.timeutils import parse_timestamp, utcnow

if TYPE_CHECKING:
    import aiosqlite

logger = logging.getLogger(__name__)

# Longest error message kept on a queue entry
MAX_ERROR_LENGTH = 500


class SQLiteMutationLogMixin:
    """Mixin providing the append-only mutation queue used by the sync engine."""

    # ------------------------------------------------------------------
    # Protocol stubs, satisfied by SQLiteStore at runtime.
    # ------------------------------------------------------------------

    def _ensure_conn(self) -> aiosqlite.Connection:
        raise NotImplementedError

    def _get_write_lock(self) -> asyncio.Lock:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def enqueue_mutation(
        self,
        entity_type: str,
        record_id: int,
        operation: Operation,
        payload: dict[str, Any] | None = None,
    ) -> int:
        conn = self._ensure_conn()
        async with self._get_write_lock():
            try:
                entry_id = await self._insert_mutation(
                    conn, entity_type, record_id, Operation(operation), payload
                )
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise
        return entry_id

    async def drain_queue_snapshot(self, limit: int | None = None) -> list[MutationEntry]:
        conn = self._ensure_conn()

        sql = "SELECT * FROM sync_queue ORDER BY created_at ASC, id ASC"
        params: tuple[Any, ...] = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (max(0, limit),)

        async with self._get_write_lock(), conn.execute(sql, params) as cursor:
            rows = await cursor.fetchall()

        entries: list[MutationEntry] = []
        for row in rows:
            entry = _row_to_mutation_entry(row)
            if entry is not None:
                entries.append(entry)
        return entries

    async def remove_mutation(self, entry_id: int) -> bool:
        conn = self._ensure_conn()
        async with self._get_write_lock():
            removed = await self._delete_mutation(conn, entry_id)
            await conn.commit()
        return removed

    async def increment_attempts(self, entry_id: int, error: str | None = None) -> int:
        conn = self._ensure_conn()
        async with self._get_write_lock():
            await conn.execute(
                """UPDATE sync_queue
                   SET attempts = attempts + 1, last_error = COALESCE(?, last_error)
                   WHERE id = ?""",
                (error[:MAX_ERROR_LENGTH] if error else None, entry_id),
            )
            await conn.commit()
            async with conn.execute(
                "SELECT attempts FROM sync_queue WHERE id = ?", (entry_id,)
            ) as cursor:
                row = await cursor.fetchone()
        return int(row["attempts"]) if row is not None else 0

    async def get_queue_stats(self) -> dict[str, Any]:
        conn = self._ensure_conn()

        async with self._get_write_lock(), conn.execute(
            """SELECT
                COUNT(*) as pending,
                SUM(CASE WHEN attempts > 0 THEN 1 ELSE 0 END) as failing,
                MAX(attempts) as max_attempts,
                MIN(created_at) as oldest
               FROM sync_queue"""
        ) as cursor:
            row = await cursor.fetchone()

        if row is None:
            return {"pending": 0, "failing": 0, "max_attempts": 0, "oldest": None}
        return {
            "pending": row["pending"] or 0,
            "failing": row["failing"] or 0,
            "max_attempts": row["max_attempts"] or 0,
            "oldest": row["oldest"],
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _insert_mutation(
        self,
        conn: aiosqlite.Connection,
        entity_type: str,
        record_id: int,
        operation: Operation,
        payload: dict[str, Any] | None,
    ) -> int:
        """Insert a queue row without committing (caller owns the transaction)."""
        cursor = await conn.execute(
            """INSERT INTO sync_queue
               (entity_type, record_id, operation, payload, created_at, attempts)
               VALUES (?, ?, ?, ?, ?, 0)""",
            (
                entity_type,
                record_id,
                operation.value,
                json.dumps(payload) if payload is not None else None,
                utcnow().isoformat(),
            ),
        )
        return int(cursor.lastrowid or 0)

    async def _delete_mutation(self, conn: aiosqlite.Connection, entry_id: int) -> bool:
        cursor = await conn.execute("DELETE FROM sync_queue WHERE id = ?", (entry_id,))
        return cursor.rowcount > 0


def _row_to_mutation_entry(row: aiosqlite.Row) -> MutationEntry | None:
    """Convert a database row to a MutationEntry. Returns None if the row is unusable."""
    try:
        operation = Operation(row["operation"])
    except ValueError:
        logger.warning("Unknown operation %r in sync_queue #%s", row["operation"], row["id"])
        return None

    payload: dict[str, Any] | None = None
    if row["payload"]:
        try:
            payload = json.loads(row["payload"])
        except (json.JSONDecodeError, TypeError):
            logger.warning("Corrupt payload JSON in sync_queue #%s", row["id"])

    return MutationEntry(
        id=int(row["id"]),
        entity_type=str(row["entity_type"]),
        record_id=int(row["record_id"]),
        operation=operation,
        payload=payload,
        created_at=parse_timestamp(row["created_at"]) or utcnow(),
        attempts=int(row["attempts"] or 0),
        last_error=row["last_error"],
    )
