"""SQLite storage backend for the local-first store."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import aiosqlite

from vault_sync.core.record import MutationEntry, Operation
from vault_sync.storage.base import LocalStore
from vault_sync.storage.sqlite_mutation_log import SQLiteMutationLogMixin
from vault_sync.storage.sqlite_records import SQLiteRecordMixin
from vault_sync.storage.sqlite_schema import SCHEMA, SCHEMA_VERSION, run_migrations

logger = logging.getLogger(__name__)


class SQLiteStore(
    SQLiteMutationLogMixin,
    SQLiteRecordMixin,
    LocalStore,
):
    """SQLite-based durable store for records and the mutation queue.

    All access goes through one connection guarded by a store-wide asyncio
    lock. Writes hold it for their whole transaction and reads wait for it,
    so nothing uncommitted is ever observed and a drain cycle updating
    ``synced``/``attempts`` never interleaves with a user edit.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path).resolve()
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def initialize(self) -> None:
        """Open the database connection and bring the schema up to date.

        Existing databases run pending migrations first, then the full
        schema is applied with CREATE ... IF NOT EXISTS.
        """
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row

        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA synchronous=NORMAL")

        await self._conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY)"
        )
        await self._conn.commit()

        async with self._conn.execute("SELECT version FROM schema_version") as cursor:
            row = await cursor.fetchone()

        if row is not None and row["version"] < SCHEMA_VERSION:
            logger.info("Migrating local store %s from v%d", self._db_path, row["version"])
            await run_migrations(self._conn, row["version"])

        await self._conn.executescript(SCHEMA)

        if row is None:
            await self._conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
            await self._conn.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> SQLiteStore:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _ensure_conn(self) -> aiosqlite.Connection:
        """Ensure the connection is available."""
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    def _get_write_lock(self) -> asyncio.Lock:
        return self._write_lock

    # ========== Acknowledgement ==========

    async def acknowledge(self, entry: MutationEntry, *, purge_deleted: bool = False) -> bool:
        conn = self._ensure_conn()
        async with self._write_lock:
            try:
                removed = await self._delete_mutation(conn, entry.id)
                if entry.operation is not Operation.DELETE:
                    await self._flag_synced(conn, entry.entity_type, entry.record_id)
                elif purge_deleted:
                    await self._delete_tombstone(conn, entry.entity_type, entry.record_id)
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise
        return removed

    # ========== Cleanup ==========

    async def clear(self) -> None:
        conn = self._ensure_conn()
        async with self._write_lock:
            for table in ("sync_queue", "records"):
                # Table names come from a hardcoded tuple.
                await conn.execute(f"DELETE FROM {table}")
            await conn.commit()
        logger.info("Cleared all local records and queued mutations")
