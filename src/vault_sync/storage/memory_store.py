"""In-memory storage backend."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any

from vault_sync.core.record import MutationEntry, Operation, Record
from vault_sync.storage.base import LocalStore, RecordNotFoundError, validate_write
from vault_sync.utils.timeutils import utcnow


class InMemoryStore(LocalStore):
    """Dict-backed store for development and testing.

    Data is lost when the process exits.
    """

    def __init__(self) -> None:
        self._records: dict[int, Record] = {}
        self._queue: dict[int, MutationEntry] = {}
        self._next_record_id = 1
        self._next_entry_id = 1
        self._lock = asyncio.Lock()

    # ========== Record Operations ==========

    async def write(
        self,
        entity: str,
        op: Operation,
        data: dict[str, Any] | None = None,
        record_id: int | None = None,
    ) -> int:
        op = Operation(op)
        validate_write(entity, op, data, record_id)

        async with self._lock:
            now = utcnow()
            if op is Operation.CREATE:
                target_id = self._next_record_id
                record = Record(
                    id=target_id,
                    entity=entity,
                    data=dict(data or {}),
                    created_at=now,
                    updated_at=now,
                )
            else:
                assert record_id is not None
                existing = self._records.get(record_id)
                if existing is None or existing.entity != entity or existing.deleted:
                    raise RecordNotFoundError(entity, record_id)
                target_id = record_id
                if op is Operation.UPDATE:
                    record = replace(existing, data=dict(data or {}), synced=False, updated_at=now)
                else:
                    record = replace(existing, deleted=True, synced=False, updated_at=now)

            # Both sides are committed together once nothing can fail.
            entry = self._new_entry(entity, target_id, op, None if op is Operation.DELETE else data)
            self._records[target_id] = record
            self._queue[entry.id] = entry
            if op is Operation.CREATE:
                self._next_record_id += 1
            return target_id

    async def read(
        self,
        entity: str,
        filters: dict[str, Any] | None = None,
        *,
        include_deleted: bool = False,
        newest_first: bool = False,
    ) -> list[Record]:
        matches = [
            _detached(r)
            for r in self._records.values()
            if r.entity == entity
            and (include_deleted or not r.deleted)
            and all(r.data.get(k) == v for k, v in (filters or {}).items())
        ]
        return sorted(matches, key=lambda r: r.id, reverse=newest_first)

    async def get_record(self, entity: str, record_id: int) -> Record | None:
        record = self._records.get(record_id)
        if record is None or record.entity != entity:
            return None
        return _detached(record)

    async def mark_synced(self, entity: str, record_id: int) -> bool:
        async with self._lock:
            return self._flag_synced(entity, record_id)

    async def purge_record(self, entity: str, record_id: int) -> bool:
        async with self._lock:
            return self._delete_tombstone(entity, record_id)

    async def acknowledge(self, entry: MutationEntry, *, purge_deleted: bool = False) -> bool:
        async with self._lock:
            removed = self._queue.pop(entry.id, None) is not None
            if entry.operation is not Operation.DELETE:
                self._flag_synced(entry.entity_type, entry.record_id)
            elif purge_deleted:
                self._delete_tombstone(entry.entity_type, entry.record_id)
            return removed

    # ========== Mutation Log Operations ==========

    async def enqueue_mutation(
        self,
        entity_type: str,
        record_id: int,
        operation: Operation,
        payload: dict[str, Any] | None = None,
    ) -> int:
        async with self._lock:
            entry = self._new_entry(entity_type, record_id, Operation(operation), payload)
            self._queue[entry.id] = entry
            return entry.id

    async def drain_queue_snapshot(self, limit: int | None = None) -> list[MutationEntry]:
        entries = sorted(self._queue.values(), key=lambda e: (e.created_at, e.id))
        if limit is not None:
            entries = entries[: max(0, limit)]
        return entries

    async def remove_mutation(self, entry_id: int) -> bool:
        async with self._lock:
            return self._queue.pop(entry_id, None) is not None

    async def increment_attempts(self, entry_id: int, error: str | None = None) -> int:
        async with self._lock:
            entry = self._queue.get(entry_id)
            if entry is None:
                return 0
            updated = replace(
                entry,
                attempts=entry.attempts + 1,
                last_error=error if error else entry.last_error,
            )
            self._queue[entry_id] = updated
            return updated.attempts

    async def get_queue_stats(self) -> dict[str, Any]:
        entries = list(self._queue.values())
        oldest = min((e.created_at for e in entries), default=None)
        return {
            "pending": len(entries),
            "failing": sum(1 for e in entries if e.attempts > 0),
            "max_attempts": max((e.attempts for e in entries), default=0),
            "oldest": oldest.isoformat() if oldest else None,
        }

    # ========== Cleanup ==========

    async def clear(self) -> None:
        async with self._lock:
            self._records.clear()
            self._queue.clear()

    # ========== Internals ==========

    def _new_entry(
        self,
        entity_type: str,
        record_id: int,
        operation: Operation,
        payload: dict[str, Any] | None,
    ) -> MutationEntry:
        entry = MutationEntry(
            id=self._next_entry_id,
            entity_type=entity_type,
            record_id=record_id,
            operation=operation,
            payload=dict(payload) if payload is not None else None,
            created_at=utcnow(),
        )
        self._next_entry_id += 1
        return entry

    def _has_pending(self, entity: str, record_id: int) -> bool:
        return any(e.key == (entity, record_id) for e in self._queue.values())

    def _flag_synced(self, entity: str, record_id: int) -> bool:
        record = self._records.get(record_id)
        if record is None or record.entity != entity or self._has_pending(entity, record_id):
            return False
        self._records[record_id] = replace(record, synced=True)
        return True

    def _delete_tombstone(self, entity: str, record_id: int) -> bool:
        record = self._records.get(record_id)
        if (
            record is None
            or record.entity != entity
            or not record.deleted
            or self._has_pending(entity, record_id)
        ):
            return False
        del self._records[record_id]
        return True


def _detached(record: Record) -> Record:
    """Copy handed to callers so edits to ``data`` never reach the store."""
    return replace(record, data=dict(record.data))
