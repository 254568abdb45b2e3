"""Abstract base class for local-first storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from vault_sync.core.record import Operation

if TYPE_CHECKING:
    from vault_sync.core.record import MutationEntry, Record


class RecordNotFoundError(ValueError):
    """Raised when an update or delete targets a record that does not exist."""

    def __init__(self, entity: str, record_id: int) -> None:
        super().__init__(f"{entity} record {record_id} not found")
        self.entity = entity
        self.record_id = record_id


class LocalStore(ABC):
    """
    Abstract interface for the local store.

    A store holds entity records and a separate append-only mutation log.
    Every write through ``write()`` touches both in one atomic step: the
    record change is never visible without its queue entry, and vice versa.
    """

    async def initialize(self) -> None:  # noqa: B027
        """Open resources. No-op by default."""

    async def close(self) -> None:  # noqa: B027
        """Release resources. No-op by default."""

    # ========== Record Operations ==========

    @abstractmethod
    async def write(
        self,
        entity: str,
        op: Operation,
        data: dict[str, Any] | None = None,
        record_id: int | None = None,
    ) -> int:
        """
        Apply a local mutation and enqueue it for sync.

        Args:
            entity: Entity type name
            op: CREATE, UPDATE or DELETE
            data: Full record payload (required for CREATE and UPDATE)
            record_id: Target record (required for UPDATE and DELETE)

        Returns:
            The local record id

        Raises:
            RecordNotFoundError: If UPDATE/DELETE targets an unknown record
            ValueError: If required arguments are missing
        """
        ...

    @abstractmethod
    async def read(
        self,
        entity: str,
        filters: dict[str, Any] | None = None,
        *,
        include_deleted: bool = False,
        newest_first: bool = False,
    ) -> list[Record]:
        """
        Read records of one entity type.

        Args:
            entity: Entity type name
            filters: Equality matches on top-level data fields
            include_deleted: Also return tombstoned records
            newest_first: Order by id descending instead of ascending

        Returns:
            Matching records in id order
        """
        ...

    @abstractmethod
    async def get_record(self, entity: str, record_id: int) -> Record | None:
        """Get a single record by id, tombstoned or not."""
        ...

    @abstractmethod
    async def mark_synced(self, entity: str, record_id: int) -> bool:
        """
        Flag a record as confirmed by the remote side.

        The flag is only set when no other mutation for the same record is
        still queued, so ``synced`` always reflects the latest local state.

        Returns:
            True if the flag was set
        """
        ...

    @abstractmethod
    async def purge_record(self, entity: str, record_id: int) -> bool:
        """Physically remove a tombstoned record. Returns True if removed."""
        ...

    @abstractmethod
    async def acknowledge(self, entry: MutationEntry, *, purge_deleted: bool = False) -> bool:
        """
        Retire a queue entry the remote side has confirmed.

        Removes the entry and, in the same atomic step, marks its record
        synced (CREATE/UPDATE) or purges the tombstone (DELETE with
        ``purge_deleted``). Both follow the pending-entry rule of
        ``mark_synced`` and ``purge_record``.

        Returns:
            True if the entry was still queued
        """
        ...

    # ========== Mutation Log Operations ==========

    @abstractmethod
    async def enqueue_mutation(
        self,
        entity_type: str,
        record_id: int,
        operation: Operation,
        payload: dict[str, Any] | None = None,
    ) -> int:
        """Append a mutation entry. Returns the entry id."""
        ...

    @abstractmethod
    async def drain_queue_snapshot(self, limit: int | None = None) -> list[MutationEntry]:
        """Pending entries in FIFO order (created_at, then id, ascending)."""
        ...

    @abstractmethod
    async def remove_mutation(self, entry_id: int) -> bool:
        """Delete a queue entry after confirmed remote success."""
        ...

    @abstractmethod
    async def increment_attempts(self, entry_id: int, error: str | None = None) -> int:
        """
        Record one failed delivery attempt.

        Returns:
            The new attempt count, or 0 if the entry no longer exists
        """
        ...

    @abstractmethod
    async def get_queue_stats(self) -> dict[str, Any]:
        """Queue statistics: pending, failing, max_attempts, oldest."""
        ...

    # ========== Cleanup ==========

    @abstractmethod
    async def clear(self) -> None:
        """Remove all records and queue entries."""
        ...


def validate_write(
    entity: str,
    op: Operation,
    data: dict[str, Any] | None,
    record_id: int | None,
) -> None:
    """Check the argument combination for ``LocalStore.write``."""
    if not entity:
        raise ValueError("Entity name must not be empty")
    if op in (Operation.CREATE, Operation.UPDATE) and data is None:
        raise ValueError(f"{op.value} requires a data payload")
    if op in (Operation.UPDATE, Operation.DELETE) and record_id is None:
        raise ValueError(f"{op.value} requires a record_id")
