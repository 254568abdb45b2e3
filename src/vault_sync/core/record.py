"""Record and mutation data structures for the local store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from vault_sync.utils.timeutils import utcnow


class Operation(StrEnum):
    """Kind of local mutation waiting for remote confirmation."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class Record:
    """
    A locally stored entity row.

    Records are identified by a local integer id that is unique per store.
    The ``data`` dict is the full entity payload; updates replace it whole.

    Attributes:
        id: Local record id
        entity: Entity type name (e.g. "passwords", "users")
        data: Full entity payload
        synced: True once the remote side confirmed the latest local state
        deleted: Tombstone flag for soft deletes
        created_at: When the record was first written locally
        updated_at: When the record was last changed locally
    """

    id: int
    entity: str
    data: dict[str, Any] = field(default_factory=dict)
    synced: bool = False
    deleted: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity": self.entity,
            "data": dict(self.data),
            "synced": self.synced,
            "deleted": self.deleted,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class MutationEntry:
    """A queued local change awaiting remote confirmation."""

    id: int
    entity_type: str
    record_id: int
    operation: Operation
    payload: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=utcnow)
    attempts: int = 0
    last_error: str | None = None

    @property
    def key(self) -> tuple[str, int]:
        """The ``(entity_type, record_id)`` pair this entry refers to."""
        return (self.entity_type, self.record_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "record_id": self.record_id,
            "operation": self.operation.value,
            "payload": self.payload,
            "created_at": self.created_at.isoformat(),
            "attempts": self.attempts,
            "last_error": self.last_error,
        }
