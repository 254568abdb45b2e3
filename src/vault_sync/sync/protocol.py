"""Sync protocol data structures: engine state, cycle results, feed events."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from vault_sync.sync.errors import BusyError, OfflineError, Unauthenticated, VaultSyncError


class SyncState(StrEnum):
    """Reconciliation engine state."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncStatus(StrEnum):
    """Outcome of a ``perform_sync`` call."""

    COMPLETED = "completed"
    BUSY = "busy"
    OFFLINE = "offline"
    UNAUTHENTICATED = "unauthenticated"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncResult:
    """Result returned by the manual trigger."""

    status: SyncStatus
    message: str
    synced_count: int | None = None
    failed_count: int | None = None
    skipped_count: int = 0
    parked_count: int = 0

    @property
    def success(self) -> bool:
        return self.status == SyncStatus.COMPLETED

    @classmethod
    def busy(cls) -> SyncResult:
        return cls(status=SyncStatus.BUSY, message="Sync already in progress")

    @classmethod
    def offline(cls) -> SyncResult:
        return cls(status=SyncStatus.OFFLINE, message="Device is offline")

    @classmethod
    def unauthenticated(cls) -> SyncResult:
        return cls(status=SyncStatus.UNAUTHENTICATED, message="No authenticated user found")

    def raise_for_status(self) -> None:
        """Raise the matching error for a precondition or cycle failure."""
        if self.status == SyncStatus.BUSY:
            raise BusyError(self.message)
        if self.status == SyncStatus.OFFLINE:
            raise OfflineError(self.message)
        if self.status == SyncStatus.UNAUTHENTICATED:
            raise Unauthenticated(self.message)
        if self.status == SyncStatus.FAILED:
            raise VaultSyncError(self.message)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "status": self.status.value,
            "message": self.message,
        }
        if self.synced_count is not None:
            data["synced_count"] = self.synced_count
        if self.failed_count is not None:
            data["failed_count"] = self.failed_count
        if self.skipped_count:
            data["skipped_count"] = self.skipped_count
        if self.parked_count:
            data["parked_count"] = self.parked_count
        return data


@dataclass(frozen=True)
class StatusEvent:
    """A single notification on the subscription feed.

    Only the fields relevant to the phase are set; ``to_dict`` drops the rest.
    """

    is_online: bool | None = None
    sync_in_progress: bool | None = None
    sync_completed: bool | None = None
    synced_count: int | None = None
    failed_count: int | None = None
    sync_failed: bool | None = None
    error: str | None = None

    @classmethod
    def online(cls, state: bool) -> StatusEvent:
        return cls(is_online=state)

    @classmethod
    def progress(cls, in_progress: bool) -> StatusEvent:
        return cls(sync_in_progress=in_progress)

    @classmethod
    def completed(cls, synced_count: int, failed_count: int) -> StatusEvent:
        return cls(sync_completed=True, synced_count=synced_count, failed_count=failed_count)

    @classmethod
    def failed(cls, error: str) -> StatusEvent:
        return cls(sync_failed=True, error=error)

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}
