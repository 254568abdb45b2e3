"""Error taxonomy for the sync layer."""

from __future__ import annotations


class VaultSyncError(Exception):
    """Base class for sync-layer errors."""


class Unauthenticated(VaultSyncError):
    """No authenticated identity is available for a remote call."""

    def __init__(self, message: str = "No authenticated user found") -> None:
        super().__init__(message)


class OfflineError(VaultSyncError):
    """The device had no connectivity when a drain cycle was requested."""

    def __init__(self, message: str = "Device is offline") -> None:
        super().__init__(message)


class BusyError(VaultSyncError):
    """A drain cycle is already running."""

    def __init__(self, message: str = "Sync already in progress") -> None:
        super().__init__(message)


class TransportFailure(VaultSyncError):
    """Network or transport-level failure on a gateway call."""


class RemoteRejected(VaultSyncError):
    """The remote API answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnknownEntityType(VaultSyncError):
    """The gateway has no route for an entity type."""

    def __init__(self, entity_type: str) -> None:
        super().__init__(f"Unknown entity type for sync: {entity_type}")
        self.entity_type = entity_type


# Per-item failures: recorded on the entry, never abort a drain cycle.
ITEM_FAILURES: tuple[type[VaultSyncError], ...] = (
    TransportFailure,
    RemoteRejected,
    Unauthenticated,
)
