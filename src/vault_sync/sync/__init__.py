"""Offline queue reconciliation: connectivity, remote gateway, drain engine."""

from vault_sync.sync.broadcaster import StatusBroadcaster
from vault_sync.sync.connectivity import ConnectivityMonitor, HttpHealthProbe
from vault_sync.sync.errors import (
    BusyError,
    OfflineError,
    RemoteRejected,
    TransportFailure,
    Unauthenticated,
    UnknownEntityType,
    VaultSyncError,
)
from vault_sync.sync.gateway import DEFAULT_ROUTES, EntityRoute, RemoteGateway, RemoteResult
from vault_sync.sync.protocol import StatusEvent, SyncResult, SyncState, SyncStatus
from vault_sync.sync.sync_engine import SyncEngine

__all__ = [
    "DEFAULT_ROUTES",
    "BusyError",
    "ConnectivityMonitor",
    "EntityRoute",
    "HttpHealthProbe",
    "OfflineError",
    "RemoteGateway",
    "RemoteRejected",
    "RemoteResult",
    "StatusBroadcaster",
    "StatusEvent",
    "SyncEngine",
    "SyncResult",
    "SyncState",
    "SyncStatus",
    "TransportFailure",
    "Unauthenticated",
    "UnknownEntityType",
    "VaultSyncError",
]
