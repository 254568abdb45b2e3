"""VaultSync - offline-first mutation queue with a reconnect-driven sync engine."""

from vault_sync.client import OfflineClient
from vault_sync.core.identity import Identity, StaticIdentityProvider
from vault_sync.core.record import MutationEntry, Operation, Record
from vault_sync.storage.memory_store import InMemoryStore
from vault_sync.storage.sqlite_store import SQLiteStore
from vault_sync.sync.protocol import StatusEvent, SyncResult, SyncStatus
from vault_sync.sync.sync_engine import SyncEngine
from vault_sync.unified_config import UnifiedConfig

__version__ = "0.1.0"

__all__ = [
    "Identity",
    "InMemoryStore",
    "MutationEntry",
    "OfflineClient",
    "Operation",
    "Record",
    "SQLiteStore",
    "StaticIdentityProvider",
    "StatusEvent",
    "SyncEngine",
    "SyncResult",
    "SyncStatus",
    "UnifiedConfig",
    "__version__",
]
