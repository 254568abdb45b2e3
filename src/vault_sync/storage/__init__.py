"""Storage backends for VaultSync."""

from vault_sync.storage.base import LocalStore, RecordNotFoundError
from vault_sync.storage.memory_store import InMemoryStore
from vault_sync.storage.sqlite_store import SQLiteStore

__all__ = [
    "LocalStore",
    "RecordNotFoundError",
    "InMemoryStore",
    "SQLiteStore",
]
