"""Core data structures for VaultSync."""

from vault_sync.core.identity import (
    Identity,
    IdentityProvider,
    StaticIdentityProvider,
    resolve_identity,
)
from vault_sync.core.record import MutationEntry, Operation, Record

__all__ = [
    "Identity",
    "IdentityProvider",
    "StaticIdentityProvider",
    "MutationEntry",
    "Operation",
    "Record",
    "resolve_identity",
]
