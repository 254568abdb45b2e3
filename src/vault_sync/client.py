"""Offline-first client wiring the local store to the sync engine."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from vault_sync.core.identity import Identity, IdentityProvider, StaticIdentityProvider
from vault_sync.core.record import Operation, Record
from vault_sync.storage.base import LocalStore, RecordNotFoundError
from vault_sync.storage.sqlite_store import SQLiteStore
from vault_sync.sync.broadcaster import StatusBroadcaster, StatusHandler
from vault_sync.sync.connectivity import ConnectivityMonitor, HttpHealthProbe, Probe
from vault_sync.sync.gateway import RemoteGateway
from vault_sync.sync.protocol import SyncResult
from vault_sync.sync.sync_engine import SyncEngine
from vault_sync.unified_config import RemoteConfig, UnifiedConfig

logger = logging.getLogger(__name__)

USERS = "users"
PASSWORDS = "passwords"

_USER_FIELDS = ("google_id", "email", "name", "picture", "verified_email")
_PASSWORD_FIELDS = ("title", "username", "password", "website", "notes")


class OfflineClient:
    """
    Application-facing facade over the offline queue.

    Writes land in the local store and the mutation queue in one step; the
    engine drains the queue whenever connectivity returns or on demand.

    Usage:
        async with OfflineClient.from_config(UnifiedConfig.load()) as client:
            await client.save_password(user_id, {"title": "mail"})
            await client.perform_sync()
    """

    def __init__(
        self,
        store: LocalStore,
        gateway: RemoteGateway,
        monitor: ConnectivityMonitor,
        broadcaster: StatusBroadcaster,
        engine: SyncEngine,
        identity_provider: IdentityProvider,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.monitor = monitor
        self.broadcaster = broadcaster
        self.engine = engine
        self.identity_provider = identity_provider
        self.monitor.on_reconnect(self.engine.perform_sync)

    @classmethod
    def from_config(
        cls,
        config: UnifiedConfig,
        *,
        identity_provider: IdentityProvider | None = None,
        store: LocalStore | None = None,
        probe: Probe | None = None,
    ) -> OfflineClient:
        """
        Build every component from configuration.

        Args:
            config: Loaded configuration
            identity_provider: Identity source; defaults to the configured token
            store: Local store; defaults to SQLite at ``config.db_path``
            probe: Reachability probe; defaults to GET on the health endpoint

        Returns:
            An uninitialized client (call ``initialize()`` or use ``async with``)
        """
        remote = config.effective_remote()
        if identity_provider is None:
            identity = None
            if remote.api_token:
                identity = Identity(
                    user_id=remote.email or "default",
                    email=remote.email or None,
                    token=remote.api_token,
                )
            identity_provider = StaticIdentityProvider(identity)

        broadcaster = StatusBroadcaster()
        monitor = ConnectivityMonitor(
            broadcaster,
            probe if probe is not None else HttpHealthProbe(remote.health_url),
            reconnect_delay=config.sync.reconnect_delay,
        )
        gateway = RemoteGateway(remote.base_url, identity_provider, timeout=remote.timeout)
        local_store = store if store is not None else SQLiteStore(config.db_path)
        engine = SyncEngine(
            local_store,
            gateway,
            monitor,
            broadcaster,
            identity_provider,
            max_attempts=config.sync.max_attempts,
            purge_deleted=config.sync.purge_deleted,
        )
        return cls(local_store, gateway, monitor, broadcaster, engine, identity_provider)

    @classmethod
    def create(
        cls,
        db_path: str | Path,
        base_url: str,
        identity_provider: IdentityProvider,
        **kwargs: Any,
    ) -> OfflineClient:
        """Build a client without a config file."""
        config = UnifiedConfig(data_dir=Path(db_path).parent, database=Path(db_path).name)
        config.remote = RemoteConfig.from_dict({"base_url": base_url})
        return cls.from_config(config, identity_provider=identity_provider, **kwargs)

    async def initialize(self) -> None:
        """Open the store and take an initial connectivity reading."""
        await self.store.initialize()
        await self.monitor.check_now()

    async def close(self) -> None:
        """Stop monitoring and release every resource."""
        await self.monitor.close()
        await self.gateway.close()
        await self.store.close()
        self.broadcaster.clear()

    async def __aenter__(self) -> OfflineClient:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ========== Sync ==========

    def subscribe(self, callback: StatusHandler) -> Any:
        """Register a status listener; returns its unsubscribe function."""
        return self.broadcaster.subscribe(callback)

    async def perform_sync(self, force: bool = False) -> SyncResult:
        return await self.engine.perform_sync(force=force)

    async def sync_status(self) -> dict[str, Any]:
        return await self.engine.status()

    async def clear_all_data(self) -> None:
        """Wipe every local record and queued mutation."""
        await self.store.clear()

    # ========== Users ==========

    async def save_user_offline(self, user_info: dict[str, Any]) -> int:
        """Insert or replace a user keyed by email.

        Returns:
            The local record id
        """
        email = user_info.get("email")
        if not email:
            raise ValueError("User email is required")

        data = {k: user_info[k] for k in _USER_FIELDS if k in user_info}
        data["verified_email"] = bool(data.get("verified_email", False))
        data.setdefault("is_active", True)

        existing = await self.get_user_by_email(email)
        if existing is None:
            record_id = await self.store.write(USERS, Operation.CREATE, data)
        else:
            record_id = await self.store.write(
                USERS, Operation.UPDATE, {**existing.data, **data}, existing.id
            )
        logger.debug("User %d saved offline", record_id)
        return record_id

    async def get_user_by_email(self, email: str) -> Record | None:
        users = await self.store.read(USERS, {"email": email, "is_active": True})
        return users[0] if users else None

    # ========== Passwords ==========

    async def save_password(self, user_id: int, password_data: dict[str, Any]) -> int:
        """Store a new password entry and queue it for sync."""
        if not password_data.get("title"):
            raise ValueError("Password title is required")
        data = {k: password_data.get(k) for k in _PASSWORD_FIELDS}
        data["user_id"] = user_id
        return await self.store.write(PASSWORDS, Operation.CREATE, data)

    async def get_passwords(self, user_id: int) -> list[Record]:
        """Live passwords for a user, newest first."""
        return await self.store.read(PASSWORDS, {"user_id": user_id}, newest_first=True)

    async def update_password(self, password_id: int, password_data: dict[str, Any]) -> None:
        existing = await self.store.get_record(PASSWORDS, password_id)
        if existing is None or existing.deleted:
            raise RecordNotFoundError(PASSWORDS, password_id)
        changes = {k: password_data[k] for k in _PASSWORD_FIELDS if k in password_data}
        data = {**existing.data, **changes}
        if not data.get("title"):
            raise ValueError("Password title is required")
        await self.store.write(PASSWORDS, Operation.UPDATE, data, password_id)

    async def delete_password(self, password_id: int) -> None:
        await self.store.write(PASSWORDS, Operation.DELETE, record_id=password_id)
