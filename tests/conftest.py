"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from fakes import FakeGateway, ManualSleep

from vault_sync.core.identity import Identity, StaticIdentityProvider
from vault_sync.storage.memory_store import InMemoryStore
from vault_sync.storage.sqlite_store import SQLiteStore
from vault_sync.sync.broadcaster import StatusBroadcaster
from vault_sync.sync.connectivity import ConnectivityMonitor
from vault_sync.sync.protocol import StatusEvent
from vault_sync.sync.sync_engine import SyncEngine


@pytest_asyncio.fixture
async def memory_store() -> AsyncGenerator[InMemoryStore, None]:
    """Create an in-memory store."""
    store = InMemoryStore()
    await store.initialize()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def sqlite_store(tmp_path: Path) -> AsyncGenerator[SQLiteStore, None]:
    """Create a SQLite store in a temp directory."""
    store = SQLiteStore(tmp_path / "vault.db")
    await store.initialize()
    yield store
    await store.close()


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(
    request: pytest.FixtureRequest, tmp_path: Path
) -> AsyncGenerator[InMemoryStore | SQLiteStore, None]:
    """Run a test against both store backends."""
    backend: InMemoryStore | SQLiteStore
    if request.param == "memory":
        backend = InMemoryStore()
    else:
        backend = SQLiteStore(tmp_path / "vault.db")
    await backend.initialize()
    yield backend
    await backend.close()


@pytest.fixture
def broadcaster() -> StatusBroadcaster:
    return StatusBroadcaster()


@pytest.fixture
def events(broadcaster: StatusBroadcaster) -> list[StatusEvent]:
    """Every event published on the broadcaster, in order."""
    received: list[StatusEvent] = []
    broadcaster.subscribe(received.append)
    return received


@pytest.fixture
def manual_sleep() -> ManualSleep:
    return ManualSleep()


@pytest.fixture
def monitor(broadcaster: StatusBroadcaster, manual_sleep: ManualSleep) -> ConnectivityMonitor:
    """An online monitor with an instant reconnect delay."""
    mon = ConnectivityMonitor(broadcaster, reconnect_delay=1.0, sleep=manual_sleep)
    mon._online = True
    return mon


@pytest.fixture
def identity_provider() -> StaticIdentityProvider:
    return StaticIdentityProvider(Identity(user_id="u-1", email="a@example.com", token="tok"))


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def engine(
    store: InMemoryStore | SQLiteStore,
    gateway: FakeGateway,
    monitor: ConnectivityMonitor,
    broadcaster: StatusBroadcaster,
    identity_provider: StaticIdentityProvider,
) -> SyncEngine:
    return SyncEngine(store, gateway, monitor, broadcaster, identity_provider)  # type: ignore[arg-type]
