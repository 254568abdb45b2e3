"""Reconciliation engine draining the local mutation queue to the remote API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from vault_sync.core.identity import IdentityProvider, resolve_identity
from vault_sync.sync.errors import ITEM_FAILURES, UnknownEntityType
from vault_sync.sync.protocol import StatusEvent, SyncResult, SyncState, SyncStatus

if TYPE_CHECKING:
    from vault_sync.storage.base import LocalStore
    from vault_sync.sync.broadcaster import StatusBroadcaster
    from vault_sync.sync.connectivity import ConnectivityMonitor
    from vault_sync.sync.gateway import RemoteGateway

logger = logging.getLogger(__name__)


@dataclass
class _CycleCounts:
    synced: int = 0
    failed: int = 0
    skipped: int = 0
    parked: int = 0


class SyncEngine:
    """Top-level orchestrator for draining queued mutations.

    Manages the cycle lifecycle:
    1. Refuse when a cycle is running (unless forced) or the device is offline
    2. Claim the session and check for a signed-in identity
    3. Snapshot the queue and dispatch each entry in FIFO order
    4. Acknowledge successful entries (removal and synced flag in one step)
    5. Record failures on the entry and keep going
    6. Release the session and report counts
    """

    def __init__(
        self,
        store: LocalStore,
        gateway: RemoteGateway,
        monitor: ConnectivityMonitor,
        broadcaster: StatusBroadcaster,
        identity_provider: IdentityProvider,
        *,
        max_attempts: int | None = None,
        purge_deleted: bool = False,
    ) -> None:
        """
        Initialize the engine.

        Args:
            store: Local store holding records and the mutation queue
            gateway: Remote API adapter
            monitor: Connectivity source for the offline guard
            broadcaster: Receives progress and outcome events
            identity_provider: Source of the signed-in identity
            max_attempts: Entries at or above this many failed attempts are
                left queued without a call (None retries forever)
            purge_deleted: Remove soft-deleted records once their DELETE syncs
        """
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._store = store
        self._gateway = gateway
        self._monitor = monitor
        self._broadcaster = broadcaster
        self._identity_provider = identity_provider
        self._max_attempts = max_attempts
        self._purge_deleted = purge_deleted
        self._active_cycles = 0
        self._last_outcome: SyncState | None = None
        self._last_result: SyncResult | None = None

    @property
    def state(self) -> SyncState:
        return SyncState.RUNNING if self._active_cycles else SyncState.IDLE

    @property
    def in_progress(self) -> bool:
        return self._active_cycles > 0

    @property
    def last_outcome(self) -> SyncState | None:
        """COMPLETED or FAILED for the most recent drained cycle."""
        return self._last_outcome

    @property
    def last_result(self) -> SyncResult | None:
        return self._last_result

    async def perform_sync(self, force: bool = False) -> SyncResult:
        """
        Run one drain cycle.

        Args:
            force: Start even if another cycle is running

        Returns:
            SyncResult describing the outcome; preconditions are never raised
        """
        if self._active_cycles and not force:
            logger.info("Sync already in progress")
            return SyncResult.busy()

        if not self._monitor.is_online:
            logger.info("Cannot sync, device is offline")
            return SyncResult.offline()

        # Claimed before the first await so a concurrent trigger sees RUNNING.
        self._active_cycles += 1
        announced = False
        try:
            if await resolve_identity(self._identity_provider) is None:
                logger.info("Skipping sync, no authenticated user")
                return SyncResult.unauthenticated()

            announced = True
            self._broadcaster.publish(StatusEvent.progress(True))
            result = await self._run_cycle()
            self._last_result = result
            return result
        finally:
            self._active_cycles -= 1
            if announced:
                self._broadcaster.publish(StatusEvent.progress(False))

    async def status(self) -> dict[str, Any]:
        """Snapshot of connectivity, engine state and queue health."""
        return {
            "is_online": self._monitor.is_online,
            "sync_in_progress": self.in_progress,
            "state": self.state.value,
            "last_outcome": self._last_outcome.value if self._last_outcome else None,
            "last_result": self._last_result.to_dict() if self._last_result else None,
            "queue": await self._store.get_queue_stats(),
        }

    # ========== Cycle ==========

    async def _run_cycle(self) -> SyncResult:
        logger.info("Starting sync")
        try:
            counts = await self._drain()
        except Exception as e:
            logger.error("Sync failed: %s", e, exc_info=True)
            self._last_outcome = SyncState.FAILED
            self._broadcaster.publish(StatusEvent.failed(str(e)))
            return SyncResult(status=SyncStatus.FAILED, message=str(e) or type(e).__name__)

        logger.info(
            "Sync completed: %d synced, %d failed, %d skipped, %d parked",
            counts.synced,
            counts.failed,
            counts.skipped,
            counts.parked,
        )
        self._last_outcome = SyncState.COMPLETED
        self._broadcaster.publish(StatusEvent.completed(counts.synced, counts.failed))
        return SyncResult(
            status=SyncStatus.COMPLETED,
            message=f"Synced {counts.synced} items",
            synced_count=counts.synced,
            failed_count=counts.failed,
            skipped_count=counts.skipped,
            parked_count=counts.parked,
        )

    async def _drain(self) -> _CycleCounts:
        counts = _CycleCounts()
        entries = await self._store.drain_queue_snapshot()
        logger.info("Found %d items to sync", len(entries))

        for entry in entries:
            if not self._gateway.supports(entry.entity_type):
                logger.warning("Unknown entity type for sync: %s", entry.entity_type)
                counts.skipped += 1
                continue

            if self._max_attempts is not None and entry.attempts >= self._max_attempts:
                logger.debug("Entry %d parked after %d attempts", entry.id, entry.attempts)
                counts.parked += 1
                continue

            try:
                await self._gateway.dispatch(entry)
            except UnknownEntityType as e:
                logger.warning("%s", e)
                counts.skipped += 1
                continue
            except ITEM_FAILURES as e:
                error = f"{entry.entity_type} sync failed: {e}"
                attempts = await self._store.increment_attempts(entry.id, error)
                logger.warning(
                    "Failed to sync item %d (%s %s #%d, attempt %d): %s",
                    entry.id,
                    entry.operation.value,
                    entry.entity_type,
                    entry.record_id,
                    attempts,
                    e,
                )
                counts.failed += 1
                continue

            await self._store.acknowledge(entry, purge_deleted=self._purge_deleted)
            counts.synced += 1

        return counts

