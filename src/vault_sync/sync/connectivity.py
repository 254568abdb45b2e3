"""Network reachability monitor with edge-triggered reconnect handling."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import aiohttp

from vault_sync.sync.broadcaster import StatusBroadcaster
from vault_sync.sync.protocol import StatusEvent

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[bool]]
ReconnectHandler = Callable[[], Awaitable[Any]]
Sleep = Callable[[float], Awaitable[None]]

DEFAULT_RECONNECT_DELAY = 1.0


class HttpHealthProbe:
    """Reachability probe that GETs the remote health endpoint."""

    def __init__(self, url: str, *, timeout: float = 5.0) -> None:
        self._url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def url(self) -> str:
        return self._url

    async def __call__(self) -> bool:
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            async with session.get(self._url) as response:
                return response.status < 400


class ConnectivityMonitor:
    """
    Tracks whether the remote service is reachable.

    State changes arrive either from an external network-state source via
    ``set_online()`` or from an active probe via ``check_now()``. Only real
    transitions are published. A false→true transition schedules the
    reconnect handler after ``reconnect_delay`` seconds; a true→false
    transition cancels it if it has not run yet.

    Usage:
        monitor = ConnectivityMonitor(broadcaster, HttpHealthProbe(url))
        monitor.on_reconnect(engine.perform_sync)
        await monitor.check_now()
    """

    def __init__(
        self,
        broadcaster: StatusBroadcaster,
        probe: Probe | None = None,
        *,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """
        Initialize the monitor.

        Args:
            broadcaster: Receives one StatusEvent per transition
            probe: Async callable returning reachability; errors count as offline
            reconnect_delay: Seconds to wait after reconnecting before syncing
            sleep: Sleep function, injectable for deterministic tests
        """
        self._broadcaster = broadcaster
        self._probe = probe
        self._reconnect_delay = reconnect_delay
        self._sleep = sleep
        self._online = False
        self._on_reconnect: ReconnectHandler | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._poll_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None

    @property
    def is_online(self) -> bool:
        """Last known connectivity state (no network access)."""
        return self._online

    @property
    def reconnect_delay(self) -> float:
        return self._reconnect_delay

    @property
    def pending_tasks(self) -> frozenset[asyncio.Task[Any]]:
        """Scheduled reconnect and polling tasks that have not finished."""
        return frozenset(self._tasks)

    def on_reconnect(self, handler: ReconnectHandler | None) -> None:
        """Set the coroutine function run after connectivity is restored."""
        self._on_reconnect = handler

    async def check_now(self) -> bool:
        """Probe reachability now and apply the result.

        Returns:
            The probed state; False if the probe raised
        """
        if self._probe is None:
            return self._online

        try:
            state = bool(await self._probe())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("Connectivity probe failed, treating as offline: %s", e)
            state = False

        self.set_online(state)
        return state

    def set_online(self, state: bool) -> bool:
        """
        Apply an observed connectivity state.

        Args:
            state: True if the network is reachable

        Returns:
            True if this was a transition, False for a repeated state
        """
        if state == self._online:
            return False

        was_offline = not self._online
        self._online = state
        logger.info("Network status: %s", "online" if state else "offline")

        if was_offline and state:
            self._schedule_reconnect()
        elif self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()

        self._broadcaster.publish(StatusEvent.online(state))
        return True

    def start_polling(self, interval: float) -> asyncio.Task[None]:
        """Run ``check_now`` every ``interval`` seconds in a background task."""
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = self._spawn(self.run_forever(interval))
        return self._poll_task

    async def run_forever(self, interval: float) -> None:
        """Probe connectivity in a loop until cancelled."""
        while True:
            await self.check_now()
            await self._sleep(interval)

    async def wait_pending(self) -> None:
        """Wait until scheduled reconnect handlers have finished."""
        while pending := [t for t in self._tasks if t is not self._poll_task]:
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        """Cancel polling and reconnects still in their delay.

        A reconnect handler that has already started is awaited, so the
        sync it runs finishes before the store and gateway are closed.
        """
        for task in (self._poll_task, self._reconnect_task):
            if task is not None:
                task.cancel()
        for task in list(self._tasks):
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()
        self._poll_task = None
        self._reconnect_task = None

    def _schedule_reconnect(self) -> None:
        try:
            self._reconnect_task = self._spawn(self._run_reconnect())
        except RuntimeError:
            logger.warning("No running event loop; reconnect sync not scheduled")

    def _spawn(self, coro: Any) -> asyncio.Task[Any]:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            raise
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_reconnect(self) -> None:
        await self._sleep(self._reconnect_delay)
        # Past the delay, going offline no longer cancels the handler.
        if self._reconnect_task is asyncio.current_task():
            self._reconnect_task = None

        if not self._online:
            logger.debug("Connection dropped again before reconnect sync")
            return
        if self._on_reconnect is None:
            return

        logger.info("Connection restored, starting auto-sync")
        try:
            await self._on_reconnect()
        except Exception:
            logger.warning("Reconnect handler failed", exc_info=True)
