"""Fan-out of connectivity and sync-progress events to subscribers."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable

from vault_sync.sync.protocol import StatusEvent

logger = logging.getLogger(__name__)

StatusHandler = Callable[[StatusEvent], None]


class StatusBroadcaster:
    """
    Observer registry for the presentation layer.

    Delivery is synchronous and in subscription order. Each ``publish`` works
    on a snapshot of the subscriber list, so subscribing or unsubscribing from
    inside a handler only affects later deliveries. A handler that raises is
    logged and skipped; the remaining handlers still receive the event.

    Usage:
        broadcaster = StatusBroadcaster()
        unsubscribe = broadcaster.subscribe(lambda event: print(event.to_dict()))
        broadcaster.publish(StatusEvent.online(True))
        unsubscribe()
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[int, StatusHandler]] = []
        self._tokens = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: StatusHandler) -> Callable[[], None]:
        """
        Register a handler.

        Args:
            callback: Called with every published StatusEvent

        Returns:
            A function that removes this subscription; safe to call twice
        """
        token = next(self._tokens)
        self._subscribers = [*self._subscribers, (token, callback)]

        def unsubscribe() -> None:
            self._subscribers = [s for s in self._subscribers if s[0] != token]

        return unsubscribe

    def publish(self, event: StatusEvent) -> None:
        """Deliver an event to every current subscriber."""
        for _, callback in tuple(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.warning("Status subscriber failed for %s", event.to_dict(), exc_info=True)

    def clear(self) -> None:
        """Drop all subscribers."""
        self._subscribers = []
