"""Tests for StatusBroadcaster fan-out."""

from __future__ import annotations

import logging

import pytest

from vault_sync.sync.broadcaster import StatusBroadcaster
from vault_sync.sync.protocol import StatusEvent


class TestSubscribe:
    def test_delivers_in_subscription_order(self) -> None:
        broadcaster = StatusBroadcaster()
        seen: list[str] = []
        broadcaster.subscribe(lambda e: seen.append("a"))
        broadcaster.subscribe(lambda e: seen.append("b"))

        broadcaster.publish(StatusEvent.online(True))

        assert seen == ["a", "b"]

    def test_unsubscribe_stops_delivery(self) -> None:
        broadcaster = StatusBroadcaster()
        seen: list[StatusEvent] = []
        unsubscribe = broadcaster.subscribe(seen.append)

        unsubscribe()
        broadcaster.publish(StatusEvent.online(True))

        assert seen == []
        assert broadcaster.subscriber_count == 0

    def test_unsubscribe_is_idempotent(self) -> None:
        broadcaster = StatusBroadcaster()
        unsubscribe = broadcaster.subscribe(lambda e: None)
        broadcaster.subscribe(lambda e: None)

        unsubscribe()
        unsubscribe()

        assert broadcaster.subscriber_count == 1

    def test_same_callback_twice_gets_two_subscriptions(self) -> None:
        broadcaster = StatusBroadcaster()
        seen: list[StatusEvent] = []
        first = broadcaster.subscribe(seen.append)
        broadcaster.subscribe(seen.append)

        first()
        broadcaster.publish(StatusEvent.progress(True))

        assert len(seen) == 1

    def test_clear(self) -> None:
        broadcaster = StatusBroadcaster()
        broadcaster.subscribe(lambda e: None)

        broadcaster.clear()

        assert broadcaster.subscriber_count == 0


class TestPublish:
    def test_failing_subscriber_does_not_block_others(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        broadcaster = StatusBroadcaster()
        seen: list[StatusEvent] = []

        def explode(event: StatusEvent) -> None:
            raise RuntimeError("ui gone")

        broadcaster.subscribe(explode)
        broadcaster.subscribe(seen.append)

        with caplog.at_level(logging.WARNING, logger="vault_sync.sync.broadcaster"):
            broadcaster.publish(StatusEvent.failed("x"))

        assert seen == [StatusEvent.failed("x")]
        assert "Status subscriber failed" in caplog.text

    def test_unsubscribe_during_delivery_uses_snapshot(self) -> None:
        broadcaster = StatusBroadcaster()
        seen: list[str] = []
        handles: dict[str, object] = {}

        def first(event: StatusEvent) -> None:
            seen.append("first")
            handles["second"]()  # type: ignore[operator]

        broadcaster.subscribe(first)
        handles["second"] = broadcaster.subscribe(lambda e: seen.append("second"))

        broadcaster.publish(StatusEvent.online(False))
        broadcaster.publish(StatusEvent.online(True))

        assert seen == ["first", "second", "first"]

    def test_subscribe_during_delivery_applies_next_time(self) -> None:
        broadcaster = StatusBroadcaster()
        seen: list[str] = []

        def adder(event: StatusEvent) -> None:
            seen.append("adder")
            broadcaster.subscribe(lambda e: seen.append("late"))

        broadcaster.subscribe(adder)
        broadcaster.publish(StatusEvent.online(True))

        assert seen == ["adder"]


class TestStatusEvent:
    def test_to_dict_drops_unset_fields(self) -> None:
        assert StatusEvent.online(True).to_dict() == {"is_online": True}
        assert StatusEvent.completed(3, 1).to_dict() == {
            "sync_completed": True,
            "synced_count": 3,
            "failed_count": 1,
        }
        assert StatusEvent.failed("boom").to_dict() == {"sync_failed": True, "error": "boom"}

    def test_false_values_are_kept(self) -> None:
        assert StatusEvent.progress(False).to_dict() == {"sync_in_progress": False}
