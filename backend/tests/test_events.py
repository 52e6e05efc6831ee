"""
Tests for Event Signals.

Requires Python 3.11+.
"""

import asyncio

import pytest

from depwatch.watcher.events import Signal, Subscription


class TestSubscription:
    """Test cases for Subscription."""

    def test_dispose_is_idempotent(self):
        """Test that the dispose callback runs once."""
        calls = []
        subscription = Subscription(lambda: calls.append(1))

        subscription.dispose()
        subscription.dispose()

        assert calls == [1]
        assert subscription.disposed


class TestSignal:
    """Test cases for Signal."""

    def test_emit_in_registration_order(self):
        """Test that listeners run in the order they connected."""
        signal: Signal[[int]] = Signal("test")
        received = []
        signal.connect(lambda v: received.append(("first", v)))
        signal.connect(lambda v: received.append(("second", v)))

        assert signal.emit(7) == 2
        assert received == [("first", 7), ("second", 7)]

    def test_disposed_listener_not_called(self):
        """Test that disposing a subscription disconnects the listener."""
        signal: Signal[[int]] = Signal("test")
        received = []
        subscription = signal.connect(received.append)

        subscription.dispose()
        signal.emit(1)

        assert received == []
        assert signal.listener_count == 0

    def test_once(self):
        """Test that once listeners fire a single time."""
        signal: Signal[[str]] = Signal("test")
        received = []
        signal.connect(received.append, once=True)

        signal.emit("a")
        signal.emit("b")

        assert received == ["a"]

    def test_failing_listener_isolated(self):
        """Test that one failing listener does not stop the others."""
        signal: Signal[[]] = Signal("test")
        received = []

        def boom() -> None:
            raise RuntimeError("boom")

        signal.connect(boom)
        signal.connect(lambda: received.append("ok"))

        signal.emit()

        assert received == ["ok"]

    def test_clear(self):
        """Test removing every listener."""
        signal: Signal[[]] = Signal("test")
        signal.connect(lambda: None)
        signal.connect(lambda: None)

        signal.clear()

        assert signal.listener_count == 0
        assert signal.emit() == 0

    @pytest.mark.asyncio
    async def test_async_listener_scheduled(self):
        """Test that coroutine listeners run on the event loop."""
        signal: Signal[[int]] = Signal("test")
        done = asyncio.Event()
        received = []

        async def listener(value: int) -> None:
            received.append(value)
            done.set()

        signal.connect(listener)
        signal.emit(3)

        await asyncio.wait_for(done.wait(), timeout=1.0)
        assert received == [3]
