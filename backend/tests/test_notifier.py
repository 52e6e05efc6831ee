"""
Tests for the watchdog File Notifier.

Uses the polling observer so the tests behave the same on every platform.
Requires Python 3.11+.
"""

import threading
from collections.abc import Iterator
from pathlib import Path

import pytest

from depwatch.watcher.notifier import CHANGE, RENAME, WatchdogNotifier

TIMEOUT = 5.0


@pytest.fixture
def notifier() -> Iterator[WatchdogNotifier]:
    """Polling notifier, closed after the test."""
    notifier = WatchdogNotifier(use_polling=True, poll_interval_s=0.1)
    yield notifier
    notifier.close()


class Recorder:
    """Thread-safe callback recording (kind, path) pairs."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Path]] = []
        self.received = threading.Event()

    def __call__(self, kind: str, path: Path) -> None:
        self.events.append((kind, path))
        self.received.set()


class TestWatchdogNotifier:
    """Test cases for WatchdogNotifier."""

    def test_modification_reported(self, notifier: WatchdogNotifier, root: Path):
        """Test that writing a subscribed file reports a change."""
        target = root / "a.ts"
        target.write_text("a")
        recorder = Recorder()
        notifier.subscribe(target, recorder)

        target.write_text("a longer body")

        assert recorder.received.wait(TIMEOUT)
        assert (CHANGE, target) in recorder.events

    def test_deletion_reported_as_rename(self, notifier: WatchdogNotifier, root: Path):
        """Test that removing a subscribed file reports a rename."""
        target = root / "a.ts"
        target.write_text("a")
        recorder = Recorder()
        notifier.subscribe(target, recorder)

        target.unlink()

        assert recorder.received.wait(TIMEOUT)
        assert recorder.events[-1] == (RENAME, target)

    def test_sibling_changes_not_reported(self, notifier: WatchdogNotifier, root: Path):
        """Test that events are dispatched by exact path."""
        watched, sibling = root / "a.ts", root / "b.ts"
        watched.write_text("a")
        sibling.write_text("b")
        watched_recorder, sibling_recorder = Recorder(), Recorder()
        notifier.subscribe(watched, watched_recorder)
        notifier.subscribe(sibling, sibling_recorder)

        sibling.write_text("b changed")

        assert sibling_recorder.received.wait(TIMEOUT)
        assert watched_recorder.events == []

    def test_dispose_stops_notifications(self, notifier: WatchdogNotifier, root: Path):
        """Test that a disposed subscription receives nothing."""
        target, other = root / "a.ts", root / "b.ts"
        target.write_text("a")
        other.write_text("b")
        recorder, other_recorder = Recorder(), Recorder()
        subscription = notifier.subscribe(target, recorder)
        notifier.subscribe(other, other_recorder)

        subscription.dispose()
        subscription.dispose()
        target.write_text("a changed")
        other.write_text("b changed")

        # the other file shares the directory watch, so its event proves a poll ran
        assert other_recorder.received.wait(TIMEOUT)
        assert recorder.events == []
        assert notifier.subscription_count == 1

    def test_subscription_count(self, notifier: WatchdogNotifier, root: Path):
        """Test counting subscriptions across files."""
        (root / "a.ts").write_text("a")
        first = notifier.subscribe(root / "a.ts", Recorder())
        notifier.subscribe(root / "a.ts", Recorder())

        assert notifier.subscription_count == 2
        first.dispose()
        assert notifier.subscription_count == 1

    def test_close_drops_subscriptions(self, root: Path):
        """Test that close() releases everything and is repeatable."""
        notifier = WatchdogNotifier(use_polling=True, poll_interval_s=0.1)
        (root / "a.ts").write_text("a")
        subscription = notifier.subscribe(root / "a.ts", Recorder())

        notifier.close()
        notifier.close()
        subscription.dispose()

        assert notifier.subscription_count == 0
