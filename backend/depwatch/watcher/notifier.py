"""
depwatch File Notifier.

Per-file change subscriptions on top of watchdog. Watchdog watches
directories, so one observed watch is kept per parent directory and shared
by every subscribed file inside it; events are dispatched by exact path.
Requires Python 3.11+.
"""

import os
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch
from watchdog.observers.polling import PollingObserver

from depwatch.utils.config import WatcherSettings
from depwatch.utils.logger import LoggerMixin
from depwatch.watcher.events import Subscription

# Event kinds a per-file notifier reports
CHANGE = "change"
RENAME = "rename"

ChangeCallback = Callable[[str, Path], None]


class Notifier(Protocol):
    """Subscribes callbacks to changes of single files."""

    def subscribe(self, path: Path, callback: ChangeCallback) -> Subscription:
        ...

    def close(self) -> None:
        ...


class _DispatchHandler(FileSystemEventHandler):
    """Forwards file events of watched directories to the notifier."""

    def __init__(self, dispatch: Callable[[str, str | bytes], None]) -> None:
        super().__init__()
        self._dispatch = dispatch

    def on_created(self, event: FileCreatedEvent | DirCreatedEvent) -> None:
        if not event.is_directory:
            self._dispatch(RENAME, event.src_path)

    def on_modified(self, event: FileModifiedEvent | DirModifiedEvent) -> None:
        if not event.is_directory:
            self._dispatch(CHANGE, event.src_path)

    def on_deleted(self, event: FileDeletedEvent | DirDeletedEvent) -> None:
        if not event.is_directory:
            self._dispatch(RENAME, event.src_path)

    def on_moved(self, event: FileMovedEvent | DirMovedEvent) -> None:
        if event.is_directory:
            return
        # Both ends of a move are reported, as a native watcher would
        self._dispatch(RENAME, event.src_path)
        self._dispatch(RENAME, event.dest_path)


class WatchdogNotifier(LoggerMixin):
    """
    File notifier backed by a single watchdog observer.

    Callbacks run on the observer thread.
    """

    def __init__(self, use_polling: bool = False, poll_interval_s: float = 1.0) -> None:
        """
        Initialize the notifier.

        Args:
            use_polling: Use the stat-polling observer instead of native events
            poll_interval_s: Polling interval when polling
        """
        self._use_polling = use_polling
        self._poll_interval = poll_interval_s
        self._handler = _DispatchHandler(self._dispatch)
        self._observer: BaseObserver | None = None
        self._lock = threading.Lock()
        self._schedule_lock = threading.Lock()
        # path -> registered callbacks (one entry per subscription)
        self._callbacks: dict[Path, list[list[ChangeCallback]]] = {}
        # directory -> (watch, number of subscribed files)
        self._watches: dict[Path, tuple[ObservedWatch, int]] = {}

    @classmethod
    def from_settings(cls, settings: WatcherSettings) -> "WatchdogNotifier":
        return cls(use_polling=settings.use_polling, poll_interval_s=settings.poll_interval_s)

    def subscribe(self, path: Path, callback: ChangeCallback) -> Subscription:
        """
        Call ``callback(kind, path)`` on every change of ``path``.

        Returns:
            Subscription whose dispose() stops the notifications
        """
        path = Path(os.path.abspath(path))
        directory = path.parent
        entry = [callback]

        with self._schedule_lock:
            observer = self._ensure_observer()
            watch, count = self._watches.get(directory, (None, 0))
            if watch is None:
                watch = observer.schedule(self._handler, str(directory), recursive=False)
            self._watches[directory] = (watch, count + 1)
            with self._lock:
                self._callbacks.setdefault(path, []).append(entry)

        self.log.debug("file_subscribed", path=str(path))
        return Subscription(lambda: self._unsubscribe(path, entry))

    def close(self) -> None:
        """Stop the observer thread and drop every subscription."""
        with self._schedule_lock:
            observer, self._observer = self._observer, None
            self._watches.clear()
            with self._lock:
                self._callbacks.clear()

        if observer is not None:
            observer.stop()
            observer.join(timeout=5.0)
            self.log.debug("notifier_stopped")

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return sum(len(entries) for entries in self._callbacks.values())

    def _ensure_observer(self) -> BaseObserver:
        if self._observer is None:
            if self._use_polling:
                self._observer = PollingObserver(timeout=self._poll_interval)
            else:
                self._observer = Observer()
            self._observer.start()
            self.log.debug("notifier_started", polling=self._use_polling)
        return self._observer

    def _unsubscribe(self, path: Path, entry: list[ChangeCallback]) -> None:
        directory = path.parent
        with self._schedule_lock:
            with self._lock:
                entries = self._callbacks.get(path)
                if entries is None or not any(e is entry for e in entries):
                    return
                entries[:] = [e for e in entries if e is not entry]
                if not entries:
                    del self._callbacks[path]

            watch, count = self._watches[directory]
            if count > 1:
                self._watches[directory] = (watch, count - 1)
            else:
                del self._watches[directory]
                if self._observer is not None:
                    try:
                        self._observer.unschedule(watch)
                    except KeyError:
                        # the directory watch already went away with the directory
                        pass
        self.log.debug("file_unsubscribed", path=str(path))

    def _dispatch(self, kind: str, raw_path: str | bytes) -> None:
        # Runs on the observer thread under watchdog's lock: never take the
        # schedule lock here.
        path = Path(os.fsdecode(raw_path))
        with self._lock:
            callbacks = [e[0] for e in self._callbacks.get(path, ())]
        for callback in callbacks:
            try:
                callback(kind, path)
            except Exception as e:
                self.log.error("change_callback_failed", path=str(path), error=str(e))
