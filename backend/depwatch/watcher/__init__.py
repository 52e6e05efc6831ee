"""
depwatch Watcher Package.

Dependency-aware file watching and build triggering.
Requires Python 3.11+.
"""

from depwatch.watcher.events import Signal, Subscription
from depwatch.watcher.notifier import CHANGE, RENAME, Notifier, WatchdogNotifier
from depwatch.watcher.dependency_watcher import DependencyWatcher, WatcherState
from depwatch.watcher.build_watcher import BuildWatcher, build_watch

__all__ = [
    "Signal",
    "Subscription",
    "CHANGE",
    "RENAME",
    "Notifier",
    "WatchdogNotifier",
    "DependencyWatcher",
    "WatcherState",
    "BuildWatcher",
    "build_watch",
]
