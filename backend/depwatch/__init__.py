"""
depwatch: rebuild an artifact whenever any file in its import tree changes.

Requires Python 3.11+.
"""

from depwatch.build import BuildArtifact, BuildEngine, BuildOptions, BuildResult
from depwatch.errors import (
    ClosedWatcherError,
    CyclicDependencyError,
    DepWatchError,
    EntryNotFoundError,
    ParseSkipError,
    ResolveSkipError,
)
from depwatch.scanner import DependencyScanner
from depwatch.watcher import BuildWatcher, DependencyWatcher, WatcherState, build_watch

__version__ = "0.1.0"

__all__ = [
    "BuildArtifact",
    "BuildEngine",
    "BuildOptions",
    "BuildResult",
    "ClosedWatcherError",
    "CyclicDependencyError",
    "DepWatchError",
    "EntryNotFoundError",
    "ParseSkipError",
    "ResolveSkipError",
    "DependencyScanner",
    "BuildWatcher",
    "DependencyWatcher",
    "WatcherState",
    "build_watch",
]
