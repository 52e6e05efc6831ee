"""
depwatch Dependency Watcher.

Watches every file in the import closure of a set of entry files.
Requires Python 3.11+.
"""

import asyncio
from collections.abc import Iterable
from enum import Enum
from functools import partial
from pathlib import Path
from types import TracebackType

from depwatch.errors import ClosedWatcherError, EntryNotFoundError, IllegalTransitionError
from depwatch.scanner.scanner import DependencyScanner
from depwatch.utils.config import Settings, get_settings
from depwatch.utils.logger import LoggerMixin
from depwatch.utils.paths import normalize_path
from depwatch.watcher.events import Signal, Subscription
from depwatch.watcher.notifier import Notifier, WatchdogNotifier


class WatcherState(str, Enum):
    """Lifecycle states of a watcher."""

    READY = "ready"
    WATCHING = "watching"
    CLOSED = "closed"


# CLOSED is terminal
_TRANSITIONS: dict[WatcherState, frozenset[WatcherState]] = {
    WatcherState.READY: frozenset({WatcherState.WATCHING, WatcherState.CLOSED}),
    WatcherState.WATCHING: frozenset({WatcherState.WATCHING, WatcherState.CLOSED}),
    WatcherState.CLOSED: frozenset(),
}


class DependencyWatcher(LoggerMixin):
    """
    Owns the watch set of an entry-file dependency tree.

    Lifecycle: READY -> WATCHING -> CLOSED. ``watch()`` scans and subscribes
    once, ``rescan()`` replaces the watch set wholesale, ``close()`` tears
    everything down. Events are delivered through the ``on_watch``,
    ``on_change`` and ``on_close`` signals on the event loop that ran the
    last successful scan.

    Lifecycle operations must not run concurrently on one instance.
    """

    def __init__(
        self,
        entry_paths: Iterable[str | Path],
        *,
        scanner: DependencyScanner,
        notifier: Notifier,
        root_dir: Path | None = None,
        own_notifier: bool = False,
    ) -> None:
        """
        Initialize the watcher.

        Args:
            entry_paths: Files whose dependency tree is watched
            scanner: Discovers the dependency tree
            notifier: Delivers per-file change notifications
            root_dir: Anchor for relative entry paths (defaults to the scanner's)
            own_notifier: Close the notifier when the watcher closes
        """
        self._root_dir = root_dir or scanner.root_dir
        self._entry_paths = list(dict.fromkeys(normalize_path(p, self._root_dir) for p in entry_paths))
        self._scanner = scanner
        self._notifier = notifier
        self._own_notifier = own_notifier

        self._state = WatcherState.READY
        self._watch_set: frozenset[Path] = frozenset()
        self._handles: list[Subscription] = []
        self._generation = 0
        self._loop: asyncio.AbstractEventLoop | None = None

        self.on_watch: Signal[[list[Path]]] = Signal("watch")
        self.on_change: Signal[[str, Path]] = Signal("change")
        self.on_close: Signal[[]] = Signal("close")

    @classmethod
    def from_settings(
        cls,
        entry_paths: Iterable[str | Path],
        settings: Settings | None = None,
        notifier: Notifier | None = None,
    ) -> "DependencyWatcher":
        """Create a watcher with the default scanner and watchdog notifier."""
        settings = settings or get_settings()
        return cls(
            entry_paths,
            scanner=DependencyScanner.from_settings(settings),
            notifier=notifier or WatchdogNotifier.from_settings(settings.watcher),
            root_dir=settings.root_dir,
            own_notifier=notifier is None,
        )

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def watch_set(self) -> frozenset[Path]:
        return self._watch_set

    @property
    def entry_paths(self) -> list[Path]:
        return list(self._entry_paths)

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    @property
    def handle_count(self) -> int:
        return len(self._handles)

    async def watch(self) -> list[Path] | None:
        """
        Start watching, doing nothing if already watching.

        Returns:
            The watched paths, or None if the watcher was already watching

        Raises:
            ClosedWatcherError: If the watcher was closed
            EntryNotFoundError: If an entry path does not exist
            CyclicDependencyError: If the dependency tree has a cycle
        """
        if self._state is WatcherState.CLOSED:
            raise ClosedWatcherError(type(self).__name__)
        if self._state is WatcherState.WATCHING:
            return None
        return await self.rescan()

    async def rescan(self) -> list[Path]:
        """
        Scan the dependency tree again and replace the watch set.

        A failed scan leaves the previous watch set and state in place.
        Every successful call emits a ``watch`` event.

        Returns:
            The watched paths, sorted
        """
        self._ensure_open()
        self._check_entries()

        files = await self._scanner.scan(self._entry_paths)
        paths = sorted(files)

        if self._state is WatcherState.CLOSED:
            # close() ran while the scan was in flight
            self.log.debug("scan_discarded", files=len(paths))
            return paths

        self._loop = asyncio.get_running_loop()
        self._install(files)
        self._transition(WatcherState.WATCHING)

        self.log.info("watch_set_installed", files=len(paths), generation=self._generation)
        self.on_watch.emit(paths)
        return paths

    def close(self) -> None:
        """Stop watching. Calling it again does nothing."""
        if self._shutdown() and self._own_notifier:
            self._notifier.close()

    async def aclose(self) -> None:
        """Like close(), but stops an owned notifier off the event loop thread."""
        if self._shutdown() and self._own_notifier:
            await asyncio.to_thread(self._notifier.close)

    async def __aenter__(self) -> "DependencyWatcher":
        await self.watch()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def _shutdown(self) -> bool:
        """Release the handles and emit ``close``; False if already closed."""
        if self._state is WatcherState.CLOSED:
            return False

        self._dispose_handles()
        self._watch_set = frozenset()
        self._transition(WatcherState.CLOSED)

        self.log.info("watcher_closed")
        self.on_close.emit()
        for signal in (self.on_watch, self.on_change, self.on_close):
            signal.clear()
        return True

    def _ensure_open(self) -> None:
        if self._state is WatcherState.CLOSED:
            raise ClosedWatcherError(type(self).__name__)

    def _check_entries(self) -> None:
        missing = [path for path in self._entry_paths if not path.is_file()]
        if missing:
            raise EntryNotFoundError(missing)

    def _transition(self, target: WatcherState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise IllegalTransitionError(self._state.value, target.value)
        self._state = target

    def _install(self, files: frozenset[Path]) -> None:
        """
        Swap in a new watch set; notifications of older sets are ignored.

        The old handles are released before the new ones are taken, so a
        file never holds two handles. If subscribing fails the previous
        watch set is subscribed again.
        """
        previous = self._watch_set if self._handles else frozenset()
        self._dispose_handles()

        try:
            self._handles = self._subscribe_all(files, self._generation + 1)
        except Exception:
            self.log.warning("watch_set_restored", files=len(previous))
            self._handles = self._subscribe_all(previous, self._generation)
            raise

        self._generation += 1
        self._watch_set = files

    def _subscribe_all(self, files: frozenset[Path], generation: int) -> list[Subscription]:
        callback = partial(self._on_notify, generation)
        handles: list[Subscription] = []
        try:
            for path in sorted(files):
                handles.append(self._notifier.subscribe(path, callback))
        except Exception:
            for handle in handles:
                handle.dispose()
            raise
        return handles

    def _dispose_handles(self) -> None:
        handles, self._handles = self._handles, []
        for handle in handles:
            handle.dispose()

    def _on_notify(self, generation: int, kind: str, path: Path) -> None:
        # May run on the notifier thread
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._emit_change, generation, kind, path)

    def _emit_change(self, generation: int, kind: str, path: Path) -> None:
        if self._state is not WatcherState.WATCHING or generation != self._generation:
            return
        self.log.debug("file_changed", kind=kind, path=str(path))
        self.on_change.emit(kind, path)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} state={self._state.value} files={len(self._watch_set)}>"
