"""
depwatch Build Watcher.

Runs a build engine whenever a file in the dependency tree of the entry
files changes.
Requires Python 3.11+.
"""

import asyncio
from collections.abc import Iterable
from pathlib import Path
from types import TracebackType

from depwatch.build.engine import BuildEngine, CommandBuildEngine
from depwatch.build.models import BuildOptions, BuildResult
from depwatch.errors import DepWatchError
from depwatch.scanner.scanner import DependencyScanner
from depwatch.utils.config import Settings, get_settings
from depwatch.utils.logger import LoggerMixin
from depwatch.utils.paths import normalize_path
from depwatch.watcher.dependency_watcher import DependencyWatcher, WatcherState
from depwatch.watcher.events import Signal, Subscription
from depwatch.watcher.notifier import Notifier, WatchdogNotifier


class BuildWatcher(LoggerMixin):
    """
    Builds on the first watch and on every change.

    Forwards the ``watch``, ``change`` and ``close`` events of the wrapped
    DependencyWatcher and adds a ``build`` event carrying each BuildResult.
    Builds are neither queued nor deduplicated: rapid changes start
    independent builds. With ``rescan`` enabled the dependency tree is
    scanned again after every emitted build.
    """

    def __init__(
        self,
        watcher: DependencyWatcher,
        engine: BuildEngine,
        *,
        build_options: BuildOptions | None = None,
        rescan: bool = False,
    ) -> None:
        """
        Initialize the build watcher.

        Args:
            watcher: Dependency watcher to drive
            engine: Build engine invoked on every trigger
            build_options: Passed unchanged to the engine
            rescan: Rescan the dependency tree after every build
        """
        self._watcher = watcher
        self._engine = engine
        self._build_options = build_options or BuildOptions()
        self._rescan_enabled = rescan

        self._closed = False
        self._initial_build: asyncio.Task[None] | None = None
        self._builds: set[asyncio.Task[None]] = set()

        self.on_watch: Signal[[list[Path]]] = Signal("watch")
        self.on_change: Signal[[str, Path]] = Signal("change")
        self.on_build: Signal[[BuildResult]] = Signal("build")
        self.on_close: Signal[[]] = Signal("close")

        self._subscriptions: list[Subscription] = [
            watcher.on_watch.connect(self._handle_watch),
            watcher.on_change.connect(self._handle_change),
            watcher.on_close.connect(self._handle_close),
        ]

    @property
    def state(self) -> WatcherState:
        return self._watcher.state

    @property
    def watcher(self) -> DependencyWatcher:
        return self._watcher

    @property
    def rescan_enabled(self) -> bool:
        return self._rescan_enabled

    @property
    def pending_builds(self) -> int:
        return len(self._builds)

    async def watch(self) -> list[Path] | None:
        """
        Start watching and run the first build.

        Returns once the first build has been emitted.
        """
        paths = await self._watcher.watch()
        initial = self._initial_build
        if initial is not None and not initial.done():
            await asyncio.shield(initial)
        return paths

    async def rescan(self) -> list[Path]:
        """Rescan the dependency tree of the wrapped watcher."""
        return await self._watcher.rescan()

    def close(self) -> None:
        """Stop watching; in-flight builds finish but are no longer emitted."""
        if self._closed:
            return
        self._closed = True
        self._builds.clear()
        self._watcher.close()
        self._teardown()

    async def aclose(self) -> None:
        """Like close(), but stops an owned notifier off the event loop thread."""
        if self._closed:
            return
        self._closed = True
        self._builds.clear()
        await self._watcher.aclose()
        self._teardown()

    async def wait_for_builds(self) -> None:
        """Wait until every in-flight build has completed."""
        while self._builds:
            await asyncio.gather(*list(self._builds), return_exceptions=True)

    async def __aenter__(self) -> "BuildWatcher":
        await self.watch()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def _handle_watch(self, paths: list[Path]) -> None:
        self.on_watch.emit(paths)
        if self._initial_build is None:
            self._initial_build = self._schedule_build("watch")

    def _handle_change(self, kind: str, path: Path) -> None:
        self.on_change.emit(kind, path)
        self._schedule_build("change")

    def _handle_close(self) -> None:
        self._closed = True
        self._builds.clear()
        self.on_close.emit()
        self._teardown()

    def _teardown(self) -> None:
        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions = []
        for signal in (self.on_watch, self.on_change, self.on_build, self.on_close):
            signal.clear()

    def _schedule_build(self, trigger: str) -> asyncio.Task[None] | None:
        if self._closed:
            return None
        task = asyncio.get_running_loop().create_task(self._build_and_emit(trigger))
        self._builds.add(task)
        task.add_done_callback(self._builds.discard)
        return task

    async def _build_and_emit(self, trigger: str) -> None:
        entries = self._watcher.entry_paths
        self.log.debug("build_started", trigger=trigger, entries=len(entries))
        try:
            result = await self._engine.build(entries, self._build_options)
        except Exception as e:
            self.log.exception("build_failed", trigger=trigger)
            result = BuildResult.failure(str(e))

        if self._closed:
            self.log.debug("build_result_dropped", trigger=trigger)
            return

        self.log.info(
            "build_completed",
            trigger=trigger,
            success=result.success,
            artifacts=len(result.artifacts),
        )
        self.on_build.emit(result)

        if self._rescan_enabled:
            try:
                await self._watcher.rescan()
            except (DepWatchError, OSError) as e:
                # the previous watch set stays installed
                self.log.error("rescan_failed", error=str(e))


def build_watch(
    entry_paths: Iterable[str | Path],
    engine: BuildEngine | None = None,
    *,
    settings: Settings | None = None,
    notifier: Notifier | None = None,
    exclude: Iterable[str] | None = None,
    rescan: bool | None = None,
) -> BuildWatcher:
    """
    Wire a BuildWatcher from settings.

    Args:
        entry_paths: Entry files, relative to the configured root directory
        engine: Build engine; defaults to the configured build command
        settings: Settings to use (defaults to the environment)
        notifier: File notifier; defaults to a watchdog notifier owned by the watcher
        exclude: Exclusion globs overriding the configured ones
        rescan: Rescan after every build, overriding the configured flag

    Returns:
        A BuildWatcher in the READY state; call ``watch()`` to start
    """
    settings = settings or get_settings()
    if exclude is not None:
        settings = settings.model_copy(
            update={"scanner": settings.scanner.model_copy(update={"exclude": list(exclude)})}
        )

    outdir = normalize_path(settings.build.outdir, settings.root_dir)
    if engine is None:
        if not settings.build.command:
            raise ValueError("no build engine given and no build command configured")
        engine = CommandBuildEngine(settings.build.command, settings.root_dir)

    watcher = DependencyWatcher(
        entry_paths,
        scanner=DependencyScanner.from_settings(settings),
        notifier=notifier or WatchdogNotifier.from_settings(settings.watcher),
        root_dir=settings.root_dir,
        own_notifier=notifier is None,
    )
    return BuildWatcher(
        watcher,
        engine,
        build_options=BuildOptions(outdir=outdir, command=settings.build.command),
        rescan=settings.watcher.rescan if rescan is None else rescan,
    )
