"""
Tests for Build Watcher.

Requires Python 3.11+.
"""

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from conftest import FakeBuildEngine, FakeNotifier, settle
from depwatch.build.models import BuildOptions, BuildResult
from depwatch.utils.config import Settings
from depwatch.watcher.build_watcher import BuildWatcher, build_watch
from depwatch.watcher.dependency_watcher import DependencyWatcher, WatcherState


@pytest.fixture
def engine() -> FakeBuildEngine:
    """Build engine that succeeds immediately."""
    return FakeBuildEngine()


@pytest.fixture
def make_build_watcher(
    make_watcher: Callable[..., DependencyWatcher], engine: FakeBuildEngine
) -> Callable[..., BuildWatcher]:
    """Build watchers over the fake notifier and engine."""

    def _make(*entries: str, rescan: bool = False) -> BuildWatcher:
        return BuildWatcher(
            make_watcher(*entries),
            engine,
            build_options=BuildOptions(outdir=Path("out")),
            rescan=rescan,
        )

    return _make


def collect_builds(watcher: BuildWatcher) -> list[BuildResult]:
    results: list[BuildResult] = []
    watcher.on_build.connect(results.append)
    return results


class TestBuildWatcher:
    """Test cases for BuildWatcher."""

    @pytest.mark.asyncio
    async def test_initial_build(
        self,
        make_build_watcher: Callable[..., BuildWatcher],
        engine: FakeBuildEngine,
        ts_project: dict[str, Path],
    ):
        """Test that watch() returns after the first build was emitted."""
        watcher = make_build_watcher("a.ts")
        builds = collect_builds(watcher)
        watched: list[list[Path]] = []
        watcher.on_watch.connect(watched.append)

        paths = await watcher.watch()

        assert paths == [ts_project["a"], ts_project["b"]]
        assert watched == [paths]
        assert engine.calls == [[ts_project["a"]]]
        assert len(builds) == 1 and builds[0].success

    @pytest.mark.asyncio
    async def test_one_build_per_change(
        self,
        make_build_watcher: Callable[..., BuildWatcher],
        engine: FakeBuildEngine,
        notifier: FakeNotifier,
        ts_project: dict[str, Path],
    ):
        """Test that every change triggers exactly one build."""
        watcher = make_build_watcher("a.ts")
        builds = collect_builds(watcher)
        changes: list[tuple[str, Path]] = []
        watcher.on_change.connect(lambda kind, path: changes.append((kind, path)))
        await watcher.watch()

        notifier.fire(ts_project["b"])
        notifier.fire(ts_project["a"])
        await settle()
        await watcher.wait_for_builds()

        assert len(engine.calls) == 3
        assert len(builds) == 3
        assert [path for _, path in changes] == [ts_project["b"], ts_project["a"]]

    @pytest.mark.asyncio
    async def test_second_watch_does_not_build(
        self,
        make_build_watcher: Callable[..., BuildWatcher],
        engine: FakeBuildEngine,
        ts_project: dict[str, Path],
    ):
        """Test that only the first watch event builds."""
        watcher = make_build_watcher("a.ts")
        await watcher.watch()
        await watcher.rescan()
        await settle()
        await watcher.wait_for_builds()

        assert len(engine.calls) == 1

    @pytest.mark.asyncio
    async def test_rescan_after_build(
        self,
        make_build_watcher: Callable[..., BuildWatcher],
        notifier: FakeNotifier,
        ts_project: dict[str, Path],
        write: Callable[[str, str], Path],
    ):
        """Test that the dependency tree is rescanned after each build."""
        watcher = make_build_watcher("a.ts", rescan=True)
        watched: list[list[Path]] = []
        watcher.on_watch.connect(watched.append)
        await watcher.watch()
        # the first watch plus the rescan after the initial build
        assert len(watched) == 2

        c = write("c.ts", "export const c = 3;\n")
        ts_project["b"].write_text('export { c } from "./c";\n')
        notifier.fire(ts_project["b"])
        await settle()
        await watcher.wait_for_builds()

        assert watched[-1] == [ts_project["a"], ts_project["b"], c]
        assert c in notifier.watched()

    @pytest.mark.asyncio
    async def test_failed_rescan_keeps_watching(
        self,
        make_build_watcher: Callable[..., BuildWatcher],
        notifier: FakeNotifier,
        engine: FakeBuildEngine,
        ts_project: dict[str, Path],
    ):
        """Test that a cycle found by the post-build rescan is not fatal."""
        watcher = make_build_watcher("a.ts", rescan=True)
        await watcher.watch()

        ts_project["b"].write_text('import "./a";\n')
        notifier.fire(ts_project["b"])
        await settle()
        await watcher.wait_for_builds()

        assert watcher.state is WatcherState.WATCHING
        assert notifier.watched() == {ts_project["a"], ts_project["b"]}
        assert len(engine.calls) == 2

    @pytest.mark.asyncio
    async def test_notifier_error_in_rescan_keeps_watching(
        self,
        make_build_watcher: Callable[..., BuildWatcher],
        notifier: FakeNotifier,
        ts_project: dict[str, Path],
        write: Callable[[str, str], Path],
    ):
        """Test that an OSError while resubscribing does not fail the build task."""
        watcher = make_build_watcher("a.ts", rescan=True)
        builds = collect_builds(watcher)
        await watcher.watch()

        c = write("c.ts", "export const c = 3;\n")
        ts_project["b"].write_text('export { c } from "./c";\n')
        notifier.fail_on.add(c)
        notifier.fire(ts_project["b"])
        await settle(1)
        tasks = list(watcher._builds)
        await watcher.wait_for_builds()

        assert tasks
        assert all(task.exception() is None for task in tasks)
        assert len(builds) == 2
        assert watcher.state is WatcherState.WATCHING
        assert notifier.watched() == {ts_project["a"], ts_project["b"]}

    @pytest.mark.asyncio
    async def test_engine_error_becomes_failed_result(
        self, make_watcher: Callable[..., DependencyWatcher], ts_project: dict[str, Path]
    ):
        """Test that an exception from the engine is reported as a failed build."""
        engine = FakeBuildEngine(error=RuntimeError("compiler crashed"))
        watcher = BuildWatcher(make_watcher("a.ts"), engine)
        builds = collect_builds(watcher)

        await watcher.watch()

        assert len(builds) == 1
        assert not builds[0].success
        assert builds[0].diagnostics == ["compiler crashed"]

    @pytest.mark.asyncio
    async def test_close_drops_inflight_result(
        self,
        make_build_watcher: Callable[..., BuildWatcher],
        engine: FakeBuildEngine,
        notifier: FakeNotifier,
        ts_project: dict[str, Path],
    ):
        """Test that a build finishing after close is not emitted."""
        watcher = make_build_watcher("a.ts")
        builds = collect_builds(watcher)
        closes: list[bool] = []
        watcher.on_close.connect(lambda: closes.append(True))
        await watcher.watch()

        engine.release = asyncio.Event()
        notifier.fire(ts_project["b"])
        await settle()
        assert len(engine.calls) == 2

        watcher.close()
        engine.release.set()
        await settle(10)

        assert len(builds) == 1
        assert closes == [True]
        assert watcher.state is WatcherState.CLOSED
        assert watcher.pending_builds == 0

    @pytest.mark.asyncio
    async def test_async_context_manager(
        self,
        make_build_watcher: Callable[..., BuildWatcher],
        engine: FakeBuildEngine,
        notifier: FakeNotifier,
        ts_project: dict[str, Path],
    ):
        """Test that async with builds once and closes the watcher."""
        async with make_build_watcher("a.ts") as watcher:
            assert len(engine.calls) == 1

        assert watcher.state is WatcherState.CLOSED
        assert notifier.active == 0

    @pytest.mark.asyncio
    async def test_close_via_inner_watcher(
        self, make_build_watcher: Callable[..., BuildWatcher], ts_project: dict[str, Path]
    ):
        """Test that closing the wrapped watcher closes the build watcher."""
        watcher = make_build_watcher("a.ts")
        closes: list[bool] = []
        watcher.on_close.connect(lambda: closes.append(True))
        await watcher.watch()

        watcher.watcher.close()
        watcher.close()

        assert closes == [True]


class TestBuildWatchFactory:
    """Test cases for build_watch."""

    def test_requires_engine_or_command(self, settings: Settings, notifier: FakeNotifier):
        """Test that a build command or engine is mandatory."""
        with pytest.raises(ValueError):
            build_watch(["a.ts"], settings=settings, notifier=notifier)

    def test_settings_applied(self, settings: Settings, notifier: FakeNotifier, root: Path):
        """Test exclusion and rescan overrides."""
        watcher = build_watch(
            ["a.ts"],
            FakeBuildEngine(),
            settings=settings,
            notifier=notifier,
            exclude=["./dist/**"],
            rescan=True,
        )

        assert watcher.rescan_enabled
        assert watcher.state is WatcherState.READY
        assert watcher.watcher.entry_paths == [root / "a.ts"]

    def test_command_engine_from_settings(self, settings: Settings, notifier: FakeNotifier):
        """Test that the configured command becomes the engine."""
        configured = settings.model_copy(
            update={"build": settings.build.model_copy(update={"command": ["tsc", "{entries}"]})}
        )
        watcher = build_watch(["a.ts"], settings=configured, notifier=notifier)
        assert not watcher.rescan_enabled
