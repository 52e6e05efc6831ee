"""
depwatch Test Configuration.

Pytest fixtures and configuration.
Requires Python 3.11+.
"""

import asyncio
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Sequence

import pytest

from depwatch.build.models import BuildOptions, BuildResult
from depwatch.scanner.scanner import DependencyScanner
from depwatch.utils.config import Settings
from depwatch.watcher.dependency_watcher import DependencyWatcher
from depwatch.watcher.events import Subscription
from depwatch.watcher.notifier import CHANGE, ChangeCallback


class FakeNotifier:
    """In-memory notifier; ``fire()`` delivers a notification synchronously."""

    def __init__(self) -> None:
        self.callbacks: dict[Path, list[ChangeCallback]] = {}
        self.subscribed = 0
        self.disposed = 0
        self.closed = False
        self.closed_on_thread: int | None = None
        # subscribing one of these paths raises OSError
        self.fail_on: set[Path] = set()
        # most handles any single path held at once
        self.peak_per_path = 0

    def subscribe(self, path: Path, callback: ChangeCallback) -> Subscription:
        if path in self.fail_on:
            raise OSError(f"cannot watch {path}")
        self.subscribed += 1
        self.callbacks.setdefault(path, []).append(callback)
        self.peak_per_path = max(self.peak_per_path, len(self.callbacks[path]))

        def dispose() -> None:
            self.disposed += 1
            self.callbacks[path].remove(callback)
            if not self.callbacks[path]:
                del self.callbacks[path]

        return Subscription(dispose)

    def close(self) -> None:
        self.closed = True
        self.closed_on_thread = threading.get_ident()

    @property
    def active(self) -> int:
        return sum(len(cbs) for cbs in self.callbacks.values())

    def watched(self) -> set[Path]:
        return set(self.callbacks)

    def fire(self, path: Path, kind: str = CHANGE) -> None:
        for callback in list(self.callbacks.get(path, ())):
            callback(kind, path)


class FakeBuildEngine:
    """Counts builds and returns a configurable result."""

    def __init__(self, result: BuildResult | None = None, error: Exception | None = None) -> None:
        self.calls: list[list[Path]] = []
        self.result = result or BuildResult(success=True)
        self.error = error
        self.release: asyncio.Event | None = None

    async def build(self, entry_paths: Sequence[Path], options: BuildOptions) -> BuildResult:
        self.calls.append(list(entry_paths))
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.result


async def settle(rounds: int = 5) -> None:
    """Let callbacks scheduled on the event loop run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """Resolved project root directory."""
    return tmp_path.resolve()


@pytest.fixture
def write(root: Path) -> Callable[[str, str], Path]:
    """Write a file below the project root and return its path."""

    def _write(relative: str, content: str = "") -> Path:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    return _write


@pytest.fixture
def settings(root: Path) -> Settings:
    """Settings anchored at the temporary project root."""
    return Settings(root_dir=root)


@pytest.fixture
def scanner(settings: Settings) -> DependencyScanner:
    """Scanner with the default extractor and resolver."""
    return DependencyScanner.from_settings(settings)


@pytest.fixture
def notifier() -> FakeNotifier:
    """In-memory notifier."""
    return FakeNotifier()


@pytest.fixture
def ts_project(write: Callable[[str, str], Path]) -> dict[str, Path]:
    """a.ts imports b.ts."""
    return {
        "a": write("a.ts", 'import { b } from "./b";\nconsole.log(b);\n'),
        "b": write("b.ts", "export const b = 1;\n"),
    }


@pytest.fixture
def make_watcher(
    scanner: DependencyScanner, notifier: FakeNotifier, root: Path
) -> Callable[..., DependencyWatcher]:
    """Build dependency watchers over the fake notifier."""

    def _make(*entries: str | Path) -> DependencyWatcher:
        return DependencyWatcher(entries, scanner=scanner, notifier=notifier, root_dir=root)

    return _make
