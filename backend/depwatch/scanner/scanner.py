"""
depwatch Dependency Scanner.

Level-synchronous breadth-first discovery of every file reachable from a
set of entry files.
Requires Python 3.11+.
"""

import asyncio
import time
from collections.abc import Iterable
from pathlib import Path

from depwatch.errors import CyclicDependencyError, ParseSkipError, ResolveSkipError
from depwatch.imports.extractor import TreeSitterExtractor
from depwatch.imports.models import Extractor, FileKind, Resolver
from depwatch.imports.resolver import ImportResolver
from depwatch.scanner.graph import ROOT, DependencyGraph, GraphKey
from depwatch.utils.config import DEFAULT_EXCLUDE, CycleDetection, Settings
from depwatch.utils.logger import LoggerMixin
from depwatch.utils.paths import matches_any, normalize_path, resolve_glob


class DependencyScanner(LoggerMixin):
    """
    Discovers the transitive import closure of a set of entry files.

    Each BFS layer is merged into a fresh DependencyGraph before the next
    layer is expanded; the files of one layer are expanded concurrently.
    Missing files, unsupported file types, parse failures and unresolvable
    imports are skipped and logged. Cycles abort the scan.
    """

    def __init__(
        self,
        extractor: Extractor,
        resolver: Resolver,
        root_dir: Path,
        exclude: Iterable[str] = DEFAULT_EXCLUDE,
        cycle_detection: CycleDetection = CycleDetection.MERGE,
    ) -> None:
        """
        Initialize the scanner.

        Args:
            extractor: Finds raw import specifiers in file content
            resolver: Maps a specifier and its containing file to a path
            root_dir: Directory relative entries and globs are anchored at
            exclude: Glob patterns never followed
            cycle_detection: Lazy merge-time check or explicit visited set
        """
        self._extractor = extractor
        self._resolver = resolver
        self._root_dir = root_dir.resolve()
        self._exclude = list(exclude)
        self._exclude_globs = [resolve_glob(self._root_dir, pattern) for pattern in self._exclude]
        self._cycle_detection = CycleDetection(cycle_detection)

    @classmethod
    def from_settings(cls, settings: Settings) -> "DependencyScanner":
        """Create a scanner with the Tree-sitter extractor and default resolver."""
        return cls(
            extractor=TreeSitterExtractor(),
            resolver=ImportResolver(settings.root_dir, settings.resolver),
            root_dir=settings.root_dir,
            exclude=settings.scanner.exclude,
            cycle_detection=settings.scanner.cycle_detection,
        )

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    @property
    def exclude_globs(self) -> list[str]:
        return list(self._exclude_globs)

    async def scan(self, entry_paths: Iterable[str | Path]) -> frozenset[Path]:
        """
        Scan the dependency tree of the entry paths.

        Args:
            entry_paths: Entry files; relative paths are anchored at the root

        Returns:
            Absolute paths of the entries and everything they import

        Raises:
            CyclicDependencyError: If an import cycle is reachable from an entry
        """
        start_time = time.perf_counter()
        entries = {normalize_path(p, self._root_dir) for p in entry_paths}

        discovered = DependencyGraph()
        frontier: dict[GraphKey, set[Path]] = {ROOT: entries}
        visited: set[Path] = set()
        layers = 0

        while frontier:
            discovered.merge_all(frontier)

            pending: set[Path] = set().union(*frontier.values())
            if self._cycle_detection is CycleDetection.VISITED:
                pending -= visited
                visited |= pending

            frontier = await self._expand_layer(pending)
            layers += 1

        if self._cycle_detection is CycleDetection.VISITED:
            back_edge = discovered.find_back_edge()
            if back_edge is not None:
                parent, child = back_edge
                raise CyclicDependencyError(parent, {child})

        files = discovered.files()
        self.log.info(
            "scan_completed",
            entries=len(entries),
            files=len(files),
            layers=layers,
            elapsed_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return files

    async def _expand_layer(self, files: set[Path]) -> dict[GraphKey, set[Path]]:
        """Expand every file of one layer concurrently."""
        ordered = sorted(files)
        results = await asyncio.gather(*(self._expand(path) for path in ordered))
        return {
            path: children
            for path, children in zip(ordered, results)
            if children is not None
        }

    async def _expand(self, path: Path) -> set[Path] | None:
        """
        Find the files imported by one file.

        Returns:
            The qualifying children, or None if the file is skipped entirely
        """
        kind = FileKind.from_path(path)
        if kind is None:
            self.log.debug("file_skipped", path=str(path), reason="unsupported_type")
            return None

        try:
            content = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            self.log.info("file_skipped", path=str(path), reason="missing")
            return None
        except OSError as e:
            self.log.warning("file_skipped", path=str(path), reason="unreadable", error=str(e))
            return None

        try:
            specifiers = await asyncio.to_thread(self._extractor.extract, content, kind, path)
        except ParseSkipError as e:
            self.log.warning("parse_skipped", path=str(path), error=e.reason)
            return set()

        return await asyncio.to_thread(self._resolve_children, path, specifiers)

    def _resolve_children(self, path: Path, specifiers: list[str]) -> set[Path]:
        children: set[Path] = set()
        for specifier in specifiers:
            try:
                target = normalize_path(self._resolver.resolve(specifier, path))
            except ResolveSkipError as e:
                self.log.debug("resolve_skipped", path=str(path), specifier=specifier, reason=e.reason)
                continue

            if matches_any(target, self._exclude_globs):
                continue
            if not target.is_file():
                continue
            children.add(target)
        return children
