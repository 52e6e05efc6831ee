"""
depwatch Exceptions.

Scan-level errors abort a scan and propagate to the caller of
``watch()``/``rescan()``. Skip errors are raised by the import extractor and
resolver for a single file or specifier; the scanner catches and logs them.
"""

from collections.abc import Iterable
from pathlib import Path


class DepWatchError(Exception):
    """Base class for all depwatch errors."""


class EntryNotFoundError(DepWatchError):
    """One or more entry paths do not exist."""

    def __init__(self, paths: Iterable[Path]) -> None:
        self.paths = sorted(paths)
        joined = ", ".join(str(p) for p in self.paths)
        super().__init__(f"entry points don't exist: {joined}")


class CyclicDependencyError(DepWatchError):
    """The same parent -> child import edge was recorded twice."""

    def __init__(self, parent: Path, children: Iterable[Path]) -> None:
        self.parent = parent
        self.children = sorted(children)
        arrows = "".join(f"\n\t-> {child}" for child in self.children)
        super().__init__(f"Cyclic import detected: {parent}{arrows}")


class ClosedWatcherError(DepWatchError):
    """An operation was invoked on a closed watcher."""

    def __init__(self, name: str = "watcher") -> None:
        super().__init__(f"cannot watch a closed {name}")


class IllegalTransitionError(DepWatchError):
    """A watcher state change outside the transition table."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"illegal watcher transition: {current} -> {target}")


class ParseSkipError(DepWatchError):
    """A file could not be parsed for imports; it contributes no children."""

    def __init__(self, path: Path | None, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"cannot parse {path or '<memory>'}: {reason}")


class ResolveSkipError(DepWatchError):
    """An import specifier could not be resolved to a file."""

    def __init__(self, specifier: str, containing_file: Path, reason: str = "unresolvable") -> None:
        self.specifier = specifier
        self.containing_file = containing_file
        self.reason = reason
        super().__init__(f"cannot resolve '{specifier}' from {containing_file}: {reason}")
