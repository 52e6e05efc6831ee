"""
depwatch Dependency Graph.

Parent -> children import edges discovered by one scan.
Requires Python 3.11+.
"""

from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Final, Union

from depwatch.errors import CyclicDependencyError


class _RootKey:
    """Sentinel parent of the entry paths."""

    _instance: "_RootKey | None" = None

    def __new__(cls) -> "_RootKey":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<root>"


ROOT: Final = _RootKey()

GraphKey = Union[Path, _RootKey]


class DependencyGraph:
    """
    Append-only mapping from a parent file to the files it imports.

    A parent recorded a second time is merged only if the new children are
    disjoint from the recorded ones. Recording the same parent -> child
    edge twice means the traversal came back around to the parent, which
    is reported as a cycle.
    """

    def __init__(self) -> None:
        self._edges: dict[GraphKey, set[Path]] = {}

    def merge(self, parent: GraphKey, children: set[Path]) -> None:
        """
        Record the children of a parent.

        Raises:
            CyclicDependencyError: If an edge of ``parent`` is recorded again
        """
        existing = self._edges.get(parent)
        if existing is None:
            self._edges[parent] = set(children)
            return

        overlap = existing & children
        if overlap:
            raise CyclicDependencyError(parent, overlap)  # type: ignore[arg-type]
        existing |= children

    def merge_all(self, found: Mapping[GraphKey, set[Path]]) -> None:
        """Merge a whole BFS layer."""
        for parent, children in found.items():
            self.merge(parent, children)

    def children(self, parent: GraphKey) -> frozenset[Path]:
        return frozenset(self._edges.get(parent, ()))

    def files(self) -> frozenset[Path]:
        """Every file that appears as a child, entry files included."""
        result: set[Path] = set()
        for children in self._edges.values():
            result |= children
        return frozenset(result)

    def find_back_edge(self) -> tuple[Path, Path] | None:
        """
        Find an edge that closes a cycle, searching depth-first from the root.

        Returns:
            (parent, child) of the first back edge, or None for an acyclic graph
        """
        on_path: set[GraphKey] = set()
        done: set[GraphKey] = set()
        # (node, iterator over its sorted children)
        stack: list[tuple[GraphKey, Iterator[Path]]] = [(ROOT, iter(sorted(self._edges.get(ROOT, ()))))]
        on_path.add(ROOT)

        while stack:
            node, pending = stack[-1]
            child = next(pending, None)
            if child is None:
                stack.pop()
                on_path.discard(node)
                done.add(node)
                continue
            if child in on_path:
                return node, child  # type: ignore[return-value]
            if child in done:
                continue
            on_path.add(child)
            stack.append((child, iter(sorted(self._edges.get(child, ())))))
        return None

    def __contains__(self, parent: object) -> bool:
        return parent in self._edges

    def __len__(self) -> int:
        return len(self._edges)

    def __iter__(self) -> Iterator[GraphKey]:
        return iter(self._edges)
