"""
depwatch Import Models.

File kinds and the collaborator contracts used by the dependency scanner.
Requires Python 3.11+.
"""

from enum import Enum
from pathlib import Path
from typing import Protocol, runtime_checkable


class FileKind(str, Enum):
    """Source file kinds the import extractor understands."""

    PYTHON = "python"
    JAVASCRIPT = "javascript"
    JSX = "jsx"
    TYPESCRIPT = "typescript"
    TSX = "tsx"

    @classmethod
    def from_path(cls, path: Path) -> "FileKind | None":
        """Determine the kind of a file from its extension, if supported."""
        return _SUFFIXES.get(path.suffix.lower())

    @property
    def is_python(self) -> bool:
        return self is FileKind.PYTHON


# Joins module and imported name in the specifier of ``from module import name``
FROM_IMPORT_SEPARATOR = ":"


_SUFFIXES: dict[str, FileKind] = {
    ".py": FileKind.PYTHON,
    ".pyi": FileKind.PYTHON,
    ".js": FileKind.JAVASCRIPT,
    ".mjs": FileKind.JAVASCRIPT,
    ".cjs": FileKind.JAVASCRIPT,
    ".jsx": FileKind.JSX,
    ".ts": FileKind.TYPESCRIPT,
    ".mts": FileKind.TYPESCRIPT,
    ".cts": FileKind.TYPESCRIPT,
    ".tsx": FileKind.TSX,
}


@runtime_checkable
class Extractor(Protocol):
    """Returns the raw import specifiers found in a file's content."""

    def extract(self, content: bytes, kind: FileKind, path: Path | None = None) -> list[str]:
        ...


@runtime_checkable
class Resolver(Protocol):
    """Resolves an import specifier against the file that contains it."""

    def resolve(self, specifier: str, containing_file: Path) -> Path:
        ...
