"""
depwatch Path Utilities.

Path normalization and exclusion-glob matching.
"""

import fnmatch
from collections.abc import Iterable
from pathlib import Path, PurePosixPath


def normalize_path(path: str | Path, root_dir: Path | None = None) -> Path:
    """
    Turn a path into the canonical absolute form used as identity.

    Relative paths are anchored at ``root_dir`` (or the process working
    directory when no root is given).
    """
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = (root_dir or Path.cwd()) / p
    return p.resolve(strict=False)


def resolve_glob(root_dir: Path, pattern: str) -> str:
    """
    Anchor a glob pattern at ``root_dir``.

    ``./node_modules/**`` becomes ``/project/node_modules/**``. Absolute
    patterns are returned unchanged (in POSIX form).
    """
    posix_pattern = pattern.replace("\\", "/")
    if PurePosixPath(posix_pattern).is_absolute() or Path(pattern).is_absolute():
        return posix_pattern

    base = PurePosixPath(Path(root_dir).resolve(strict=False).as_posix())
    parts: list[str] = []
    for part in PurePosixPath(posix_pattern).parts:
        if part == ".":
            continue
        if part == "..":
            base = base.parent
            continue
        parts.append(part)
    return str(base.joinpath(*parts)) if parts else str(base)


def matches(path: Path, pattern: str) -> bool:
    """Check a path against one absolute glob pattern."""
    posix = path.as_posix()
    if fnmatch.fnmatchcase(posix, pattern):
        return True
    # "dir/**" also covers the directory itself
    if pattern.endswith("/**") and posix == pattern[:-3]:
        return True
    return False


def matches_any(path: Path, patterns: Iterable[str]) -> bool:
    """Check whether any of the exclusion patterns matches a path."""
    return any(matches(path, pattern) for pattern in patterns)


def relative_display(path: Path, root_dir: Path) -> str:
    """Format a path relative to the root directory when possible."""
    try:
        return path.relative_to(root_dir).as_posix()
    except ValueError:
        return str(path)
