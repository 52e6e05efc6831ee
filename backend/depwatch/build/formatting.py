"""
depwatch Output Formatting.

Rows describing build results and watch sets, ready to print as tables.
"""

from collections.abc import Iterable
from pathlib import Path

from depwatch.build.models import BuildResult
from depwatch.utils.paths import relative_display


def format_size(size: int) -> str:
    """Human readable size: bytes, then KB and MB with two decimals."""
    if size >= 1_000_000:
        return f"{size / 1_000_000:.2f} MB"
    if size >= 1_000:
        return f"{size / 1_000:.2f} KB"
    return f"{size} B"


def format_build_output(result: BuildResult, root_dir: Path) -> list[dict[str, str]]:
    """One row per artifact with its path relative to the root and its size."""
    return [
        {"path": relative_display(artifact.path, root_dir), "size": format_size(artifact.size)}
        for artifact in result.artifacts
    ]


def format_watch_output(paths: Iterable[Path], root_dir: Path) -> list[dict[str, str]]:
    """One row per watched file, relative to the root."""
    return [{"watching": relative_display(path, root_dir)} for path in paths]
