"""
depwatch Project Config Discovery.

Locates the nearest tsconfig.json / jsconfig.json for a source file and
reads the module resolution options the resolver honors.
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path

from depwatch.utils.logger import get_logger

logger = get_logger(__name__)

CONFIG_NAMES = ("tsconfig.json", "jsconfig.json")

# Strings are matched first so comment markers inside them survive
_COMMENTS = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', re.DOTALL)
_TRAILING_COMMAS = re.compile(r",(\s*[}\]])")


@dataclass
class ProjectConfig:
    """Module resolution options of a tsconfig.json or jsconfig.json."""

    path: Path
    base_url: Path | None = None
    paths: dict[str, list[str]] = field(default_factory=dict)

    @property
    def directory(self) -> Path:
        return self.path.parent

    def mapped_candidates(self, specifier: str) -> list[Path]:
        """
        Expand ``compilerOptions.paths`` for a specifier.

        Exact keys win over wildcard keys; among wildcard keys the one with
        the longest prefix wins, as TypeScript does.
        """
        base = self.base_url or self.directory
        if specifier in self.paths:
            return [base / target for target in self.paths[specifier]]

        best: tuple[str, str, list[str]] | None = None
        for pattern, targets in self.paths.items():
            if pattern.count("*") != 1:
                continue
            prefix, suffix = pattern.split("*")
            if not (specifier.startswith(prefix) and specifier.endswith(suffix)):
                continue
            if len(specifier) < len(prefix) + len(suffix):
                continue
            if best is None or len(prefix) > len(best[0]):
                best = (prefix, suffix, targets)

        if best is None:
            return []
        prefix, suffix, targets = best
        captured = specifier[len(prefix) : len(specifier) - len(suffix)]
        return [base / target.replace("*", captured) for target in targets]


def parse_jsonc(text: str) -> dict:
    """Parse JSON that may contain comments and trailing commas."""
    stripped = _COMMENTS.sub(lambda m: m.group(1) or "", text)
    stripped = _TRAILING_COMMAS.sub(r"\1", stripped)
    data = json.loads(stripped)
    if not isinstance(data, dict):
        raise ValueError("config root is not an object")
    return data


def load_project_config(config_path: Path) -> ProjectConfig | None:
    """Load a config file, returning None when it cannot be read."""
    try:
        data = parse_jsonc(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("project_config_unreadable", path=str(config_path), error=str(e))
        return None

    options = data.get("compilerOptions") or {}
    base_url = options.get("baseUrl")
    paths = options.get("paths") or {}
    return ProjectConfig(
        path=config_path,
        base_url=(config_path.parent / base_url).resolve() if base_url else None,
        paths={
            key: [t for t in value if isinstance(t, str)]
            for key, value in paths.items()
            if isinstance(value, list)
        },
    )


def find_project_config(file_path: Path) -> ProjectConfig | None:
    """
    Walk up from a file looking for the nearest project config.

    tsconfig.json takes precedence over jsconfig.json in the same
    directory. The walk stops at the filesystem root.
    """
    directory = file_path.parent
    while True:
        for name in CONFIG_NAMES:
            candidate = directory / name
            if candidate.is_file():
                return load_project_config(candidate)
        if directory.parent == directory:
            return None
        directory = directory.parent
