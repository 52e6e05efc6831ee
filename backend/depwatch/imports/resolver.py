"""
depwatch Import Resolver.

Maps an import specifier plus the file containing it to an absolute path.
Python specifiers follow package resolution (relative dots, enclosing
package roots, extra search paths); JavaScript/TypeScript specifiers follow
Node-style resolution with nested node_modules lookup and
tsconfig/jsconfig ``baseUrl``/``paths`` mapping.
Requires Python 3.11+.
"""

import json
from collections.abc import Iterable, Iterator
from pathlib import Path

from depwatch.errors import ResolveSkipError
from depwatch.imports.models import FROM_IMPORT_SEPARATOR, FileKind
from depwatch.imports.project_config import find_project_config
from depwatch.utils.config import ResolverSettings
from depwatch.utils.logger import LoggerMixin

_SCRIPT_SUFFIXES = (".js", ".jsx", ".mjs", ".cjs")
_TS_FOR_SCRIPT = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx",),
    ".mjs": (".mts",),
    ".cjs": (".cts",),
}
_BUILTIN_PREFIXES = ("node:", "bun:", "data:", "http:", "https:")


class ImportResolver(LoggerMixin):
    """
    Resolves import specifiers to absolute file paths.

    Raises ResolveSkipError for anything that does not map to a file on
    disk, including standard library modules and Node built-ins.
    """

    def __init__(
        self,
        root_dir: Path,
        settings: ResolverSettings | None = None,
    ) -> None:
        """
        Initialize the resolver.

        Args:
            root_dir: Project root; bounds the upward package search for Python
            settings: Resolver settings (defaults from the environment)
        """
        settings = settings or ResolverSettings()
        self._root_dir = root_dir.resolve()
        self._extensions = list(settings.extensions)
        self._python_paths = [
            (p if p.is_absolute() else self._root_dir / p).resolve()
            for p in settings.python_paths
        ]
        self._use_project_config = settings.use_project_config

    def resolve(self, specifier: str, containing_file: Path) -> Path:
        """
        Resolve a specifier found in ``containing_file``.

        Returns:
            Absolute, normalized path of the imported file

        Raises:
            ResolveSkipError: If the specifier does not resolve to a file
        """
        kind = FileKind.from_path(containing_file)
        if kind is None:
            raise ResolveSkipError(specifier, containing_file, "unsupported file type")

        if kind.is_python:
            found = self._resolve_python(specifier, containing_file)
        else:
            found = self._resolve_script(specifier, containing_file)

        if found is None:
            raise ResolveSkipError(specifier, containing_file)
        return found.resolve()

    # -- Python ---------------------------------------------------------

    def _resolve_python(self, specifier: str, containing_file: Path) -> Path | None:
        module, separator, name = specifier.partition(FROM_IMPORT_SEPARATOR)
        if not separator:
            return self._resolve_python_module(specifier, containing_file)

        # The imported name is either a submodule or an attribute of the module
        submodule = f"{module}{name}" if module.endswith(".") else f"{module}.{name}"
        found = self._resolve_python_module(submodule, containing_file)
        if found is None:
            found = self._resolve_python_module(module, containing_file)
        return found

    def _resolve_python_module(self, specifier: str, containing_file: Path) -> Path | None:
        stripped = specifier.lstrip(".")
        level = len(specifier) - len(stripped)
        parts = [p for p in stripped.split(".") if p]

        if level:
            base = containing_file.parent
            for _ in range(level - 1):
                base = base.parent
            return self._python_module(base, parts)

        if not parts:
            return None
        for directory in self._python_search_dirs(containing_file):
            found = self._python_module(directory, parts)
            if found is not None:
                return found
        return None

    def _python_module(self, base: Path, parts: list[str]) -> Path | None:
        if not parts:
            init = base / "__init__.py"
            return init if init.is_file() else None

        target = base.joinpath(*parts)
        for candidate in (
            target.parent / f"{target.name}.py",
            target / "__init__.py",
            target.parent / f"{target.name}.pyi",
        ):
            if candidate.is_file():
                return candidate
        return None

    def _python_search_dirs(self, containing_file: Path) -> Iterator[Path]:
        """Enclosing directories up to the root, then the extra paths."""
        seen: set[Path] = set()
        directory = containing_file.parent.resolve()
        inside_root = directory == self._root_dir or self._root_dir in directory.parents

        while True:
            if directory not in seen:
                seen.add(directory)
                yield directory
            if not inside_root or directory == self._root_dir:
                break
            directory = directory.parent

        for directory in [self._root_dir, *self._python_paths]:
            if directory not in seen:
                seen.add(directory)
                yield directory

    # -- JavaScript / TypeScript ----------------------------------------

    def _resolve_script(self, specifier: str, containing_file: Path) -> Path | None:
        if specifier.startswith(_BUILTIN_PREFIXES) or not specifier:
            return None

        if specifier.startswith(("./", "../")) or specifier in (".", "..") or Path(specifier).is_absolute():
            return self._file_or_directory(containing_file.parent / specifier)

        if self._use_project_config:
            config = find_project_config(containing_file)
            if config is not None:
                candidates = config.mapped_candidates(specifier)
                if config.base_url is not None:
                    candidates.append(config.base_url / specifier)
                found = self._first_file(candidates)
                if found is not None:
                    return found

        return self._node_modules(specifier, containing_file)

    def _first_file(self, candidates: Iterable[Path]) -> Path | None:
        for candidate in candidates:
            found = self._file_or_directory(candidate)
            if found is not None:
                return found
        return None

    def _file_or_directory(self, base: Path) -> Path | None:
        """Try the path as a file, with extensions, then as a directory."""
        if base.is_file():
            return base

        for ext in self._extensions:
            candidate = base.with_name(base.name + ext)
            if candidate.is_file():
                return candidate

        # "./b.js" written in TypeScript sources refers to b.ts
        if base.suffix in _SCRIPT_SUFFIXES:
            for ext in _TS_FOR_SCRIPT[base.suffix]:
                candidate = base.with_suffix(ext)
                if candidate.is_file():
                    return candidate

        if base.is_dir():
            return self._package_entry(base)
        return None

    def _package_entry(self, directory: Path) -> Path | None:
        """Entry file of a directory: package.json fields, then index files."""
        manifest = directory / "package.json"
        if manifest.is_file():
            for target in self._manifest_targets(manifest):
                candidate = directory / target
                if candidate == directory:
                    continue
                found = self._file_or_directory(candidate)
                if found is not None:
                    return found

        for ext in self._extensions:
            index = directory / f"index{ext}"
            if index.is_file():
                return index
        return None

    def _manifest_targets(self, manifest: Path) -> list[str]:
        try:
            data = json.loads(manifest.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self.log.debug("package_manifest_unreadable", path=str(manifest), error=str(e))
            return []
        if not isinstance(data, dict):
            return []

        targets: list[str] = []
        exports = data.get("exports")
        if isinstance(exports, dict):
            exports = exports.get(".", exports)
        if isinstance(exports, dict):
            for condition in ("import", "default", "require"):
                if isinstance(exports.get(condition), str):
                    targets.append(exports[condition])
        elif isinstance(exports, str):
            targets.append(exports)

        for key in ("module", "main"):
            if isinstance(data.get(key), str):
                targets.append(data[key])
        return targets

    def _node_modules(self, specifier: str, containing_file: Path) -> Path | None:
        """Look the package up in every enclosing node_modules directory."""
        parts = specifier.split("/")
        if specifier.startswith("@"):
            name_parts, subpath = parts[:2], parts[2:]
        else:
            name_parts, subpath = parts[:1], parts[1:]

        directory = containing_file.parent
        while True:
            package_dir = directory / "node_modules" / Path(*name_parts)
            if subpath:
                found = self._file_or_directory(package_dir / Path(*subpath))
            elif package_dir.is_dir():
                found = self._package_entry(package_dir)
            else:
                found = self._file_or_directory(package_dir)
            if found is not None:
                return found

            if directory.parent == directory:
                return None
            directory = directory.parent
