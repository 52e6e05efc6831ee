"""
depwatch Build Engines.

A build engine compiles entry files into artifacts. It knows nothing about
watching; the BuildWatcher calls it on every relevant change.
Requires Python 3.11+.
"""

import asyncio
import inspect
import os
import time
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from depwatch.build.models import BuildArtifact, BuildOptions, BuildResult
from depwatch.utils.logger import LoggerMixin

ENTRIES_PLACEHOLDER = "{entries}"
OUTDIR_PLACEHOLDER = "{outdir}"

BuildFunction = Callable[[list[Path], BuildOptions], BuildResult | Awaitable[BuildResult]]


@runtime_checkable
class BuildEngine(Protocol):
    """Request/response build of a set of entry files."""

    async def build(self, entry_paths: Sequence[Path], options: BuildOptions) -> BuildResult:
        ...


def collect_artifacts(outdir: Path, since_ns: int = 0) -> list[BuildArtifact]:
    """
    List the files under ``outdir`` modified at or after ``since_ns``.

    Args:
        outdir: Build output directory
        since_ns: Modification time threshold in nanoseconds

    Returns:
        Artifacts sorted by path
    """
    if not outdir.is_dir():
        return []

    artifacts: list[BuildArtifact] = []
    for path in sorted(outdir.rglob("*")):
        try:
            stat = path.stat()
        except OSError:
            continue
        if path.is_file() and stat.st_mtime_ns >= since_ns:
            artifacts.append(BuildArtifact(path=path, size=stat.st_size))
    return artifacts


class CommandBuildEngine(LoggerMixin):
    """
    Runs an external build command.

    ``{entries}`` in the command expands to the entry paths (they are
    appended when the placeholder is absent) and ``{outdir}`` to the output
    directory. Success is a zero exit status; stderr lines become the
    diagnostics and the files written to the output directory during the
    build become the artifacts.
    """

    def __init__(self, command: Sequence[str], root_dir: Path) -> None:
        """
        Initialize the engine.

        Args:
            command: Program and arguments
            root_dir: Working directory of the build process
        """
        if not command:
            raise ValueError("build command must not be empty")
        self._command = list(command)
        self._root_dir = root_dir

    def expand_command(self, entry_paths: Sequence[Path], options: BuildOptions) -> list[str]:
        """Substitute the placeholders of the command."""
        command = options.command or self._command
        outdir = str(options.outdir) if options.outdir is not None else ""
        entries = [str(p) for p in entry_paths]

        args: list[str] = []
        for arg in command:
            if arg == ENTRIES_PLACEHOLDER:
                args.extend(entries)
            else:
                args.append(arg.replace(OUTDIR_PLACEHOLDER, outdir))
        if ENTRIES_PLACEHOLDER not in command:
            args.extend(entries)
        return args

    async def build(self, entry_paths: Sequence[Path], options: BuildOptions) -> BuildResult:
        """Run the build command once."""
        args = self.expand_command(entry_paths, options)
        # Whole seconds, so coarse filesystem timestamps still count
        started_ns = (time.time_ns() // 1_000_000_000) * 1_000_000_000
        start_time = time.perf_counter()

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=self._root_dir,
                env={**os.environ, **options.env},
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self.log.error("build_command_failed", command=args[0], error=str(e))
            return BuildResult.failure(f"cannot run {args[0]}: {e}")

        stdout, stderr = await process.communicate()
        diagnostics = _lines(stderr)
        success = process.returncode == 0
        if not success:
            diagnostics = _lines(stdout) + diagnostics
            diagnostics.append(f"{args[0]} exited with status {process.returncode}")

        artifacts = (
            collect_artifacts(options.outdir, since_ns=started_ns)
            if success and options.outdir is not None
            else []
        )

        self.log.debug(
            "build_command_finished",
            command=args[0],
            returncode=process.returncode,
            artifacts=len(artifacts),
            elapsed_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return BuildResult(success=success, artifacts=artifacts, diagnostics=diagnostics)


class CallableBuildEngine:
    """Adapts a plain function (sync or async) to the BuildEngine protocol."""

    def __init__(self, function: BuildFunction) -> None:
        self._function = function

    async def build(self, entry_paths: Sequence[Path], options: BuildOptions) -> BuildResult:
        if inspect.iscoroutinefunction(self._function):
            return await self._function(list(entry_paths), options)
        result = await asyncio.to_thread(self._function, list(entry_paths), options)
        if inspect.isawaitable(result):
            return await result
        return result


def _lines(output: bytes) -> list[str]:
    return [line for line in output.decode("utf-8", errors="replace").splitlines() if line.strip()]
