"""
depwatch Command Line Interface.

Builds the given entry files once, or rebuilds them whenever a file in
their import tree changes.

Usage:
    depwatch src/main.ts --cmd "esbuild {entries} --bundle --outdir={outdir}"
    depwatch src/main.ts --watch --rescan -x "./vendor/**"
"""

import argparse
import asyncio
import shlex
import signal
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from depwatch.build.engine import CommandBuildEngine
from depwatch.build.formatting import format_build_output, format_watch_output
from depwatch.build.models import BuildOptions, BuildResult
from depwatch.errors import DepWatchError
from depwatch.utils.config import DEFAULT_EXCLUDE, Settings
from depwatch.utils.logger import configure_logging, get_logger, shutdown_logging
from depwatch.utils.paths import normalize_path
from depwatch.watcher.build_watcher import build_watch

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)
logger = get_logger("depwatch.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="depwatch",
        description="Rebuild entry files whenever a file in their import tree changes",
    )
    parser.add_argument("entries", nargs="+", type=Path, help="Entry files to build")
    parser.add_argument("--watch", action="store_true", help="Build after file changes")
    parser.add_argument(
        "--rescan",
        action="store_true",
        help="Rescan the dependency tree after file changes",
    )
    parser.add_argument(
        "--no-clear-screen",
        action="store_true",
        help="Don't clear the screen after file changes",
    )
    parser.add_argument(
        "-x",
        "--exclude",
        action="append",
        default=None,
        help=f"Exclude this glob (repeatable, default: {' '.join(DEFAULT_EXCLUDE)})",
    )
    parser.add_argument("--quiet", action="store_true", help="Don't print anything")
    parser.add_argument("--cmd", help="Build command; {entries} and {outdir} are substituted")
    parser.add_argument("--outdir", type=Path, help="Output directory of the build")
    parser.add_argument("--root", type=Path, help="Root directory (defaults to the current directory)")
    parser.add_argument("--log-level", help="Log level override (DEBUG, INFO, WARNING)")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Merge command line flags over the environment settings."""
    settings = Settings(root_dir=args.root) if args.root else Settings()

    build_update: dict = {}
    if args.cmd:
        build_update["command"] = shlex.split(args.cmd)
    if args.outdir:
        build_update["outdir"] = args.outdir
    if args.no_clear_screen:
        build_update["clear_screen"] = False
    if args.quiet:
        build_update["quiet"] = True

    update: dict = {"build": settings.build.model_copy(update=build_update)}
    if args.exclude is not None:
        update["scanner"] = settings.scanner.model_copy(update={"exclude": args.exclude})
    if args.rescan:
        update["watcher"] = settings.watcher.model_copy(update={"rescan": True})
    return settings.model_copy(update=update)


def print_build(result: BuildResult, settings: Settings) -> None:
    """Print the artifacts of a successful build, or its diagnostics."""
    if not result.success:
        for line in result.diagnostics:
            err_console.print(line, markup=False)
        return

    table = Table("path", "size")
    for row in format_build_output(result, settings.root_dir):
        table.add_row(row["path"], row["size"])
    console.print(table)


def print_watch(paths: list[Path], settings: Settings) -> None:
    """Print the files currently watched."""
    table = Table("watching")
    for row in format_watch_output(paths, settings.root_dir):
        table.add_row(row["watching"])
    console.print(table)


async def run_once(entries: list[Path], settings: Settings) -> int:
    """Build the entries a single time."""
    if not settings.build.command:
        err_console.print("no build command: pass --cmd or set BUILD_COMMAND")
        return 2

    engine = CommandBuildEngine(settings.build.command, settings.root_dir)
    options = BuildOptions(
        outdir=normalize_path(settings.build.outdir, settings.root_dir),
        command=settings.build.command,
    )
    result = await engine.build(
        [normalize_path(p, settings.root_dir) for p in entries],
        options,
    )
    if not settings.build.quiet:
        print_build(result, settings)
    return 0 if result.success else 1


async def run_watch(entries: list[Path], settings: Settings) -> int:
    """Watch and rebuild until interrupted."""
    if not settings.build.command:
        err_console.print("no build command: pass --cmd or set BUILD_COMMAND")
        return 2

    watcher = build_watch(entries, settings=settings)

    if not settings.build.quiet:

        def on_build(result: BuildResult) -> None:
            if settings.build.clear_screen:
                console.clear()
            print_build(result, settings)

        watcher.on_build.connect(on_build)
        watcher.on_watch.connect(lambda paths: print_watch(paths, settings))

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, stop.set)
    except NotImplementedError:
        # Windows event loops: KeyboardInterrupt ends asyncio.run instead
        pass

    try:
        await watcher.watch()
    except DepWatchError as e:
        err_console.print(str(e), markup=False)
        await watcher.aclose()
        return 1

    try:
        await stop.wait()
    finally:
        await watcher.aclose()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(args)
    level = "WARNING" if settings.build.quiet and not args.log_level else args.log_level
    configure_logging(settings, level=level)

    logger.debug("cli_started", entries=[str(p) for p in args.entries], watch=args.watch)
    try:
        if args.watch:
            return asyncio.run(run_watch(args.entries, settings))
        return asyncio.run(run_once(args.entries, settings))
    except KeyboardInterrupt:
        return 0
    finally:
        shutdown_logging()


if __name__ == "__main__":
    sys.exit(main())
