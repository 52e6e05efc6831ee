"""
depwatch Build Package.

Build engine contract, default engines and result formatting.
Requires Python 3.11+.
"""

from depwatch.build.models import BuildArtifact, BuildOptions, BuildResult
from depwatch.build.engine import (
    BuildEngine,
    CallableBuildEngine,
    CommandBuildEngine,
    collect_artifacts,
)
from depwatch.build.formatting import format_build_output, format_size, format_watch_output

__all__ = [
    "BuildArtifact",
    "BuildOptions",
    "BuildResult",
    "BuildEngine",
    "CallableBuildEngine",
    "CommandBuildEngine",
    "collect_artifacts",
    "format_build_output",
    "format_size",
    "format_watch_output",
]
