"""
depwatch Build Models.

Requests and results exchanged with a build engine.
Requires Python 3.11+.
"""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class BuildArtifact:
    """A file produced by a build."""

    path: Path
    size: int


@dataclass
class BuildOptions:
    """Options passed unchanged to the build engine on every build."""

    outdir: Path | None = None
    command: list[str] | None = None
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class BuildResult:
    """Outcome of one build: artifacts on success, diagnostics otherwise."""

    success: bool
    artifacts: list[BuildArtifact] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)

    @classmethod
    def failure(cls, *diagnostics: str) -> "BuildResult":
        return cls(success=False, diagnostics=list(diagnostics))

    @property
    def total_size(self) -> int:
        return sum(artifact.size for artifact in self.artifacts)
