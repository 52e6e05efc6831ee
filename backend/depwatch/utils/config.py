"""
depwatch Configuration Module.

Centralizes all configuration settings using Pydantic Settings.
Requires Python 3.11+.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Load .env file into os.environ at module import time
# so the nested BaseSettings classes can read the values
load_dotenv()


DEFAULT_EXCLUDE: list[str] = [
    # dependencies rarely change while a build is being watched
    "./node_modules/**",
    "./.venv/**",
]


class CycleDetection(str, Enum):
    """How the scanner detects import cycles."""

    MERGE = "merge"
    VISITED = "visited"


def _split_csv(v: str | list[str]) -> list[str]:
    if isinstance(v, str):
        return [p.strip() for p in v.split(",") if p.strip()]
    return v


class ScannerSettings(BaseSettings):
    """Dependency scanner settings."""

    model_config = SettingsConfigDict(env_prefix="SCANNER_")

    exclude: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE),
        description="Glob patterns, relative to the root directory, that are never watched",
    )
    cycle_detection: CycleDetection = Field(default=CycleDetection.MERGE)

    @field_validator("exclude", mode="before")
    @classmethod
    def parse_exclude(cls, v: str | list[str]) -> list[str]:
        """Parse exclusion globs from comma-separated string or list."""
        return _split_csv(v)


class ResolverSettings(BaseSettings):
    """Import resolution settings."""

    model_config = SettingsConfigDict(env_prefix="RESOLVER_")

    python_paths: Annotated[list[Path], NoDecode] = Field(
        default_factory=list,
        description="Extra directories searched for absolute Python imports",
    )
    extensions: Annotated[list[str], NoDecode] = Field(
        default=[".ts", ".tsx", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs", ".json"],
        description="Extensions tried for extensionless JavaScript/TypeScript specifiers",
    )
    use_project_config: bool = Field(
        default=True,
        description="Honor baseUrl/paths of the nearest tsconfig.json or jsconfig.json",
    )

    @field_validator("python_paths", "extensions", mode="before")
    @classmethod
    def parse_lists(cls, v: str | list) -> list:
        """Parse lists from comma-separated strings."""
        return _split_csv(v)


class WatcherSettings(BaseSettings):
    """File watcher configuration settings."""

    model_config = SettingsConfigDict(env_prefix="WATCHER_")

    rescan: bool = Field(default=False, description="Rescan the dependency tree after every build")
    use_polling: bool = Field(default=False)
    poll_interval_s: float = Field(default=1.0, gt=0.0, le=60.0)


class BuildSettings(BaseSettings):
    """Build engine configuration settings."""

    model_config = SettingsConfigDict(env_prefix="BUILD_")

    command: list[str] | None = Field(
        default=None,
        description="Build command; '{entries}' expands to the entry paths, '{outdir}' to the output dir",
    )
    outdir: Path = Field(default=Path("out"))
    clear_screen: bool = Field(default=True)
    quiet: bool = Field(default=False)


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO")
    format: str = Field(default="console")  # "json" or "console"
    file_path: Path | None = Field(default=None)


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="depwatch")
    app_version: str = Field(default="0.1.0")

    # Every relative path (entries, exclusion globs, outdir) is anchored here
    root_dir: Path = Field(default_factory=Path.cwd)

    # Sub-settings
    scanner: ScannerSettings = Field(default_factory=ScannerSettings)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    watcher: WatcherSettings = Field(default_factory=WatcherSettings)
    build: BuildSettings = Field(default_factory=BuildSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("root_dir", mode="after")
    @classmethod
    def absolute_root(cls, v: Path) -> Path:
        """Anchor the root directory."""
        return v.expanduser().resolve()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns singleton instance of Settings. Library callers that need a
    different root directory should build their own Settings instead.
    """
    return Settings()
