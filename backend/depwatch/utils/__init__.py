"""
depwatch Utilities Package.

Configuration, logging and path helpers shared across all modules.
Requires Python 3.11+.
"""

from depwatch.utils.config import (
    DEFAULT_EXCLUDE,
    CycleDetection,
    Settings,
    get_settings,
)
from depwatch.utils.logger import configure_logging, get_logger, LoggerMixin, shutdown_logging
from depwatch.utils.paths import matches, matches_any, normalize_path, resolve_glob

__all__ = [
    "DEFAULT_EXCLUDE",
    "CycleDetection",
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "LoggerMixin",
    "shutdown_logging",
    "matches",
    "matches_any",
    "normalize_path",
    "resolve_glob",
]
