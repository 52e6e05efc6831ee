"""
depwatch Structured Logging Module.

Provides consistent, structured logging throughout the package.
Requires Python 3.11+.
"""

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import Processor

from depwatch.utils.config import Settings, get_settings

# Open log file of the current configuration, if logging to a file
_log_file: TextIO | None = None


def _app_context(settings: Settings) -> Processor:
    """Build a processor adding application context to all log entries."""

    def _add_app_context(
        logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict["app"] = settings.app_name
        event_dict["version"] = settings.app_version
        return event_dict

    return _add_app_context


def configure_logging(settings: Settings | None = None, level: str | None = None) -> None:
    """
    Configure structured logging for the application.

    Call this once at startup. Logs go to stderr so they never mix with
    the tables printed on stdout.

    Args:
        settings: Settings to read the logging section from
        level: Override for the configured log level
    """
    global _log_file

    settings = settings or get_settings()
    level_name = (level or settings.logging.level).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    # Common processors for all output formats
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        _app_context(settings),
    ]

    if settings.logging.format == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    previous_file = _log_file
    if settings.logging.file_path is not None:
        _log_file = settings.logging.file_path.open("a", encoding="utf-8")
        logger_factory = structlog.PrintLoggerFactory(file=_log_file)
    else:
        _log_file = None
        logger_factory = structlog.PrintLoggerFactory(file=sys.stderr)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )
    if previous_file is not None:
        previous_file.close()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
    )

    # Suppress noisy loggers
    logging.getLogger("watchdog").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def shutdown_logging() -> None:
    """Close the log file, if any, and send further output to stderr."""
    if _log_file is None:
        return
    _close_log_file()
    structlog.configure(logger_factory=structlog.PrintLoggerFactory(file=sys.stderr))


def _close_log_file() -> None:
    global _log_file

    if _log_file is not None:
        _log_file.close()
        _log_file = None


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class LoggerMixin:
    """
    Mixin class to add logging capability to any class.

    Usage:
        class DependencyScanner(LoggerMixin):
            def scan(self):
                self.log.info("scan_started", entries=3)
    """

    @property
    def log(self) -> structlog.stdlib.BoundLogger:
        """Get logger bound to this class name."""
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger
