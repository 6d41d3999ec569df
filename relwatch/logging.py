"""Logging for relwatch workers on top of femtologging.

Messages are formatted before they reach femtologging, so structured events
such as ``[ingestion.run.started] repo_slug=octo/reef`` arrive as one string.
Each module keeps its own logger; tests swap it for a recorder.

Example:
>>> from relwatch.logging import get_logger, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "Worker %d subscribed", 0)

"""

from __future__ import annotations

import enum
import typing as typ

from femtologging import basicConfig, get_logger

DEFAULT_LOG_LEVEL = "INFO"


class LogLevel(enum.StrEnum):
    """Levels accepted in ``RELWATCH_LOG_LEVEL``."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class _SupportsLog(typ.Protocol):
    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Return ``(level, invalid)`` for a raw level string.

    Unknown or empty levels fall back to ``INFO`` with ``invalid`` set so the
    caller can warn once logging is configured.
    """
    try:
        return (LogLevel((level or "").strip().upper()).value, False)
    except ValueError:
        return (DEFAULT_LOG_LEVEL, True)


def configure_logging(level: str) -> tuple[str, bool]:
    """Install femtologging's default handler at the normalized ``level``."""
    normalized, invalid = normalize_log_level(level)
    basicConfig(level=normalized)
    return (normalized, invalid)


def format_log_message(template: str, *args: object) -> str:
    """Interpolate ``args`` into a percent-style ``template``."""
    return template % args if args else template


def log_debug(logger: _SupportsLog, template: str, *args: object) -> None:
    """Log a formatted DEBUG message."""
    logger.log("DEBUG", format_log_message(template, *args))


def log_info(logger: _SupportsLog, template: str, *args: object) -> None:
    """Log a formatted INFO message."""
    logger.log("INFO", format_log_message(template, *args))


def log_warning(logger: _SupportsLog, template: str, *args: object) -> None:
    """Log a formatted WARNING message."""
    logger.log("WARNING", format_log_message(template, *args))


def log_error(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log a formatted ERROR message, optionally with a traceback.

    Parameters
    ----------
    logger : _SupportsLog
        Module logger, or a recorder in tests.
    template : str
        Percent-style message template.
    *args : object
        Values interpolated into ``template``.
    exc_info : object | None, optional
        Exception whose traceback femtologging attaches to the record.

    """
    logger.log("ERROR", format_log_message(template, *args), exc_info=exc_info)


def log_exception(logger: _SupportsLog, message: str, exc: BaseException) -> None:
    """Log an already formatted ERROR message with ``exc`` attached."""
    logger.log("ERROR", message, exc_info=exc)


__all__ = [
    "DEFAULT_LOG_LEVEL",
    "LogLevel",
    "configure_logging",
    "format_log_message",
    "get_logger",
    "log_debug",
    "log_error",
    "log_exception",
    "log_info",
    "log_warning",
    "normalize_log_level",
]
