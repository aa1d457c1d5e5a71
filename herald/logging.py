"""femtologging setup and message helpers shared by Herald processes.

The worker, the API, and the CLI all log through ``log_info``,
``log_warning``, and ``log_error``. Each helper interpolates its arguments
before calling the logger, so femtologging only ever sees finished text.

Example:
>>> from herald.logging import get_logger, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "Dispatching trigger for %s", "report-1")

"""

from __future__ import annotations

import enum
import typing as typ

from femtologging import basicConfig, get_logger

DEFAULT_LEVEL = "INFO"


class LogLevel(enum.StrEnum):
    """Levels accepted through ``HERALD_LOG_LEVEL``."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class _SupportsLog(typ.Protocol):
    """Logger surface the helpers rely on."""

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
    """Map raw input onto a :class:`LogLevel` name.

    Parameters
    ----------
    level : str | None
        Value read from the environment or the command line.

    Returns
    -------
    tuple[str, bool]
        The level to apply and ``True`` when ``level`` was missing or
        unknown, in which case the level is ``INFO``.

    """
    candidate = (level or "").strip().upper()
    if candidate in LogLevel.__members__:
        return (candidate, False)
    return (DEFAULT_LEVEL, True)


def configure_logging(level: str, *, force: bool = False) -> tuple[str, bool]:
    """Install femtologging's root handler at ``level``.

    ``force`` replaces handlers configured earlier in the process. The
    return value matches :func:`normalize_log_level`, so callers can warn
    about a rejected level once logging is live.
    """
    applied, rejected = normalize_log_level(level)
    basicConfig(level=applied, force=force)
    return (applied, rejected)


def format_log_message(template: str, *args: object) -> str:
    """Apply percent-style interpolation to ``template``."""
    return template % args


def _log_at(
    level: str,
    logger: _SupportsLog,
    template: str,
    args: tuple[object, ...],
    exc_info: object | None,
) -> None:
    logger.log(
        level,
        format_log_message(template, *args),
        exc_info=exc_info,
        stack_info=False,
    )


def log_info(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Emit ``template % args`` at INFO."""
    _log_at("INFO", logger, template, args, exc_info)


def log_warning(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Emit ``template % args`` at WARNING.

    Used for recoverable conditions such as retries and rejected input.
    """
    _log_at("WARNING", logger, template, args, exc_info)


def log_error(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Emit ``template % args`` at ERROR.

    Parameters
    ----------
    logger : _SupportsLog
        Destination logger, usually from :func:`get_logger`.
    template : str
        Percent-style template.
    *args : object
        Values for the template placeholders.
    exc_info : object | None, optional
        Exception or ``True`` to attach a traceback to the record.

    """
    _log_at("ERROR", logger, template, args, exc_info)


__all__ = [
    "LogLevel",
    "configure_logging",
    "format_log_message",
    "get_logger",
    "log_error",
    "log_info",
    "log_warning",
    "normalize_log_level",
]
