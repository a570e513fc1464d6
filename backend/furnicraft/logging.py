"""structlog setup for the FurniCraft API.

Console output in development, JSON lines everywhere else. When LOG_FILE
is set every entry is also appended to that file so upload/analysis runs
can be inspected after the fact.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Any

import structlog

from furnicraft.config import settings


def _warn(reason: str) -> None:
    # structlog is not usable while it is being configured
    print(f"WARNING: file logging disabled ({reason})", file=sys.stderr)


class _MirrorLogger:
    """Hands each rendered entry to a stdout PrintLogger and a file PrintLogger.

    The file side is dropped on its first failure.
    """

    def __init__(self, stdout: structlog.PrintLogger, mirror: structlog.PrintLogger | None):
        self._stdout = stdout
        self._mirror = mirror

    def msg(self, message: str) -> None:
        self._stdout.msg(message)
        if self._mirror is None:
            return
        try:
            self._mirror.msg(message)
        except (OSError, ValueError) as exc:
            self._mirror = None
            _warn(f"write failed: {exc}")

    log = debug = info = warn = warning = msg
    err = error = critical = exception = fatal = msg


class _MirrorLoggerFactory:
    """Logger factory for LOG_FILE: one shared append handle, one logger per call."""

    def __init__(self, path: str) -> None:
        self._file: IO[str] | None = None
        try:
            self._file = open(path, "a")  # noqa: SIM115
        except OSError as exc:
            _warn(f"cannot open {path!r}: {exc}")

    def __call__(self, *args: Any) -> _MirrorLogger:
        mirror = structlog.PrintLogger(self._file) if self._file is not None else None
        return _MirrorLogger(structlog.PrintLogger(sys.stdout), mirror)


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging() -> None:
    """Configure structlog from settings (environment, LOG_LEVEL, LOG_FILE)."""
    if settings.environment == "development":
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    factory: Any
    if settings.log_file:
        factory = _MirrorLoggerFactory(settings.log_file)
    else:
        factory = structlog.PrintLoggerFactory()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_resolve_level(settings.log_level)),
        context_class=dict,
        logger_factory=factory,
        cache_logger_on_first_use=True,
    )
