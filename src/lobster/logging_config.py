"""Structured logging configuration for the engine.

Level and format come from :class:`lobster.config.EngineSettings`
(``LOBSTER_LOG_LEVEL``, ``LOBSTER_LOG_FORMAT``) unless passed explicitly.

Usage:
    from lobster.logging_config import configure_logging
    configure_logging()  # Call once at application startup
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from lobster.config import EngineSettings

NAMESPACE = "lobster"

# Attributes every LogRecord carries; anything else was passed via ``extra=``.
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


def _with_source(record: logging.LogRecord) -> bool:
    return record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format.

        Returns:
            JSON string with log data.
        """
        payload: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if _with_source(record):
            payload["source"] = f"{record.pathname}:{record.lineno}:{record.funcName}"
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in vars(record).items() if k not in _RESERVED_ATTRS}
        if extra:
            payload["extra"] = extra
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """``TIMESTAMP LEVEL [logger] message`` with optional ANSI colors.

    DEBUG and ERROR lines also carry ``(file:line)``.
    """

    LEVEL_COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        level = f"{record.levelname:8s}"
        if self.use_colors:
            level = f"{self.LEVEL_COLORS.get(record.levelname, '')}{level}{self.RESET}"

        name = record.name.removeprefix(f"{NAMESPACE}.")
        line = f"{timestamp} {level} [{name}] {record.getMessage()}"
        if _with_source(record):
            line += f" ({record.filename}:{record.lineno})"
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(
    settings: EngineSettings | None = None,
    level: int | None = None,
    format_type: str | None = None,
    use_colors: bool = True,
) -> None:
    """Install a single stderr handler on the ``lobster`` logger namespace.

    Args:
        settings: Settings to read level/format from. Defaults to get_settings().
        level: Explicit log level, overrides settings.
        format_type: ``text`` or ``json``, overrides settings.
        use_colors: Whether to color text output (only applied on a TTY).
    """
    if level is None or format_type is None:
        if settings is None:
            from lobster.config import get_settings

            settings = get_settings()
        if level is None:
            level = settings.log_level_number
        if format_type is None:
            format_type = settings.log_format.value

    handler = logging.StreamHandler(sys.stderr)
    if format_type == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter(use_colors=use_colors))

    root = logging.getLogger(NAMESPACE)
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)
    root.propagate = False

    # Route uvicorn's access log through the same handler when serving HTTP
    access = logging.getLogger("uvicorn.access")
    access.handlers.clear()
    access.addHandler(handler)
    access.setLevel(level)
    access.propagate = False

    root.debug(
        "Logging configured: level=%s, format=%s", logging.getLevelName(level), format_type
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the ``lobster`` namespace.

    Args:
        name: Module name (typically __name__).

    Returns:
        Logger instance.
    """
    if not name.startswith(NAMESPACE):
        name = f"{NAMESPACE}.{name}"
    return logging.getLogger(name)
