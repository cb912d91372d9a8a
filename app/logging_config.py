from __future__ import annotations

import logging
import os
import re
import sys

_DEFAULT_LOG_LEVEL = "INFO"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"
_RESET = "\x1b[0m"
_LEVEL_COLORS = {
    "DEBUG": "\x1b[36m",
    "INFO": "\x1b[32m",
    "WARNING": "\x1b[33m",
    "ERROR": "\x1b[31m",
    "CRITICAL": "\x1b[1;31m",
}
# Server loggers that otherwise install their own handlers and format.
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

_SECRET_ASSIGNMENT_RE = re.compile(r"(?i)\b([A-Z_]*PASSWORD)(['\"]?\s*[=:]\s*)(['\"]?)[^\s'\",}]+")


class _ColorFormatter(logging.Formatter):
    def __init__(self, *, use_color: bool) -> None:
        super().__init__(fmt=_FORMAT, datefmt=_DATEFMT)
        self._use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        if self._use_color and original in _LEVEL_COLORS:
            record.levelname = f"{_LEVEL_COLORS[original]}{original}{_RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class SecretRedactingFilter(logging.Filter):
    """Mask ``*PASSWORD=value`` fragments, e.g. from kubectl error output."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _SECRET_ASSIGNMENT_RE.sub(r"\1\2\3<redacted>", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _should_use_color() -> bool:
    if os.getenv("NO_COLOR"):
        return False
    return sys.stderr.isatty()


def resolve_level(level: str | int | None = None) -> int:
    if isinstance(level, int):
        return level
    candidate = (level or os.getenv("STACKPRESS_LOG_LEVEL", _DEFAULT_LOG_LEVEL)).upper()
    resolved = logging.getLevelName(candidate)
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


def configure_logging(*, level: str | int | None = None, force: bool = False) -> None:
    root = logging.getLogger()
    resolved_level = resolve_level(level)
    root.setLevel(resolved_level)

    if root.handlers and not force:
        for handler in root.handlers:
            handler.setLevel(resolved_level)
        return

    handler = logging.StreamHandler()
    handler.setLevel(resolved_level)
    handler.setFormatter(_ColorFormatter(use_color=_should_use_color()))
    handler.addFilter(SecretRedactingFilter())
    root.handlers.clear()
    root.addHandler(handler)

    for name in _SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers.clear()
        server_logger.propagate = True
