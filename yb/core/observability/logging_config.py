"""
Logging configuration — how yb reports progress on stderr.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    --debug / --verbose / --quiet  >  YB_LOG_LEVEL  >  WARNING

Console lines carry a short level label (``INFO``, ``WARN``...) so
installer progress and build warnings can be told apart from the
output of the commands being run. The label is coloured unless
``CLICOLOR=0`` and dropped entirely with ``YB_NO_PRETTY_OUTPUT=1``.

Optional file output via YB_LOG_FILE / YB_LOG_FILE_LEVEL.
"""

from __future__ import annotations

import logging
import os
import sys

import click

from yb.core.config.settings import env_flag

# ── Format strings ──────────────────────────────────────────────

_FMT_CONSOLE = "%(message)s"

# --debug: where each message came from
_FMT_DEBUG = "%(name)s:%(lineno)d: %(message)s"

_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s: %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

_LEVEL_NAMES = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class LevelFormatter(logging.Formatter):
    """Prefix each record with a short, optionally coloured level label."""

    _STYLES = (
        (logging.ERROR, "ERROR", "red"),
        (logging.WARNING, "WARN", "yellow"),
        (logging.INFO, "INFO", "cyan"),
        (logging.NOTSET, "DEBUG", "cyan"),
    )

    def __init__(self, fmt: str = _FMT_CONSOLE, show_levels: bool = True, color: bool = True):
        super().__init__(fmt)
        self.show_levels = show_levels
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if not self.show_levels:
            return message
        label, color = next((name, fg) for level, name, fg in self._STYLES if record.levelno >= level)
        if self.color:
            label = click.style(label, fg=color)
        return f"{label} {message}"


def setup_logging(
    level: str | None = None,
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure logging for the yb process.

    Args:
        level: Level name from the CLI flags; ``warn`` is accepted.
            Falls back to ``YB_LOG_LEVEL``, then WARNING.
        log_file: Path to a log file (default: ``YB_LOG_FILE``).
        log_file_level: Level for the log file
            (default: ``YB_LOG_FILE_LEVEL``, then the console level).
    """
    numeric_level = _parse_level(level or os.environ.get("YB_LOG_LEVEL"))
    log_file = log_file or os.environ.get("YB_LOG_FILE") or None
    log_file_level = log_file_level or os.environ.get("YB_LOG_FILE_LEVEL") or None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(
        LevelFormatter(
            _FMT_DEBUG if numeric_level <= logging.DEBUG else _FMT_CONSOLE,
            show_levels=not env_flag("YB_NO_PRETTY_OUTPUT"),
            color=_color_enabled(),
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    effective_level = numeric_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)
    logging.raiseExceptions = False


def _color_enabled() -> bool:
    return os.environ.get("CLICOLOR", "1").strip().lower() not in ("0", "false", "no", "off")


def _parse_level(level: str | None) -> int:
    """Convert a level name to its numeric constant; unknown names mean WARNING."""
    if not level:
        return logging.WARNING
    return _LEVEL_NAMES.get(level.strip().lower(), logging.WARNING)
