"""
Logging configuration for the ffpkg CLI.

The root click command calls ``resolve_level`` and then
``setup_logging`` once per process. Modules log through
``logging.getLogger(__name__)``; only loggers under ``ffpkg`` are raised
above WARNING, so library chatter stays out of install output.

Level precedence::

    --debug / --verbose / --quiet  >  FFPKG_LOG_LEVEL  >  WARNING

``FFPKG_LOG_FILE`` adds a file handler. Installs usually run under sudo,
and the log file is the durable trail of what fetch, verify and install
did; ``FFPKG_LOG_FILE_LEVEL`` sets its threshold separately.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Mapping, TextIO

PACKAGE_LOGGER = "ffpkg"

# level threshold → (format, datefmt); first match wins
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
)

_FILE_FORMAT = "%(asctime)s %(levelname)-5s pid=%(process)d %(name)s: %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    env: Mapping[str, str] | None = None,
) -> str:
    """Pick the console level name from CLI flags and the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    env = os.environ if env is None else env
    return env.get("FFPKG_LOG_LEVEL", "WARNING")


def _console_formatter(level: int) -> logging.Formatter:
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            return logging.Formatter(fmt, datefmt=datefmt)
    return logging.Formatter("%(message)s")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Install the console (and optional file) handler on the root logger.

    Args:
        level: Console level name.
        log_file: Optional path of a log file to append to.
        log_file_level: Level name for the file; defaults to ``level``.
        stream: Console stream (default: stderr).
    """
    console_level = _parse_level(level)
    handlers: list[logging.Handler] = []

    console = logging.StreamHandler(stream or sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(_console_formatter(console_level))
    handlers.append(console)

    package_level = console_level
    if log_file:
        file_level = _parse_level(log_file_level or level)
        package_level = min(package_level, file_level)

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers[:] = handlers
    root.setLevel(max(package_level, logging.WARNING))
    logging.getLogger(PACKAGE_LOGGER).setLevel(package_level)

    # A closed console stream must not crash an install half way
    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Level name → numeric level; unknown names mean WARNING."""
    numeric = logging.getLevelName(level.upper()) if level else logging.WARNING
    return numeric if isinstance(numeric, int) else logging.WARNING
