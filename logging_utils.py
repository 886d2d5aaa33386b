"""Logging setup shared by the qrscan entrypoints.

Every entrypoint calls ``add_logging_args`` on its parser and then
``configure_logging`` with the parsed flags. Per-frame loggers stay at INFO
under a single ``-v`` so debug output is not flooded at camera frame rate.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

# verbose - quiet, clamped to [-2, 1]
_OFFSET_LEVELS = {
    1: logging.DEBUG,
    0: logging.INFO,
    -1: logging.WARNING,
    -2: logging.ERROR,
}

# Loggers that emit per-frame chatter at DEBUG; only shown with -vv
FRAME_LOGGERS = ("scan.coordinator", "scan.session")


def add_logging_args(parser) -> None:
    """Add the shared --log-level/-v/-q/--log-file options to a parser."""
    group = parser.add_argument_group("logging")
    group.add_argument(
        "--log-level",
        choices=tuple(LOG_LEVELS),
        help="Set log verbosity explicitly (overrides -v/-q)",
    )
    group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="More output (-v for debug, -vv to include per-frame detail)",
    )
    group.add_argument(
        "-q", "--quiet",
        action="count",
        default=0,
        help="Less output (-q for warnings, -qq for errors only)",
    )
    group.add_argument(
        "--log-file",
        metavar="PATH",
        help="Also write log records to this file",
    )


def resolve_log_level(
    log_level: str | None = None,
    verbose: int = 0,
    quiet: int = 0,
) -> int:
    """Numeric root log level for the given flags."""
    if log_level:
        return LOG_LEVELS[log_level.lower()]
    offset = max(-2, min(1, verbose - quiet))
    return _OFFSET_LEVELS[offset]


def resolve_frame_log_level(level: int, verbose: int = 0, log_level: str | None = None) -> int:
    """Level for per-frame loggers: DEBUG only when explicitly asked for."""
    if level > logging.DEBUG:
        return level
    if log_level or verbose >= 2:
        return logging.DEBUG
    return logging.INFO


def configure_logging(
    log_level: str | None = None,
    verbose: int = 0,
    quiet: int = 0,
    log_file: str | Path | None = None,
) -> int:
    """Configure root logging and return the active level.

    Reconfigures existing root handlers instead of adding a second stdout
    handler when called more than once in a process.
    """
    level = resolve_log_level(log_level=log_level, verbose=verbose, quiet=quiet)
    frame_level = resolve_frame_log_level(level, verbose=verbose, log_level=log_level)
    for name in FRAME_LOGGERS:
        logging.getLogger(name).setLevel(frame_level)

    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        for handler in root.handlers:
            handler.setLevel(level)
    else:
        logging.basicConfig(
            level=level,
            format=LOG_FORMAT,
            datefmt=LOG_DATE_FORMAT,
            stream=sys.stdout,
        )

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        root.addHandler(file_handler)

    return level
