"""
Logging setup for toolchain_probe.

Library modules only call ``logging.getLogger(__name__)``. The CLI calls
:func:`setup_logging` once to attach handlers to the ``toolchain_probe``
package logger: a console handler on stderr (reports own stdout) and an
optional file handler that records DEBUG detail such as skipped strategies.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional, TextIO


LOGGER_NAME = "toolchain_probe"
ENV_DEBUG = "TOOLCHAIN_PROBE_DEBUG"

CONSOLE_FORMAT = "%(levelname_colored)s: %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_logger: Optional[logging.Logger] = None


def effective_level(level: str = "INFO", verbose: bool = False, quiet: bool = False) -> int:
    """Numeric console level after --verbose, --quiet and TOOLCHAIN_PROBE_DEBUG."""
    if verbose or os.environ.get(ENV_DEBUG) == "1":
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    return numeric


def _wants_color(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR") or os.environ.get("TOOLCHAIN_PROBE_COLOR") == "0":
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


class ColoredFormatter(logging.Formatter):
    """
    Console formatter exposing ``levelname_colored``: the lower-cased level
    name, wrapped in an ANSI color when enabled.
    """

    COLORS = {
        logging.DEBUG: "\033[2m",        # Dim
        logging.INFO: "\033[34m",        # Blue
        logging.WARNING: "\033[33m",     # Yellow
        logging.ERROR: "\033[31m",       # Red
        logging.CRITICAL: "\033[1;31m",  # Bold red
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str = CONSOLE_FORMAT, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        tag = record.levelname.lower()
        if self.use_colors:
            tag = f"{self.COLORS.get(record.levelno, '')}{tag}{self.RESET}"
        record.levelname_colored = tag
        return super().format(record)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    verbose: bool = False,
    quiet: bool = False,
    propagate: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Attach handlers to the package logger, replacing earlier ones.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Also write every record, DEBUG included, to this file
        verbose: Console shows DEBUG
        quiet: Console shows warnings and errors only
        propagate: Pass records on to the root logger (pytest caplog)
        stream: Console stream (default: sys.stderr)

    Returns:
        The ``toolchain_probe`` logger
    """
    global _logger

    console_level = effective_level(level, verbose, quiet)

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(stream or sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(ColoredFormatter(use_colors=_wants_color(console.stream)))
    logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        logger.addHandler(file_handler)

    # The file handler only sees what the logger lets through
    logger.setLevel(logging.DEBUG if log_file else console_level)
    logger.propagate = propagate

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """Package logger, configured with defaults on first use."""
    global _logger
    if _logger is None:
        _logger = setup_logging()
    return _logger
