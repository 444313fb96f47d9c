"""Process-wide logging helpers that tag every message with its level."""

import logging
import sys

PREFIX = "[restic-backup-checker] "
LOGGER_NAME = "resticwatch"
DATE_FORMAT = "%Y/%m/%d %H:%M:%S"

_logger = logging.getLogger(LOGGER_NAME)
_logger.setLevel(logging.DEBUG)


class _ConsoleHandler(logging.StreamHandler):
    """Stderr handler installed by :func:`init`."""


def init() -> None:
    """Send log output to stderr with the application prefix, time and caller location."""
    for handler in list(_logger.handlers):
        if isinstance(handler, _ConsoleHandler):
            _logger.removeHandler(handler)
    handler = _ConsoleHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            PREFIX + "%(asctime)s %(filename)s:%(lineno)d: %(message)s",
            datefmt=DATE_FORMAT,
        )
    )
    _logger.addHandler(handler)
    _logger.setLevel(logging.DEBUG)


def _log(level: int, tag: str, message: str, args: tuple) -> None:
    # stacklevel 3 points the record at the caller of info()/error()/...
    _logger.log(level, f"{tag}: {message}", *args, stacklevel=3)


def info(message: str, *args) -> None:
    """Log an informational message."""
    _log(logging.INFO, "INFO", message, args)


def error(message: str, *args) -> None:
    """Log an error message."""
    _log(logging.ERROR, "ERROR", message, args)


def debug(message: str, *args) -> None:
    """Log a debug message."""
    _log(logging.DEBUG, "DEBUG", message, args)


def fatal(message: str, *args) -> None:
    """Log a fatal message and exit with status 1."""
    _log(logging.CRITICAL, "FATAL", message, args)
    raise SystemExit(1)