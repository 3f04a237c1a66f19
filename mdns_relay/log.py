import logging
import sys

from .config import parse_log_level

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def to_logging_level(level: str) -> int:
    return LEVELS[parse_log_level(level)]


def setup_logging(level: str = "info", stream=None):
    """Send relay logs to stderr at the given debug/info/warn/error level."""
    logging.basicConfig(
        level=to_logging_level(level),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=stream or sys.stderr,
        force=True,
    )
