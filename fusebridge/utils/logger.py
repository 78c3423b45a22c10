"""Logging helpers for fusebridge"""

import logging
import sys
from datetime import datetime

import click
from pythonjsonlogger import jsonlogger

ROOT_LOGGER = 'fusebridge'
DEFAULT_LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'
JSON_LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'

LEVEL_STYLES = {
    logging.CRITICAL: {'fg': 'black', 'bg': 'red'},
    logging.ERROR: {'fg': 'red'},
    logging.WARNING: {'fg': 'yellow'},
    logging.INFO: {},
    logging.DEBUG: {'fg': 'bright_black'},
}


def get_logger(name: str) -> logging.Logger:
    """Get a module logger below the fusebridge hierarchy."""
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + '.'):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


class ColoredFormatter(logging.Formatter):
    """Colors each record by level and stamps it with millisecond precision."""

    def __init__(self, fmt=DEFAULT_LOG_FORMAT, color=True):
        super().__init__(fmt)
        self.color = color

    def formatTime(self, record, datefmt=None):
        created = datetime.fromtimestamp(record.created)
        return created.strftime('%Y-%m-%d %H:%M:%S') + f'.{int(record.msecs):03d}'

    def format(self, record):
        text = super().format(record)
        style = LEVEL_STYLES.get(record.levelno, {})
        if self.color and style:
            return click.style(text, **style)
        return text


def setup_logging(level='INFO', fmt: str = None, json_format: bool = False,
                  stream=None) -> logging.Logger:
    """
    Configure the fusebridge logger hierarchy.

    Args:
        level: Level name or number
        fmt: Log record format (default: DEFAULT_LOG_FORMAT)
        json_format: Emit one JSON object per record instead of colored text
        stream: Output stream (default: stderr)

    Returns:
        The configured fusebridge root logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    stream = stream or sys.stderr
    handler = logging.StreamHandler(stream)
    if json_format:
        handler.setFormatter(jsonlogger.JsonFormatter(fmt or JSON_LOG_FORMAT))
    else:
        color = hasattr(stream, 'isatty') and stream.isatty()
        handler.setFormatter(ColoredFormatter(fmt or DEFAULT_LOG_FORMAT, color=color))

    logger = logging.getLogger(ROOT_LOGGER)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
