"""Logger"""
import logging

from .environment import get_log_level

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'

LOGGER = logging.getLogger('lighterdash')


def configure_logging(level=None):
    """Attach a stderr handler to the package logger once and set its level."""
    if not LOGGER.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        LOGGER.addHandler(handler)
    numeric = logging.getLevelName(level or get_log_level())
    LOGGER.setLevel(numeric if isinstance(numeric, int) else logging.WARNING)
    return LOGGER
