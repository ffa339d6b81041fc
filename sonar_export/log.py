"""Logging setup for the ``sonar_export`` package."""

import logging

from sonar_export.config import LoggingSettings

LOGGER_NAME = "sonar_export"

_LEVELS = {
    "error":   logging.ERROR,
    "warn":    logging.WARNING,
    "warning": logging.WARNING,
    "info":    logging.INFO,
    "debug":   logging.DEBUG,
}

CONSOLE_FORMAT = "%(levelname)s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def level_for(name: str) -> int:
    return _LEVELS.get(name.lower(), logging.INFO)


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Send package logs to stderr and, if configured, to ``settings.file``.

    Calling it again replaces the handlers installed by a previous call.
    """
    logger = logging.getLogger(LOGGER_NAME)
    level = level_for(settings.level)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    if settings.file:
        file_handler = logging.FileHandler(settings.file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger
