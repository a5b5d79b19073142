"""
Logging setup for trajkit applications.

Library modules only call ``logging.getLogger(__name__)``; nothing is
printed until an application calls ``configure_logging``.
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from ..core.types import ConfigurationError

LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

ROOT_LOGGER_NAME = "trajkit"


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Plain single-line records."""

    def __init__(self, fmt: str | None = None):
        super().__init__(
            fmt=fmt or "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: str | Path | None = None,
) -> logging.Logger:
    """
    Attach a console (and optionally file) handler to the trajkit logger.

    Calling again replaces the handlers installed by a previous call.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_format: Emit JSON records instead of text
        log_file: Also write records to this file

    Returns:
        The configured package logger

    Raises:
        ConfigurationError: If the level is unknown
    """
    level = level.upper()
    if level not in LEVEL_MAP:
        raise ConfigurationError(f"Invalid log level: {level}. Valid levels: {list(LEVEL_MAP)}")

    formatter = JsonFormatter() if json_format else TextFormatter()
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(LEVEL_MAP[level])

    for handler in list(package_logger.handlers):
        if getattr(handler, "_trajkit_handler", False):
            package_logger.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(LEVEL_MAP[level])
        handler.setFormatter(formatter)
        handler._trajkit_handler = True
        package_logger.addHandler(handler)

    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Logger under the trajkit namespace."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
