"""Logging configuration for the preprocessor.

Standard output carries the book handed back to mdBook, so log records only
ever go to a file (or nowhere).
"""
from __future__ import annotations

import configparser
import logging
import logging.config
from pathlib import Path
from typing import Any, Optional

import structlog

DEFAULT_LOG_FILE = "output.log"
DEFAULT_FORMAT = "%(levelname)s - %(message)s"

_installed_handler: Optional[logging.Handler] = None


class LoggingSetupError(Exception):
    """Raised when a user supplied logging configuration cannot be applied."""


_PROCESSORS = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
    structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "logger", "event"]),
]

# Silent until configure_logging or the host application installs handlers.
logging.getLogger(__package__).addHandler(logging.NullHandler())


def _install_root_handler(handler: logging.Handler, level: int) -> None:
    global _installed_handler
    root = logging.getLogger()
    if _installed_handler is not None:
        root.removeHandler(_installed_handler)
        _installed_handler.close()
    root.addHandler(handler)
    root.setLevel(level)
    _installed_handler = handler


def configure_logging(enabled: bool, config_file: Optional[str] = None) -> None:
    """Attach the handlers that receive plantbook's log records.

    Args:
        enabled: When false every record is discarded.
        config_file: Optional ``logging.config.fileConfig`` INI file used
            instead of the default ``output.log`` file handler.

    Raises:
        LoggingSetupError: the configuration file is missing or invalid.
    """
    if not enabled:
        _install_root_handler(logging.NullHandler(), logging.WARNING)
        return

    if config_file:
        path = Path(config_file)
        if not path.is_file():
            raise LoggingSetupError(f"logging configuration file not found: {path}")
        try:
            logging.config.fileConfig(str(path), disable_existing_loggers=False)
        except (configparser.Error, KeyError, ValueError, RuntimeError, OSError) as exc:
            raise LoggingSetupError(f"invalid logging configuration {path}: {exc}") from exc
        return

    try:
        handler = logging.FileHandler(DEFAULT_LOG_FILE, encoding="utf-8")
    except OSError as exc:
        raise LoggingSetupError(f"failed to open log file {DEFAULT_LOG_FILE}: {exc}") from exc
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    _install_root_handler(handler, logging.DEBUG)


def get_logger(name: str, **context: Any):
    """Return a structlog logger bound to the stdlib logger *name*, independent of structlog.configure."""
    return structlog.wrap_logger(
        logging.getLogger(name),
        processors=_PROCESSORS,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        cache_logger_on_first_use=False,
        **context,
    )
