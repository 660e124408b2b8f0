"""
Logging configuration for msgintel.

stdout carries rendered extraction output (JSON, CSV, ...), so every log
record goes to stderr and, optionally, to a rotating file. dictConfig is used
so the CLI, the API and the tests can reconfigure as often as they like.

Environment Variables:
    LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL (default INFO).
    MSGINTEL_LOG_FILE: Default for the log_file argument.

Usage:
    from msgintel.logger_config import setup_logging
    setup_logging()
    setup_logging(level=logging.DEBUG, log_file="msgintel.log")
"""

import logging
import logging.config
import os
from typing import Any, Dict, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOG_FILE_MAX_BYTES = 10_485_760  # 10 MB
LOG_FILE_BACKUPS = 5

# Per-request chatter from the HTTP stack; only shown at DEBUG
CHATTY_LOGGERS = ("httpx", "uvicorn.access")


def get_log_level() -> int:
    """
    Read the log level from LOG_LEVEL.

    Returns:
        Logging level constant, INFO when unset or unrecognised.
    """
    name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _handlers(level: int, log_file: Optional[str]) -> Dict[str, Dict[str, Any]]:
    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "standard",
            "stream": "ext://sys.stderr",
        },
    }
    if log_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "standard",
            "filename": log_file,
            "maxBytes": LOG_FILE_MAX_BYTES,
            "backupCount": LOG_FILE_BACKUPS,
        }
    return handlers


def setup_logging(
    level: Optional[int] = None,
    format_string: Optional[str] = None,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure the root logger for a CLI or API run.

    Args:
        level: Logging level. If None, reads LOG_LEVEL (default INFO).
        format_string: Optional custom format string.
        log_file: Optional path for a rotating log file. If None, reads
                  MSGINTEL_LOG_FILE.
    """
    if level is None:
        level = get_log_level()
    if log_file is None:
        log_file = os.getenv("MSGINTEL_LOG_FILE") or None

    handlers = _handlers(level, log_file)
    chatty_level = level if level <= logging.DEBUG else max(level, logging.WARNING)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": format_string or DEFAULT_FORMAT,
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "handlers": handlers,
            "loggers": {name: {"level": chatty_level} for name in CHATTY_LOGGERS},
            "root": {"level": level, "handlers": list(handlers)},
        }
    )
