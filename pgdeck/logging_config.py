"""
Centralized logging configuration for pgdeck.

Console output is always enabled; a rotating log file is added when
PGDECK_LOG_FILE is set. PGDECK_ENV=production switches to a format that
includes the source location of every record. PGDECK_LOG_SQL echoes the
statements pgdeck runs against user tables on the ``pgdeck.sql`` logger.
"""

import asyncio
import functools
import logging
import logging.config
import os
import sys
import time
from typing import Dict, Any, Optional


class ContextFilter(logging.Filter):
    """Attach fixed key/value pairs to every record passing through a logger."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.context = context or {}

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.context.items():
            setattr(record, key, value)
        return True


# Levels for loggers of the libraries pgdeck runs on.
LIBRARY_LOG_LEVELS = {
    "uvicorn": "INFO",
    "uvicorn.access": "WARNING",
    "fastapi": "INFO",
    "asyncpg": "WARNING",
}

_TRUTHY = ("1", "true", "yes", "on")


def get_log_level() -> str:
    return os.getenv("PGDECK_LOG_LEVEL", "INFO").upper()


def sql_echo_enabled() -> bool:
    """PGDECK_LOG_SQL turns on logging of every data statement and its parameters."""
    return os.getenv("PGDECK_LOG_SQL", "").strip().lower() in _TRUTHY


def get_log_format() -> str:
    env = os.getenv("PGDECK_ENV", "development").lower()

    if env == "production":
        return "%(asctime)s | %(name)s | %(levelname)s | %(message)s | %(pathname)s:%(lineno)d"
    return "%(asctime)s | %(name)-24s | %(levelname)-8s | %(message)s"


def get_logging_config() -> Dict[str, Any]:
    """Build the dictConfig mapping from the current environment."""
    log_level = get_log_level()
    handlers = ["console"]

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": get_log_format(),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": "%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "standard",
                "stream": sys.stdout,
            },
        },
        "loggers": {
            "pgdeck": {
                "level": log_level,
                "handlers": handlers,
                "propagate": False,
            },
            # Statements propagate to the pgdeck handlers.
            "pgdeck.sql": {
                "level": "INFO" if sql_echo_enabled() else "WARNING",
            },
        },
        "root": {
            "level": "WARNING",
            "handlers": ["console"],
        },
    }

    for name, level in LIBRARY_LOG_LEVELS.items():
        config["loggers"][name] = {"level": level, "handlers": ["console"], "propagate": False}

    log_file = os.getenv("PGDECK_LOG_FILE")
    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "detailed",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,  # 10MB
            "backupCount": 5,
        }
        handlers.append("file")

    return config


def setup_logging() -> None:
    """Apply the logging configuration to the running process."""
    logging.config.dictConfig(get_logging_config())

    logger = logging.getLogger("pgdeck.logging")
    logger.info("Logging configured with level: %s", get_log_level())

    if os.getenv("PGDECK_LOG_FILE"):
        logger.info("File logging enabled: %s", os.getenv("PGDECK_LOG_FILE"))
    if sql_echo_enabled():
        logger.info("SQL statement logging enabled")


def get_logger(name: str, context: Optional[Dict[str, Any]] = None) -> logging.Logger:
    """
    Get a logger inside the pgdeck hierarchy.

    Args:
        name: Logger name (typically __name__ of the module)
        context: Optional context dictionary to add to all log records

    Returns:
        Configured logger instance
    """
    if not name.startswith("pgdeck"):
        if name == "__main__":
            name = "pgdeck.main"
        else:
            name = f"pgdeck.{name}"

    logger = logging.getLogger(name)

    if context:
        logger.addFilter(ContextFilter(context))

    return logger


def log_performance(logger: logging.Logger, operation: str):
    """
    Decorator to log the duration of an operation.

    Works on both plain functions and coroutine functions. Failures are
    logged with their duration and re-raised unchanged.

    Args:
        logger: Logger instance to use
        operation: Description of the operation being timed
    """

    def decorator(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                duration = time.perf_counter() - start_time
                logger.error("Operation '%s' failed after %.3fs: %s", operation, duration, e)
                raise
            logger.debug("Operation '%s' completed in %.3fs", operation, time.perf_counter() - start_time)
            return result

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration = time.perf_counter() - start_time
                logger.error("Operation '%s' failed after %.3fs: %s", operation, duration, e)
                raise
            logger.debug("Operation '%s' completed in %.3fs", operation, time.perf_counter() - start_time)
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


# Initialize logging when module is imported
if not logging.getLogger().handlers:
    setup_logging()
