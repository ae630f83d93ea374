"""Logging configuration."""

import logging
import sys

from migration_monitor.config import get_settings

# Client libraries that log every request at INFO/DEBUG; one round touches all of them.
_NOISY_LOGGERS = ("botocore", "aiobotocore", "aioboto3", "pymongo", "httpx", "hpack", "urllib3")


def setup_logging(level: str | None = None) -> None:
    """Configure process-wide logging for the monitor.

    Args:
        level: Overrides the configured ``log_level`` when given.
    """
    settings = get_settings()
    root_level = (level or settings.log_level).upper()

    logging.basicConfig(
        level=root_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Keep per-request client chatter out unless we are debugging the monitor itself
    if root_level != "DEBUG":
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        logging.Logger: Configured logger instance.
    """
    return logging.getLogger(name)
