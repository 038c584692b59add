# chatrooms/core/logging.py

import logging
import os
import sys


LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"

# Libraries that log every request, query or broker round-trip at INFO
NOISY_LOGGERS = (
    "google.cloud.pubsub_v1",
    "google.api_core",
    "redis",
    "sqlalchemy.engine",
    "multipart",
    "uvicorn.access",
)


def setup_logging(level: str | None = None) -> None:
    """
    Configure the root logger for the API process.

    ``level`` falls back to the LOG_LEVEL env var, then INFO. Output goes to
    stdout. When Uvicorn has already installed handlers only the level is
    applied.
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module logger, e.g. ``logger = get_logger(__name__)``."""
    return logging.getLogger(name)
