# syncroom/core/logging.py
"""
Logging for the SyncRoom service.

Everything goes to stdout as one line per record. The gateway logs room
joins and disconnects at INFO and dropped frames at WARNING; the media
resolver logs upstream failures. Third-party loggers that would drown
those out are capped in NOISY_LOGGERS.
"""

import logging
import os
import sys
from typing import Dict


DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# logger name -> highest verbosity allowed
NOISY_LOGGERS: Dict[str, int] = {
    "httpx": logging.WARNING,    # one line per SoundCloud request
    "httpcore": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.WARNING,  # every /rooms poll otherwise
}


def setup_logging() -> None:
    """
    Configure logging once at application start.

    The level comes from LOG_LEVEL (INFO when unset or unknown). When a
    server such as uvicorn already installed root handlers, only the level
    is adjusted.
    """
    log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, log_level_name, logging.INFO)

    root_logger = logging.getLogger()
    if root_logger.handlers:
        root_logger.setLevel(level)
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))

    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    for name, cap in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(cap)


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger for a syncroom module, e.g. ``get_logger(__name__)``."""
    return logging.getLogger(name)
