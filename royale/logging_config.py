"""
Logging setup shared by the API and the scripts.
Modules log through logging.getLogger(__name__); this only wires the root handler.
"""
from __future__ import annotations

import logging
import sys

from royale.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str | None = None) -> logging.Logger:
    """Attach one console handler to the 'royale' logger. Safe to call more than once."""
    logger = logging.getLogger("royale")
    logger.setLevel(level or LOG_LEVEL)
    if logger.handlers:
        return logger
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger
