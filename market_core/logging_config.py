"""
Logging setup for market_core.
- One stderr handler on the ``market_core`` logger: timestamp, level, logger name, message.
- MARKET_CORE_LOG_LEVEL from env (default INFO).
"""
from __future__ import annotations

import logging
import os
import sys

PACKAGE_LOGGER = "market_core"


def configure_logging(level: str | None = None) -> logging.Logger:
    """Configure the package logger. Safe to call more than once."""
    level_name = (level or os.environ.get("MARKET_CORE_LOG_LEVEL") or "INFO").upper()
    resolved = getattr(logging, level_name, logging.INFO)

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.handlers = []
    logger.addHandler(handler)
    logger.setLevel(resolved)
    # Keep records out of the root handler so they are not printed twice.
    logger.propagate = False
    return logger
