"""Logging setup for explorer-sync."""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from .constants import LOG_LEVEL_ENV


def setup_logging(log_level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger: console output on stdout, plus a file if requested.

    Args:
        log_level: Level name, defaults to $EXPLORER_SYNC_LOG_LEVEL or INFO
        log_file: Optional path of a log file

    Returns:
        The root logger
    """
    log_level = log_level or os.environ.get(LOG_LEVEL_ENV, "INFO")

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return logger
