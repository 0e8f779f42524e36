"""
Logging setup for Debrief.

Library code only ever calls logging.getLogger()/get_null_logger(); handlers
are attached once, by the command line entry point, through setup_logging().
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAME = 'debrief'
NULL_LOGGER_NAME = 'debrief.null'

# Debug log beside the user's home, like the desktop app's --debug flag
DEFAULT_DEBUG_LOG = Path.home() / "debrief-debug.log"

LOG_FORMAT = '[%(asctime)s] %(levelname)s - %(name)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def get_null_logger() -> logging.Logger:
    """
    Get a logger that discards everything.

    Components default to this when no logger is injected, so using the
    recorder as a library never prints anything on its own.
    """
    logger = logging.getLogger(NULL_LOGGER_NAME)
    if not any(isinstance(h, logging.NullHandler) for h in logger.handlers):
        logger.addHandler(logging.NullHandler())
    logger.propagate = False
    return logger


def setup_logging(
    debug: bool = False,
    verbose: bool = False,
    log_file: Optional[Path] = None
) -> logging.Logger:
    """
    Configure the 'debrief' logger.

    Args:
        debug: Also write DEBUG records to a log file
        verbose: Show INFO records on stderr (default is WARNING)
        log_file: Debug log path (default: ~/debrief-debug.log)

    Returns:
        The configured 'debrief' logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # Remove any existing handlers
    logger.handlers = []

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.INFO if verbose else logging.WARNING)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if debug:
        path = Path(log_file) if log_file else DEFAULT_DEBUG_LOG
        file_handler = logging.FileHandler(path, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.debug("Debug logging to %s", path)

    return logger
