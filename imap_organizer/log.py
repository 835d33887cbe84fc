"""
Logging setup for the imaporganizer channel.

Every move and mailbox creation is written to the log file and echoed to
standard output.
"""

import logging
import sys
from typing import Optional

LOGGER_NAME = "imaporganizer"

FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger() -> logging.Logger:
    """Return the imaporganizer channel."""
    return logging.getLogger(LOGGER_NAME)


def setup_logging(log_file: Optional[str] = "imaporganizer.log", level: str = "INFO") -> logging.Logger:
    """Configure the imaporganizer channel.

    Args:
        log_file: Path of the operational log, or None to log to stdout only
        level: Logging level name

    Returns:
        The configured logger
    """
    logger = get_logger()
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger
