"""
Logging setup for trackx-crawler.

One "trackx-crawler" logger owns the handlers; every module logs through a
child of it ("trackx-crawler.scheduler", ...), so a single setup call decides
level and destinations for the whole process:
- Console handler on stdout
- Rotating file handler under LOG_DIR
"""

import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

from dotenv import load_dotenv


# Load environment
load_dotenv()

ROOT_LOGGER_NAME = "trackx-crawler"
LOG_FILE_NAME = "crawler.log"

MAX_LOG_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT = 5


def resolve_log_level(log_level: str = None, verbose: bool = False) -> int:
    """DEBUG when verbose, else the given level, else LOG_LEVEL, else INFO."""
    if verbose:
        return logging.DEBUG
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    level = logging.getLevelName(log_level.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    log_level: str = None,
    log_file: str = None,
    verbose: bool = False,
) -> logging.Logger:
    """
    Configure the crawler logger with console and file handlers.

    Calling it again replaces the handlers, so the CLI can apply --verbose
    and the current LOG_DIR once arguments are parsed.

    Args:
        log_level: Log level name (default: from LOG_LEVEL env var or INFO)
        log_file: Log file path (default: {LOG_DIR}/crawler.log)
        verbose: Force DEBUG regardless of log_level

    Returns:
        The configured "trackx-crawler" logger
    """
    numeric_level = resolve_log_level(log_level, verbose)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(numeric_level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_formatter = logging.Formatter(
        "%(levelname)s - %(message)s"
    )

    file_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    if log_file is None:
        logs_dir = Path(os.getenv("LOG_DIR", "logs"))
        logs_dir.mkdir(parents=True, exist_ok=True)
        log_file = logs_dir / LOG_FILE_NAME

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUP_COUNT,
    )
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(file_formatter)
    logger.addHandler(file_handler)

    logger.debug(f"Logging initialized: level={logging.getLevelName(numeric_level)}, file={log_file}")

    return logger


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a module logger.

    Args:
        name: Module name, logged as "trackx-crawler.<name>"

    Returns:
        Logger instance
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)

    # Default setup until the CLI configures logging explicitly
    if not root.handlers:
        setup_logging()

    if not name or name == ROOT_LOGGER_NAME:
        return root
    return root.getChild(name)
