"""Logging configuration for hushtype."""

import logging
import sys
from pathlib import Path

LOG_DIR = Path.home() / ".hushtype" / "logs"
LOG_FILE = LOG_DIR / "hushtype.log"


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Set up logging on the root logger.

    Modules log through ``logging.getLogger(__name__)``, so handlers live on
    the root.

    Args:
        level: Console logging level (default: INFO)

    Returns:
        The configured root logger
    """
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    logger.addHandler(console_handler)

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)
    except OSError as e:
        logger.warning(f"Could not set up file logging: {e}")

    return logger
