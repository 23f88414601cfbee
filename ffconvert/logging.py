"""Centralized logging configuration for ffconvert"""

import logging
from rich.logging import RichHandler

from .config import LOG_DIR, LOG_LEVEL
from .utils import get_timestamp

def configure_logging(log_level: str = None, file_logging: bool = True) -> None:
    """Central logging configuration for all modules"""
    level = (log_level or LOG_LEVEL).upper()
    logger = logging.getLogger("ffconvert")
    logger.setLevel(logging._nameToLevel.get(level, logging.INFO))

    # Remove existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    # Rich console handler
    console_handler = RichHandler(show_path=False, rich_tracebacks=True)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    if file_logging:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        log_file = LOG_DIR / f"ffconvert_{get_timestamp()}.log"
        file_handler = logging.FileHandler(log_file)
        file_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)
        logger.debug("Log file: %s", log_file)

    # Capture warnings
    logging.captureWarnings(True)
