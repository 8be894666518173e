"""Logger setup for wledlink"""

import logging
import os
import sys
from .. import config


def setup_logging(level: str = None, log_file: str = None):
    """Setup logging configuration

    Library modules only create module loggers; the host application calls
    this once at startup.
    """
    level = level or config.LOG_LEVEL
    log_file = log_file or config.LOG_FILE

    # Create logger
    logger = logging.getLogger()
    logger.setLevel(level)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    # Format
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler
    try:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        logger.warning(f"Could not create file handler: {e}")

    logger.info("Logging configured")
