"""
This module configures logging for the export runs.

Functions:
- setup_logger: Sets up the logger configuration.
- finalize_logger: Logs the end of the run and closes the handlers.
"""

import logging
import os
from datetime import datetime

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def setup_logger(name, log_file, log_level="DEBUG", log_dir=None):
    """
    Set up a logger that logs to both a file and the console (stderr).

    Args:
        name (str): The name of the logger.
        log_file (str): The name of the log file.
        log_level (str): The console log level ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL').
        log_dir (str): Directory for the log file. Defaults to a 'logs' directory one level above this package.

    Returns:
        logging.Logger: Configured logger instance.
    """
    logs_dir = log_dir or os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "logs")
    os.makedirs(logs_dir, exist_ok=True)

    log_file_path = os.path.join(logs_dir, log_file)

    logger = logging.getLogger(name)

    # Check if the logger is already set up to avoid duplicates
    if not logger.handlers:

        # Unknown level names fall back to INFO
        level = getattr(logging, str(log_level).upper(), logging.INFO)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

        formatter = logging.Formatter(LOG_FORMAT)

        file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)  # Always log everything to the file
        file_handler.setFormatter(formatter)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)

        logger.addHandler(file_handler)
        logger.addHandler(console_handler)

        logger.info(
            "======== Start of Run: {timestamp} =======".format(
                timestamp=datetime.now()
            )
        )

    return logger


def finalize_logger(logger):
    """Logs the end time and closes all handlers for the logger."""
    logger.info(
        "======== End of Run: {timestamp} =======".format(timestamp=datetime.now())
    )
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
