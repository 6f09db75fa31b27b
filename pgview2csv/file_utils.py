"""
This module provides utilities for loading the INI configuration and for managing the CSV output file.

Functions:
- load_config: Load and return configuration from a specified INI file.
- get_export_settings: Return the export settings from the configuration, with defaults filled in.
- remove_file: Delete a file, logging the failure before re-raising it.
- save_dataframe_to_csv: Save a DataFrame to a quoted CSV file, removing any partial file on failure.
"""
import configparser
import logging
import os

from pgview2csv.csv_utils import write_dataframe_to_csv
from pgview2csv.exceptions import OutputEncodingError

# Used for any setting missing from config.ini
DEFAULT_SETTINGS = {
    "encoding": "utf-8-sig",
    "application_name": "pgview2csv",
    "log_level": "INFO",
    "log_path": "",
}


def load_config(file_path='config.ini'):
    """Load and return configuration from a specified INI file. A missing file gives an empty configuration."""
    config = configparser.ConfigParser()
    config.read(file_path, encoding="utf-8")
    return config


def get_export_settings(config):
    """
    Return the settings used by the export, falling back to DEFAULT_SETTINGS.

    Args:
        config (ConfigParser): Configuration loaded by load_config.

    Returns:
        dict: encoding, application_name, log_level and log_path.
    """
    return {
        "encoding": config.get("Export", "encoding", fallback=DEFAULT_SETTINGS["encoding"]),
        "application_name": config.get(
            "Export", "application_name", fallback=DEFAULT_SETTINGS["application_name"]
        ),
        "log_level": config.get("Logging", "log_level", fallback=DEFAULT_SETTINGS["log_level"]),
        "log_path": config.get("Paths", "log_path", fallback=DEFAULT_SETTINGS["log_path"]),
    }


def remove_file(file_path, logger=None):
    """Delete the file at file_path. Raises OSError if it cannot be deleted."""
    logger = logger or logging.getLogger(__name__)
    try:
        os.remove(file_path)
    except OSError as e:
        logger.error(f"Failed to delete existing file {file_path}: {e}")
        raise
    logger.info(f"Existing file {file_path} removed.")


def _discard_partial_file(file_path, logger):
    if os.path.exists(file_path):
        os.remove(file_path)
        logger.info(f"Partially written file {file_path} removed.")


def save_dataframe_to_csv(df, file_path, encoding="utf-8-sig", logger=None):
    """
    Save the DataFrame to a fully quoted CSV file at the path provided.

    An empty DataFrame produces an empty file (no header, no byte order mark). If the write fails,
    any partially written file is removed before the error is raised.

    Returns:
        int: The number of data rows written.

    Raises:
        OutputEncodingError: If the text cannot be encoded with encoding.
        OSError: If the file cannot be written.
    """
    logger = logger or logging.getLogger(__name__)
    try:
        if df.empty:
            open(file_path, "wb").close()
            return 0
        return write_dataframe_to_csv(df, file_path, encoding=encoding)
    except (UnicodeError, LookupError) as e:
        logger.error(f"Failed to encode {file_path} as {encoding}: {e}")
        _discard_partial_file(file_path, logger)
        raise OutputEncodingError(f"Cannot write {file_path} as {encoding}: {e}") from e
    except OSError as e:
        logger.error(f"Failed to write {file_path}: {e}")
        _discard_partial_file(file_path, logger)
        raise
