"""
This module defines the errors raised while exporting a database view to a CSV file.

Classes:
- ExportError: Base class for every error raised by the export.
- ConfigurationError: Raised when the connection configuration is missing or invalid.
- FileAlreadyExistsError: Raised when the output file exists and may not be overwritten.
- QueryExecutionError: Raised when connecting to the database or running the query fails.
- UnknownExportError: Raised when the output file is missing after a successful write.
- OutputEncodingError: Raised when the CSV text cannot be encoded with the configured encoding.
"""


class ExportError(Exception):
    """Base class for errors raised by the export."""

    pass


class ConfigurationError(ExportError):
    """Raised when the database connection configuration is missing or invalid."""

    pass


class FileAlreadyExistsError(ExportError, FileExistsError):
    """Raised when the output file already exists and overwriting is not allowed."""

    def __init__(self, file_path):
        super().__init__(f"File {file_path} already exists.")
        self.file_path = file_path


class QueryExecutionError(ExportError):
    """
    Raised when the connection or the query fails.

    The underlying driver error is chained as __cause__.

    Attributes:
        sql (str): The query text that was being executed.
        request (ExportRequest): The export request being processed.
    """

    def __init__(self, message, sql, request=None):
        super().__init__(message)
        self.sql = sql
        self.request = request


class UnknownExportError(ExportError):
    """Raised when the output file does not exist after the CSV was written."""

    pass


class OutputEncodingError(ExportError):
    """Raised when the CSV text cannot be written in the configured encoding. No file is left behind."""

    pass
