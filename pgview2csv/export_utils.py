"""
This module exports the contents of a database view to a CSV file.

The whole view is read into memory before anything is written, so a failed query never leaves a
partial file behind.

Classes:
- ExportRequest: What to export and where to.
- ExportResult: Confirmation of a completed export.

Functions:
- build_view_query: Build the SELECT statement for a view, with an optional LIMIT.
- write_view_to_csv: Select all data from a view and write it to a CSV file.
"""
import logging
import os
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from pgview2csv.connection_utils import ConnectionLike, get_db_engine, log_search_path
from pgview2csv.csv_utils import fetch_query_to_dataframe
from pgview2csv.exceptions import (
    FileAlreadyExistsError,
    QueryExecutionError,
    UnknownExportError,
)
from pgview2csv.file_utils import remove_file, save_dataframe_to_csv

DEFAULT_ENCODING = "utf-8-sig"


@dataclass(frozen=True)
class ExportRequest:
    """
    A request to export one view.

    Attributes:
        connection (str or ConnectionDescriptor): Connection string, SQLAlchemy URL or descriptor.
        view_name (str): The view to select from. May include a schema prefix. Not escaped.
        output_file_path (str): Where the CSV file is written.
        row_limit (int, optional): Maximum number of rows. None or 0 exports every row.
        overwrite_existing (bool): Delete the output file first if it already exists.
        encoding (str): Text encoding of the output file.
    """

    connection: ConnectionLike
    view_name: str
    output_file_path: str
    row_limit: Optional[int] = None
    overwrite_existing: bool = False
    encoding: str = DEFAULT_ENCODING


@dataclass(frozen=True)
class ExportResult:
    """The file written by an export, and how many data rows it holds."""

    file_path: str
    row_count: int


def build_view_query(view_name, row_limit=None):
    """
    Build the query that selects every column of a view.

    The view name is inserted as is, so it must come from a trusted source.
    """
    sql = f"SELECT * FROM {view_name}"
    if row_limit is not None and row_limit > 0:
        sql = f"{sql} LIMIT {row_limit}"
    return sql


def _describe(request):
    return (
        f"viewName={request.view_name}, filePath={request.output_file_path}, "
        f"limit={request.row_limit}, deleteFileIfExists={request.overwrite_existing}"
    )


def write_view_to_csv(request: ExportRequest, logger=None) -> ExportResult:
    """
    Select all data from a database view and write it to a CSV file.

    Args:
        request (ExportRequest): The export to perform.
        logger (logging.Logger): Logger instance to log information during the process.

    Returns:
        ExportResult: The path of the written file and the number of data rows.

    Raises:
        FileAlreadyExistsError: If the file exists and request.overwrite_existing is False.
        OSError: If the existing file cannot be deleted or the new file cannot be written.
        OutputEncodingError: If the CSV text cannot be encoded with request.encoding.
        QueryExecutionError: If connecting to the database or running the query fails.
        UnknownExportError: If the file does not exist after it was written.
    """
    logger = logger or logging.getLogger(__name__)
    file_path = request.output_file_path

    if os.path.exists(file_path):
        if not request.overwrite_existing:
            logger.error(f"File {file_path} already exists. {_describe(request)}.")
            raise FileAlreadyExistsError(file_path)
        remove_file(file_path, logger)

    sql = build_view_query(request.view_name, request.row_limit)
    logger.debug(f"Query: {sql}")

    engine = None
    try:
        engine = get_db_engine(request.connection)
        with engine.connect() as conn:
            log_search_path(conn, request.connection, logger)
            df = fetch_query_to_dataframe(conn, sql)
    except (SQLAlchemyError, ImportError) as e:
        logger.error(f"Error: {e} for sql:{sql}. {_describe(request)}.")
        raise QueryExecutionError(
            f"Query against {request.view_name} failed: {e}", sql, request
        ) from e
    finally:
        if engine is not None:
            engine.dispose()

    logger.info(f"{len(df)} rows read from {request.view_name}")

    row_count = save_dataframe_to_csv(df, file_path, request.encoding, logger)

    if not os.path.isfile(file_path):
        logger.error(f"Output file missing after write. {_describe(request)}.")
        raise UnknownExportError(
            f"Unknown error while generating CSV output for {request.view_name} to {file_path}."
        )

    logger.info(f"CSV output for {request.view_name} successfully written to {file_path}.")
    return ExportResult(file_path=file_path, row_count=row_count)
