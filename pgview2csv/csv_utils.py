"""
This module converts query results into fully quoted CSV text.

A query result is held in a pandas DataFrame of object dtype, so values keep the Python types the
database driver returned. Every field, header included, is wrapped in double quotes and values are
formatted without any locale dependent rules.

Functions:
- fetch_query_to_dataframe: Run a query and return every row as a DataFrame.
- records_to_dataframe: Build a DataFrame from a list of row mappings.
- format_value: Convert a single value to its CSV text.
- write_dataframe_to_csv: Write a DataFrame as quoted CSV to a file path or an open text stream.
- dataframe_to_csv_string: Return a DataFrame as a quoted CSV string.
"""
import csv
import datetime
import io
import json
import math

import pandas as pd
from sqlalchemy import text

LINE_TERMINATOR = "\r\n"


def fetch_query_to_dataframe(conn, sql):
    """
    Fetch all rows of a query and return them as a DataFrame.

    Args:
        conn: An active SQLAlchemy connection.
        sql (str): The query text.

    Returns:
        DataFrame: One row per result row, columns in the order the query returned them.
    """
    result = conn.execute(text(sql))
    columns = list(result.keys())
    rows = [tuple(row) for row in result.fetchall()]

    # object dtype keeps driver values as is (no int to float promotion when a column has nulls)
    return pd.DataFrame(rows, columns=columns, dtype=object)


def records_to_dataframe(records):
    """Build an object dtype DataFrame from a list of row mappings. The first row sets the column order."""
    records = list(records)
    if not records:
        return pd.DataFrame(dtype=object)
    columns = list(records[0].keys())
    rows = [tuple(record[column] for column in columns) for record in records]
    return pd.DataFrame(rows, columns=columns, dtype=object)


def _format_float(value):
    """PostgreSQL spelling of the special float values, str() for the rest."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return str(value)


def format_value(value):
    """
    Convert a value to its CSV text.

    Nulls become an empty string, dates and times use ISO 8601, binary values use the PostgreSQL
    hex form and arrays or json values are written as compact JSON. A float NaN is data, not a null,
    and is written as NaN.
    """
    if value is None or value is pd.NaT or value is pd.NA:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    if isinstance(value, (list, dict)):
        return json.dumps(value, default=str, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def write_dataframe_to_csv(df, path_or_buf, encoding=None):
    """
    Write a DataFrame as fully quoted CSV with pandas.

    Nothing is written for an empty DataFrame, not even the header.

    Args:
        df (DataFrame): The query result.
        path_or_buf: A file path or a text stream opened with newline='' (a file or io.StringIO).
        encoding (str): Text encoding, used only when path_or_buf is a path.

    Returns:
        int: The number of data rows written.
    """
    if df.empty:
        return 0

    df.map(format_value).to_csv(
        path_or_buf,
        index=False,
        header=[format_value(column) for column in df.columns],
        quoting=csv.QUOTE_ALL,
        lineterminator=LINE_TERMINATOR,
        encoding=encoding,
    )
    return len(df)


def dataframe_to_csv_string(df):
    """Return a DataFrame as a quoted CSV string, or an empty string if it has no rows."""
    buffer = io.StringIO(newline="")
    write_dataframe_to_csv(df, buffer)
    return buffer.getvalue()
