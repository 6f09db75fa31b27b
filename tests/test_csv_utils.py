"""Unit tests for CSV serialization of query results."""

from __future__ import annotations

import datetime
import io
import uuid
from decimal import Decimal

import pandas as pd
import pytest
from sqlalchemy import create_engine

from pgview2csv.csv_utils import (
    dataframe_to_csv_string,
    fetch_query_to_dataframe,
    format_value,
    records_to_dataframe,
    write_dataframe_to_csv,
)


# ---------------------------------------------------------------------------
# Whole results
# ---------------------------------------------------------------------------


class TestDataframeToCsvString:
    def test_scenario(self) -> None:
        df = records_to_dataframe([{"id": 1, "name": "a"}, {"id": 2, "name": "b,c"}])
        assert dataframe_to_csv_string(df) == '"id","name"\r\n"1","a"\r\n"2","b,c"\r\n'

    def test_empty_result_has_no_header(self) -> None:
        assert dataframe_to_csv_string(records_to_dataframe([])) == ""

    def test_empty_result_with_columns_has_no_header(self) -> None:
        df = pd.DataFrame([], columns=["id", "name"], dtype=object)
        assert dataframe_to_csv_string(df) == ""

    def test_header_follows_first_row_order(self) -> None:
        df = records_to_dataframe([{"b": 1, "a": 2, "c": 3}, {"b": 4, "a": 5, "c": 6}])
        assert dataframe_to_csv_string(df).split("\r\n")[0] == '"b","a","c"'

    def test_duplicate_column_names_keep_their_position(self) -> None:
        df = pd.DataFrame([("x", "y")], columns=["v", "v"], dtype=object)
        assert dataframe_to_csv_string(df) == '"v","v"\r\n"x","y"\r\n'

    def test_null_is_an_empty_quoted_field(self) -> None:
        df = records_to_dataframe([{"id": 1, "note": None}])
        assert dataframe_to_csv_string(df) == '"id","note"\r\n"1",""\r\n'

    def test_quotes_are_doubled(self) -> None:
        df = records_to_dataframe([{"quote": 'say "hi"'}])
        assert dataframe_to_csv_string(df) == '"quote"\r\n"say ""hi"""\r\n'

    def test_line_breaks_stay_inside_the_field(self) -> None:
        df = records_to_dataframe([{"text": "first\nsecond"}])
        assert dataframe_to_csv_string(df) == '"text"\r\n"first\nsecond"\r\n'

    def test_nan_is_not_written_as_null(self) -> None:
        df = records_to_dataframe([{"x": float("nan")}, {"x": None}])
        assert dataframe_to_csv_string(df) == '"x"\r\n"NaN"\r\n""\r\n'

    def test_integers_with_nulls_are_not_promoted_to_float(self) -> None:
        df = records_to_dataframe([{"n": 1}, {"n": None}, {"n": 3}])
        assert dataframe_to_csv_string(df) == '"n"\r\n"1"\r\n""\r\n"3"\r\n'


class TestWriteDataframeToCsv:
    def test_returns_row_count(self) -> None:
        stream = io.StringIO(newline="")
        df = records_to_dataframe([{"id": i} for i in range(4)])
        assert write_dataframe_to_csv(df, stream) == 4
        assert stream.getvalue().count("\r\n") == 5

    def test_writes_to_a_path_with_encoding(self, tmp_path) -> None:
        path = tmp_path / "out.csv"
        df = records_to_dataframe([{"name": "café"}])
        assert write_dataframe_to_csv(df, str(path), encoding="utf-8") == 1
        assert path.read_bytes() == "\"name\"\r\n\"café\"\r\n".encode("utf-8")

    def test_writes_nothing_for_empty_result(self) -> None:
        stream = io.StringIO(newline="")
        assert write_dataframe_to_csv(records_to_dataframe([]), stream) == 0
        assert stream.getvalue() == ""


# ---------------------------------------------------------------------------
# Single values
# ---------------------------------------------------------------------------


class TestFormatValue:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, ""),
            (float("nan"), "NaN"),
            (float("inf"), "Infinity"),
            (float("-inf"), "-Infinity"),
            (Decimal("NaN"), "NaN"),
            ("text", "text"),
            ("", ""),
            (42, "42"),
            (-7, "-7"),
            (1.5, "1.5"),
            (1234567.25, "1234567.25"),
            (Decimal("1234567.50"), "1234567.50"),
            (True, "True"),
            (False, "False"),
            (datetime.datetime(2024, 1, 2, 3, 4, 5), "2024-01-02T03:04:05"),
            (datetime.date(2024, 1, 2), "2024-01-02"),
            (datetime.time(13, 30), "13:30:00"),
            (b"\x01\xff", "\\x01ff"),
            (memoryview(b"\x00"), "\\x00"),
            ([1, 2, None], "[1,2,null]"),
            ({"a": "é"}, '{"a":"é"}'),
            (uuid.UUID("12345678-1234-5678-1234-567812345678"), "12345678-1234-5678-1234-567812345678"),
        ],
    )
    def test_value(self, value, expected) -> None:
        assert format_value(value) == expected

    def test_timezone_aware_datetime(self) -> None:
        value = datetime.datetime(2024, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc)
        assert format_value(value) == "2024-01-02T03:04:05+00:00"


# ---------------------------------------------------------------------------
# Reading from a database
# ---------------------------------------------------------------------------


class TestFetchQueryToDataframe:
    def test_columns_and_values(self, sqlite_url) -> None:
        engine = create_engine(sqlite_url)
        try:
            with engine.connect() as conn:
                df = fetch_query_to_dataframe(conn, "SELECT * FROM v_people")
        finally:
            engine.dispose()
        assert list(df.columns) == ["id", "name", "score"]
        assert len(df) == 10
        assert dataframe_to_csv_string(df).split("\r\n")[1:4] == [
            '"1","person 1","1.5"',
            '"2","person 2","3.0"',
            '"3","person 3",""',
        ]

    def test_empty_view(self, sqlite_url) -> None:
        engine = create_engine(sqlite_url)
        try:
            with engine.connect() as conn:
                df = fetch_query_to_dataframe(conn, "SELECT * FROM v_empty")
        finally:
            engine.dispose()
        assert list(df.columns) == ["id", "name"]
        assert df.empty
