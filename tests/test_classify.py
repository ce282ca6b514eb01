"""Tests for column type classification."""

import datetime
from decimal import Decimal

import polars as pl
import pytest

from binsight.preprocessing.classify import (
    BinType,
    classify_dtype,
    classify_sql_type,
    sql_type_family,
)
from binsight.query import generator as sql


class TestClassifyDtype:
    """Tests for polars dtype classification."""

    @pytest.mark.parametrize(
        "dtype,expected",
        [
            (pl.Int64, BinType.CONTINUOUS),
            (pl.UInt8, BinType.CONTINUOUS),
            (pl.Float32, BinType.CONTINUOUS),
            (pl.Date, BinType.DATE),
            (pl.Datetime("us"), BinType.DATE),
            (pl.Boolean, BinType.ORDINAL),
            (pl.String, BinType.ORDINAL),
            (pl.Null, BinType.ORDINAL),
        ],
    )
    def test_dtypes(self, dtype, expected):
        assert classify_dtype(dtype) == expected


class TestClassifySqlType:
    """Tests for DuckDB type name classification."""

    @pytest.mark.parametrize(
        "name", ["TINYINT", "SMALLINT", "INTEGER", "BIGINT", "HUGEINT", "UBIGINT", "DOUBLE", "FLOAT", "DECIMAL(18,3)"]
    )
    def test_numeric_families_are_continuous(self, name):
        assert classify_sql_type(name) == BinType.CONTINUOUS

    @pytest.mark.parametrize("name", ["DATE", "TIMESTAMP", "TIMESTAMP WITH TIME ZONE", "TIMESTAMP_NS"])
    def test_temporal_families_are_dates(self, name):
        assert classify_sql_type(name) == BinType.DATE

    @pytest.mark.parametrize("name", ["VARCHAR", "BOOLEAN", "UUID", None, ""])
    def test_everything_else_is_ordinal(self, name):
        assert classify_sql_type(name) == BinType.ORDINAL

    def test_case_insensitive(self):
        assert classify_sql_type("bigint") == BinType.CONTINUOUS

    @pytest.mark.parametrize(
        "name,family",
        [
            ("BIGINT", "bigint"),
            ("INTEGER", "integer"),
            ("DOUBLE", "number"),
            ("DECIMAL(10,2)", "number"),
            ("DECIMAL(10,0)", "integer"),
            ("BOOLEAN", "boolean"),
            ("DATE", "date"),
            ("VARCHAR", "string"),
            ("BLOB", "other"),
        ],
    )
    def test_type_families(self, name, family):
        assert sql_type_family(name) == family


class TestBackendsClassifyAlike:
    """The dtype polars infers and the column type DuckDB is given classify alike."""

    @pytest.mark.parametrize(
        "values",
        [
            [1, 2, 3],
            [1.5, None, 2.5],
            ["a", "b"],
            [True, False],
            [datetime.date(2024, 1, 1), datetime.date(2024, 1, 2)],
            [Decimal("1.5"), Decimal("2.5")],
        ],
    )
    def test_agreement(self, values):
        records = [{"x": v} for v in values]
        frame = pl.from_dicts(records, infer_schema_length=None)
        assert classify_sql_type(sql.infer_schema(records)["x"]) == classify_dtype(frame.schema["x"])
