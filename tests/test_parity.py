"""Both backends must bin the same data identically."""

import polars as pl
import pytest

from binsight.backends.array import ArrayBackend
from binsight.preprocessing.binning import BinningConfig
from binsight.preprocessing.classify import BinType


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "column,config",
    [
        ("age", BinningConfig(bin_threshold=10)),
        ("age", BinningConfig(bin_threshold=(20, 30, 40))),
        ("age", BinningConfig()),
        ("education", BinningConfig(max_ordinal_bins=3)),
        ("education", BinningConfig()),
        ("joined", BinningConfig()),
        ("active", BinningConfig()),
    ],
)
async def test_backends_agree(query_backend, people_records, column, config):
    array = ArrayBackend()
    await array.load(people_records)
    await query_backend.load(people_records)

    bin_type = await array.type_of(column)
    assert await query_backend.type_of(column) == bin_type

    expected = await array.bin(column, bin_type, config)
    actual = await query_backend.bin(column, bin_type, config)
    assert actual == expected

    selected = expected[:2]
    array_records = await array.records_matching(column, bin_type, selected, expected)
    query_records = await query_backend.records_matching(column, bin_type, selected, actual)
    assert [r["id"] for r in query_records] == [r["id"] for r in array_records]


@pytest.mark.asyncio
@pytest.mark.parametrize("config", [BinningConfig(bin_threshold=2), BinningConfig()])
async def test_non_finite_csv_values_agree(query_backend, temp_data_dir, config):
    path = temp_data_dir / "values.csv"
    path.write_text("id,value\n1,1.0\n2,nan\n3,3.0\n4,5.0\n5,inf\n6,4.0\n")

    array = ArrayBackend()
    await array.load(pl.read_csv(path).with_columns(pl.col("value").cast(pl.Float64)))
    await query_backend.load(str(path))

    assert await query_backend.type_of("value") == BinType.CONTINUOUS
    expected = await array.bin("value", BinType.CONTINUOUS, config)
    actual = await query_backend.bin("value", BinType.CONTINUOUS, config)
    assert actual == expected
    assert sum(b.length for b in actual) == 4
    assert actual[0].x0 == 1.0
    assert actual[-1].x1 == 5.0

    array_records = await array.records_matching("value", BinType.CONTINUOUS, expected, expected)
    query_records = await query_backend.records_matching("value", BinType.CONTINUOUS, actual, actual)
    assert [r["id"] for r in query_records] == [r["id"] for r in array_records] == [1, 3, 4, 6]
