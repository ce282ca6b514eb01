"""Pytest configuration and shared fixtures for binsight tests."""

import datetime
import shutil
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List

import polars as pl
import pytest
import pytest_asyncio

from binsight.backends.query_engine import QueryEngineBackend

AGES = [19, 25, 28, 29, 32, 35, 38, 41, 45, 52]
EDUCATION = [
    "Bachelor",
    "Master",
    "Bachelor",
    "PhD",
    "Master",
    "Bachelor",
    "High School",
    "Master",
    "Bachelor",
    "Master",
]


@pytest.fixture
def temp_data_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for data files."""
    tmpdir = tempfile.mkdtemp(prefix="binsight_test_")
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def table_name_factory() -> Callable[[], str]:
    """Deterministic table names: t_1, t_2, ..."""
    counter = {"n": 0}

    def factory() -> str:
        counter["n"] += 1
        return f"t_{counter['n']}"

    return factory


@pytest.fixture
def people_records() -> List[Dict[str, Any]]:
    """Ten people with a numeric, a categorical and a date column."""
    start = datetime.date(2024, 1, 1)
    return [
        {
            "id": i + 1,
            "age": age,
            "education": education,
            "joined": start + datetime.timedelta(days=(i * 2) % 7),
            "active": i % 3 != 0,
        }
        for i, (age, education) in enumerate(zip(AGES, EDUCATION))
    ]


@pytest.fixture
def people_frame(people_records) -> pl.DataFrame:
    """The people records as a polars DataFrame."""
    return pl.from_dicts(people_records)


@pytest.fixture
def sparse_records() -> List[Dict[str, Any]]:
    """Records with nulls, including an all-null column."""
    return [
        {"value": 1.5, "label": "a", "empty": None},
        {"value": None, "label": None, "empty": None},
        {"value": 3.0, "label": "b", "empty": None},
        {"value": 4.5, "label": "a", "empty": None},
    ]


@pytest_asyncio.fixture
async def query_backend(table_name_factory):
    """An open DuckDB backend, closed after the test."""
    backend = QueryEngineBackend(table_name_factory=table_name_factory, threads=1)
    await backend.open()
    yield backend
    await backend.close()


@pytest.fixture
def write_csv(temp_data_dir) -> Callable[[str, pl.DataFrame], Path]:
    """Write a DataFrame to a CSV file in the temporary directory."""

    def write(name: str, frame: pl.DataFrame) -> Path:
        path = temp_data_dir / name
        frame.write_csv(path)
        return path

    return write
