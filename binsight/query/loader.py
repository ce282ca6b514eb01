"""Data source resolution for the query-engine backend.

A data source can be:
- a list of uniform records (dicts)
- a pandas DataFrame, a polars DataFrame or LazyFrame
- a file-like object or raw bytes holding parquet, csv or json
- a local path (str or pathlib.Path)
- an http(s) URL, fetched and then treated as a file

resolve_source() classifies the source and its format without touching any
backend, so unsupported input is rejected before a table is dropped.
"""

import asyncio
import inspect
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx
import pandas as pd
import polars as pl

from ..core.errors import DataLoadError, EmptyLoadError, UnsupportedSourceError
from ..utils.logging import get_logger
from .generator import READERS

logger = get_logger(__name__)

_SUFFIX_FORMATS = {
    ".parquet": "parquet",
    ".pq": "parquet",
    ".csv": "csv",
    ".json": "json",
    ".ndjson": "json",
    ".jsonl": "json",
}


class SourceKind(str, Enum):
    RECORDS = "records"
    PANDAS = "pandas"
    POLARS = "polars"
    FILE = "file"
    PATH = "path"
    URL = "url"


@dataclass(frozen=True)
class ResolvedSource:
    """
    A classified data source.

    Attributes:
        kind: Source kind
        data: The source object (records list, DataFrame, file object,
            bytes, Path or URL string)
        data_format: 'parquet', 'csv' or 'json' for FILE/PATH/URL sources
        name: File name used for file-backed sources
    """

    kind: SourceKind
    data: Any
    data_format: Optional[str] = None
    name: Optional[str] = None


def _format_from_name(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    return _SUFFIX_FORMATS.get(PurePosixPath(name).suffix.lower())


def _resolve_format(data_format: Optional[str], name: Optional[str]) -> str:
    fmt = data_format or _format_from_name(name)
    if fmt is None:
        raise UnsupportedSourceError(
            f"Cannot determine the format of '{name}'. "
            f"Pass data_format as one of {sorted(READERS)}"
        )
    if fmt not in READERS:
        raise UnsupportedSourceError(
            f"Unsupported file format '{fmt}'. Supported formats: {sorted(READERS)}"
        )
    return fmt


def resolve_source(source: Any, data_format: Optional[str] = None) -> ResolvedSource:
    """
    Classify a data source.

    Args:
        source: Any supported source (see module docstring)
        data_format: Explicit format for file-backed sources; inferred from
            the file name or URL path when omitted

    Returns:
        ResolvedSource

    Raises:
        UnsupportedSourceError: Unknown source kind or file format
        EmptyLoadError: Empty record list or DataFrame
    """
    if isinstance(source, pd.DataFrame):
        if source.empty:
            raise EmptyLoadError("Empty DataFrame provided")
        return ResolvedSource(SourceKind.PANDAS, source)

    if isinstance(source, pl.LazyFrame):
        source = source.collect()
    if isinstance(source, pl.DataFrame):
        if source.is_empty():
            raise EmptyLoadError("Empty DataFrame provided")
        return ResolvedSource(SourceKind.POLARS, source)

    if isinstance(source, (list, tuple)):
        if not source:
            raise EmptyLoadError("Empty data array provided")
        if not all(isinstance(record, Mapping) for record in source):
            raise UnsupportedSourceError("Record sources must be a sequence of mappings")
        return ResolvedSource(SourceKind.RECORDS, list(source))

    if isinstance(source, str):
        parsed = urlparse(source)
        if parsed.scheme in ("http", "https"):
            name = PurePosixPath(parsed.path).name or "data"
            return ResolvedSource(
                SourceKind.URL, source, _resolve_format(data_format, name), name
            )
        source = Path(source)

    if isinstance(source, Path):
        return ResolvedSource(
            SourceKind.PATH, source, _resolve_format(data_format, source.name), source.name
        )

    if isinstance(source, (bytes, bytearray, memoryview)):
        return ResolvedSource(SourceKind.FILE, bytes(source), _resolve_format(data_format, None))

    if hasattr(source, "read"):
        name = getattr(source, "name", None) or getattr(source, "filename", None)
        name = Path(str(name)).name if name else None
        return ResolvedSource(SourceKind.FILE, source, _resolve_format(data_format, name), name)

    raise UnsupportedSourceError(f"Unsupported data source of type {type(source).__name__}")


def records_from_pandas(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Convert a pandas DataFrame to records with missing values as None."""
    return df.astype(object).where(df.notna(), None).to_dict(orient="records")


def records_from_source(resolved: ResolvedSource) -> List[Dict[str, Any]]:
    """Records for in-memory sources (records, pandas, polars)."""
    if resolved.kind == SourceKind.RECORDS:
        return resolved.data
    if resolved.kind == SourceKind.PANDAS:
        return records_from_pandas(resolved.data)
    if resolved.kind == SourceKind.POLARS:
        return resolved.data.to_dicts()
    raise UnsupportedSourceError(
        f"Source kind '{resolved.kind.value}' cannot be used as in-memory records"
    )


async def read_blob(source: Any) -> bytes:
    """
    Read the full content of bytes or a (sync or async) file-like object.

    Blocking ``read()`` calls run in a worker thread.
    """
    if isinstance(source, bytes):
        return source
    if inspect.iscoroutinefunction(source.read):
        content = await source.read()
    else:
        content = await asyncio.to_thread(source.read)
    if inspect.isawaitable(content):
        content = await content
    if isinstance(content, str):
        content = content.encode("utf-8")
    return bytes(content)


async def fetch_url(url: str, timeout: float = 30.0) -> bytes:
    """
    Download ``url`` and return its body.

    Raises:
        DataLoadError: On network errors or non-2xx responses
    """
    logger.info("Fetching data source %s", url)
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        raise DataLoadError(f"Failed to load URL data: {exc}") from exc
    return response.content
