"""DuckDB-backed analytic backend.

The backend owns one in-memory DuckDB connection and one table. DuckDB
connections must not be used concurrently, so every statement runs under a
single asyncio.Lock and is executed in a worker thread to keep the event loop
responsive.
"""

import asyncio
import os
import tempfile
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import duckdb

from ..core.errors import (
    DataLoadError,
    EmptyColumnError,
    EmptyLoadError,
    InitializationError,
    QueryError,
    UnsupportedTypeError,
)
from ..preprocessing.binning import (
    Bin,
    BinningConfig,
    ColumnStats,
    bins_from_counts,
    check_partition,
    date_edges,
    ordinal_bins_from_top,
    resolve_edges,
)
from ..preprocessing.classify import BinType, classify_sql_type, sql_type_family
from ..query import generator as sql
from ..query.loader import (
    ResolvedSource,
    SourceKind,
    fetch_url,
    read_blob,
    records_from_source,
    resolve_source,
)
from ..utils.logging import get_logger
from .base import Backend

logger = get_logger(__name__)

_NESTED_PREFIXES = ("STRUCT", "MAP", "UNION")


def default_table_name() -> str:
    """Generate a random table name such as ``data_1a2b3c4d5``."""
    return f"data_{uuid.uuid4().hex[:9]}"


@dataclass(frozen=True)
class ColumnInfo:
    """
    Description of one table column.

    Attributes:
        name: Column name
        family: Logical family (see sql_type_family)
        nullable: Whether the column accepts NULL
        db_type: DuckDB type name
    """

    name: str
    family: str
    nullable: bool
    db_type: str


class QueryEngineBackend(Backend):
    """
    Backend that keeps the dataset in a DuckDB table.

    Args:
        table_name_factory: Callable returning the table name; called once
            per backend. Defaults to default_table_name().
        memory_limit: DuckDB memory limit (e.g. '1GB')
        threads: DuckDB worker threads
        fetch_timeout: Timeout in seconds for URL sources
        batch_size: Records per INSERT statement
    """

    def __init__(
        self,
        table_name_factory: Optional[Callable[[], str]] = None,
        memory_limit: str = "1GB",
        threads: int = 4,
        fetch_timeout: float = 30.0,
        batch_size: int = sql.INSERT_BATCH_SIZE,
    ):
        super().__init__()
        self._table_name_factory = table_name_factory or default_table_name
        self._memory_limit = memory_limit
        self._threads = threads
        self._fetch_timeout = fetch_timeout
        self._batch_size = batch_size
        self._conn: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = asyncio.Lock()
        self._table: Optional[str] = None

    @property
    def table_name(self) -> Optional[str]:
        return self._table

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> None:
        """
        Open the in-memory connection.

        Raises:
            InitializationError: If the connection cannot be opened or
                configured. A half-configured connection is closed first.
        """
        if self._conn is not None:
            return
        try:
            conn = await asyncio.to_thread(duckdb.connect, ":memory:")
        except duckdb.Error as exc:
            raise InitializationError(f"Failed to open DuckDB connection: {exc}") from exc
        try:
            conn.execute(f"SET memory_limit={sql.quote_string(str(self._memory_limit))}")
            conn.execute(f"SET threads={int(self._threads)}")
        except duckdb.Error as exc:
            conn.close()
            raise InitializationError(f"Failed to configure DuckDB connection: {exc}") from exc
        self._conn = conn
        logger.info(
            "Opened DuckDB connection (memory_limit=%s, threads=%d)",
            self._memory_limit,
            self._threads,
        )

    # Statement execution

    def _query(
        self, statement: str, params: Optional[Sequence[Any]] = None, stage: str = "query"
    ) -> Tuple[List[Tuple[Any, ...]], List[str]]:
        """Run one statement on the calling thread. Caller holds the lock."""
        if self._conn is None:
            raise InitializationError("DuckDB connection is not open; call open() first")
        logger.debug("[%s] %s", stage, statement)
        try:
            cursor = self._conn.execute(statement, list(params or []))
            if cursor.description is None:
                return [], []
            columns = [c[0] for c in cursor.description]
            return cursor.fetchall(), columns
        except duckdb.Error as exc:
            logger.error("%s query failed: %s", stage, exc)
            raise QueryError(f"{stage} query failed: {exc}") from exc

    async def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run ``func`` in a worker thread while holding the connection lock."""
        async with self._lock:
            return await asyncio.to_thread(func, *args)

    async def execute(
        self, statement: str, params: Optional[Sequence[Any]] = None, stage: str = "query"
    ) -> List[Dict[str, Any]]:
        """
        Run one statement and return its rows as dicts.

        Raises:
            QueryError: If DuckDB rejects the statement
        """
        rows, columns = await self._call(self._query, statement, params, stage)
        return [dict(zip(columns, row)) for row in rows]

    # Loading

    def _require_table(self) -> str:
        if self._table is None or not self.is_loaded:
            raise DataLoadError("No data loaded")
        return self._table

    async def load(self, source: Any, data_format: Optional[str] = None) -> int:
        """
        Replace the table with the content of ``source``.

        The source is validated before the connection is touched. The table
        is dropped before it is recreated; if loading fails or produces no
        rows, no table is left behind.

        Raises:
            UnsupportedSourceError: Unknown source kind or format
            EmptyLoadError: The source produced zero rows
            DataLoadError: Any other load failure
        """
        resolved = resolve_source(source, data_format)
        if self._conn is None:
            raise InitializationError("DuckDB connection is not open; call open() first")
        if self._table is None:
            self._table = self._table_name_factory()

        temp_path = None
        try:
            if resolved.kind == SourceKind.URL:
                temp_path = _write_temp(
                    await fetch_url(resolved.data, self._fetch_timeout), resolved.data_format
                )
            elif resolved.kind == SourceKind.FILE:
                temp_path = _write_temp(await read_blob(resolved.data), resolved.data_format)
            self._row_count = 0
            count = await self._call(self._load_sync, self._table, resolved, temp_path)
        finally:
            if temp_path is not None:
                os.unlink(temp_path)

        self._row_count = count
        logger.info("Loaded %d rows into table '%s'", count, self._table)
        return count

    def _load_sync(self, table: str, resolved: ResolvedSource, temp_path: Optional[str]) -> int:
        self._query(sql.drop_table_sql(table), stage="load")
        try:
            self._create_table(table, resolved, temp_path)
            rows, _ = self._query(sql.count_rows_sql(table), stage="load")
        except QueryError as exc:
            self._query(sql.drop_table_sql(table), stage="load")
            raise DataLoadError(f"Failed to load data into '{table}': {exc}") from exc
        except Exception:
            self._query(sql.drop_table_sql(table), stage="load")
            raise

        count = int(rows[0][0])
        if count == 0:
            self._query(sql.drop_table_sql(table), stage="load")
            raise EmptyLoadError(f"Loading produced no rows for table '{table}'")
        return count

    def _create_table(self, table: str, resolved: ResolvedSource, temp_path: Optional[str]) -> None:
        if resolved.kind in (SourceKind.RECORDS, SourceKind.POLARS):
            records = records_from_source(resolved)
            schema = sql.infer_schema(records)
            self._query(sql.create_table_sql(table, schema), stage="load")
            columns = list(schema)
            for i, statement in enumerate(
                sql.iter_insert_batches(table, columns, records, self._batch_size)
            ):
                logger.debug("Inserting batch %d into '%s'", i + 1, table)
                self._query(statement, stage="insert")
        elif resolved.kind == SourceKind.PANDAS:
            view = f"{table}_source"
            self._conn.register(view, resolved.data)
            try:
                self._query(sql.create_from_view_sql(table, view), stage="load")
            finally:
                self._conn.unregister(view)
        else:
            path = temp_path if temp_path is not None else str(resolved.data)
            self._query(sql.create_from_file_sql(table, path, resolved.data_format), stage="load")

    # Introspection

    async def type_name(self, column: str) -> Optional[str]:
        """DuckDB type name of the first non-null value, None for an all-null column."""
        table = self._require_table()
        rows = await self.execute(sql.type_lookup_sql(table, column), stage="type lookup")
        return rows[0]["col_type"] if rows else None

    async def type_of(self, column: str) -> BinType:
        type_name = await self.type_name(column)
        name = (type_name or "").upper()
        if name.endswith("]") or name.startswith(_NESTED_PREFIXES):
            raise UnsupportedTypeError(f"Column '{column}' has unsupported type {type_name}")
        return classify_sql_type(type_name)

    async def describe_column(self, column: str) -> ColumnInfo:
        """
        Describe ``column`` from the table schema.

        Raises:
            QueryError: If the column does not exist
        """
        table = self._require_table()
        for row in await self.execute(sql.describe_sql(table), stage="describe"):
            if row["column_name"] == column:
                return ColumnInfo(
                    name=column,
                    family=sql_type_family(row["column_type"]),
                    nullable=row["null"] == "YES",
                    db_type=row["column_type"],
                )
        raise QueryError(f"Column '{column}' not found in table '{table}'")

    # Binning

    async def bin(self, column: str, bin_type: BinType, config: BinningConfig) -> List[Bin]:
        table = self._require_table()
        if bin_type == BinType.CONTINUOUS:
            return await self._bin_continuous(table, column, config)
        if bin_type == BinType.DATE:
            return await self._bin_dates(table, column, config)
        if bin_type == BinType.ORDINAL:
            return await self._bin_ordinal(table, column, config)
        raise UnsupportedTypeError(f"No binning rule for type {bin_type!r}")

    async def _edge_counts(
        self, table: str, column: str, edges: Sequence[Any], bin_type: BinType, close_last: bool
    ) -> List[int]:
        statement = sql.edge_counts_sql(table, column, edges, bin_type, close_last)
        counts = [0] * (len(edges) - 1)
        for row in await self.execute(statement, stage="bin counts"):
            counts[int(row["idx"])] = int(row["length"])
        return counts

    async def _bin_continuous(self, table: str, column: str, config: BinningConfig) -> List[Bin]:
        rows = await self.execute(sql.continuous_stats_sql(table, column), stage="column stats")
        row = rows[0]
        stats = ColumnStats(
            count=int(row["n"]),
            min=row["min_val"],
            max=row["max_val"],
            q1=row["q1"],
            q3=row["q3"],
            std=row["std"],
        )
        edges = resolve_edges(config.bin_threshold, stats)
        counts = await self._edge_counts(table, column, edges, BinType.CONTINUOUS, True)
        bins = bins_from_counts(edges, counts, close_last=True)
        check_partition(bins, stats.count)
        return bins

    async def _bin_dates(self, table: str, column: str, config: BinningConfig) -> List[Bin]:
        rows = await self.execute(sql.date_stats_sql(table, column), stage="date stats")
        row = rows[0]
        if not row["n"]:
            raise EmptyColumnError(f"Column '{column}' has no non-null values")
        edges = date_edges(row["min_val"], row["max_val"], config.date_bin_days)
        counts = await self._edge_counts(table, column, edges, BinType.DATE, False)
        bins = bins_from_counts(edges, counts, close_last=False)
        check_partition(bins, int(row["n"]))
        return bins

    async def _bin_ordinal(self, table: str, column: str, config: BinningConfig) -> List[Bin]:
        cap = config.max_ordinal_bins
        top = await self.execute(sql.ordinal_top_sql(table, column, cap), stage="ordinal counts")
        overflow = await self.execute(
            sql.ordinal_overflow_sql(table, column, cap - 1), stage="ordinal overflow"
        )
        summary = overflow[0]
        return ordinal_bins_from_top(
            [(row["key"], row["length"]) for row in top],
            cap,
            int(summary["n_distinct"]),
            summary["other_length"],
            summary["total"],
        )

    # Selection

    async def records_matching(
        self,
        column: str,
        bin_type: BinType,
        selected: Sequence[Bin],
        bins: Sequence[Bin],
    ) -> List[Dict[str, Any]]:
        if not selected:
            return []
        table = self._require_table()
        statement, params = sql.records_matching_sql(table, column, bin_type, selected, bins)
        return await self.execute(statement, params, stage="selection")

    async def close(self) -> None:
        """Drop the table and close the connection. Safe to call repeatedly."""
        if self._conn is None:
            await super().close()
            return
        try:
            if self._table is not None:
                await self._call(self._query, sql.drop_table_sql(self._table), None, "close")
        finally:
            conn, self._conn = self._conn, None
            conn.close()
            await super().close()
            logger.info("Closed DuckDB connection")


def _write_temp(content: bytes, data_format: str) -> str:
    """Write ``content`` to a named temporary file and return its path."""
    fd, path = tempfile.mkstemp(prefix="binsight_", suffix=f".{data_format}")
    with os.fdopen(fd, "wb") as handle:
        handle.write(content)
    return path
