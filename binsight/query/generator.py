"""SQL text generation for the DuckDB backend.

Every function here is pure: it receives a table name, a column name and
plain Python values and returns SQL text (and bind parameters where values
come from the user). Identifiers are always quoted; literal values that are
inlined (bin edges, batched inserts) are rendered by sql_literal().
"""

import datetime
import math
import numbers
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from ..preprocessing.binning import Bin, as_datetime
from ..preprocessing.classify import BinType

INSERT_BATCH_SIZE = 1000

READERS = {
    "parquet": "read_parquet",
    "csv": "read_csv_auto",
    "json": "read_json_auto",
}


def qident(name: str) -> str:
    """Safely quote identifiers for DuckDB SQL."""
    return '"' + str(name).replace('"', '""') + '"'


def quote_string(value: str) -> str:
    """Quote a string literal, doubling embedded single quotes."""
    return "'" + value.replace("'", "''") + "'"


def _iso(moment: datetime.datetime) -> str:
    return as_datetime(moment).isoformat(sep=" ")


def sql_literal(value: Any) -> str:
    """
    Render a Python value as a DuckDB literal.

    None and NaN become NULL, strings are quoted with embedded quotes
    doubled, datetimes become ISO-8601 TIMESTAMP literals (aware values are
    converted to UTC), dates become DATE literals; numbers are passed through.
    """
    if value is None:
        return "NULL"
    if isinstance(value, (bool, np.bool_)):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if math.isnan(value):
            return "NULL"
        if math.isinf(value):
            return "'inf'::DOUBLE" if value > 0 else "'-inf'::DOUBLE"
        return repr(float(value))
    if isinstance(value, numbers.Integral):
        return str(int(value))
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime.datetime):
        return f"TIMESTAMP '{_iso(value)}'"
    if isinstance(value, datetime.date):
        return f"DATE '{value.isoformat()}'"
    if isinstance(value, str):
        return quote_string(value)
    return quote_string(str(value))


def _sql_type(value: Any) -> str:
    if isinstance(value, datetime.datetime):
        return "TIMESTAMP"
    if isinstance(value, datetime.date):
        return "DATE"
    if isinstance(value, (bool, np.bool_)):
        return "BOOLEAN"
    if isinstance(value, numbers.Integral):
        return "BIGINT"
    if isinstance(value, (float, Decimal, np.floating)):
        return "DOUBLE"
    return "VARCHAR"


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def infer_schema(records: Sequence[Dict[str, Any]]) -> Dict[str, str]:
    """
    Infer a DuckDB column type per field.

    Columns appear in first-seen key order. The first non-null value of a
    column decides its type; a BIGINT column is widened to DOUBLE when a
    later value is a float. Columns without any value become VARCHAR.
    """
    schema: Dict[str, Optional[str]] = {}
    for record in records:
        for name, value in record.items():
            current = schema.get(name)
            if _is_missing(value):
                schema.setdefault(name, None)
                continue
            if current is None:
                schema[name] = _sql_type(value)
            elif current == "BIGINT" and _sql_type(value) == "DOUBLE":
                schema[name] = "DOUBLE"
    return {name: sql_type or "VARCHAR" for name, sql_type in schema.items()}


def drop_table_sql(table: str) -> str:
    return f"DROP TABLE IF EXISTS {qident(table)}"


def create_table_sql(table: str, schema: Dict[str, str]) -> str:
    columns = ", ".join(f"{qident(name)} {sql_type}" for name, sql_type in schema.items())
    return f"CREATE TABLE {qident(table)} ({columns})"


def insert_batch_sql(table: str, columns: Sequence[str], records: Iterable[Dict[str, Any]]) -> str:
    """Render one multi-row INSERT statement for ``records``."""
    column_sql = ", ".join(qident(c) for c in columns)
    rows = ", ".join(
        "(" + ", ".join(sql_literal(record.get(c)) for c in columns) + ")"
        for record in records
    )
    return f"INSERT INTO {qident(table)} ({column_sql}) VALUES {rows}"


def iter_insert_batches(
    table: str,
    columns: Sequence[str],
    records: Sequence[Dict[str, Any]],
    batch_size: int = INSERT_BATCH_SIZE,
) -> Iterator[str]:
    """Yield one INSERT statement per batch of ``batch_size`` records."""
    for start in range(0, len(records), batch_size):
        yield insert_batch_sql(table, columns, records[start : start + batch_size])


def create_from_file_sql(table: str, path: str, data_format: str) -> str:
    """CREATE TABLE ... AS SELECT from a parquet, csv or json file."""
    reader = READERS[data_format]
    return f"CREATE TABLE {qident(table)} AS SELECT * FROM {reader}({quote_string(str(path))})"


def create_from_view_sql(table: str, view: str) -> str:
    return f"CREATE TABLE {qident(table)} AS SELECT * FROM {qident(view)}"


def count_rows_sql(table: str) -> str:
    return f"SELECT COUNT(*) AS count FROM {qident(table)}"


def describe_sql(table: str) -> str:
    return f"DESCRIBE {qident(table)}"


def type_lookup_sql(table: str, column: str) -> str:
    """Single-row lookup of the type name of the first non-null value."""
    col = qident(column)
    return (
        f"SELECT typeof({col}) AS col_type FROM {qident(table)} "
        f"WHERE {col} IS NOT NULL LIMIT 1"
    )


def continuous_stats_sql(table: str, column: str) -> str:
    """Count, extent, quartiles and standard deviation of the finite values."""
    value = _value_expr(column, BinType.CONTINUOUS)
    return (
        f"WITH src AS (SELECT {value} AS v FROM {qident(table)}) "
        f"SELECT COUNT(v) AS n, MIN(v) AS min_val, MAX(v) AS max_val, "
        f"quantile_cont(v, 0.25) AS q1, quantile_cont(v, 0.75) AS q3, "
        f"stddev_samp(v) AS std "
        f"FROM src WHERE v IS NOT NULL"
    )


def date_stats_sql(table: str, column: str) -> str:
    col = qident(column)
    value = f"CAST({col} AS TIMESTAMP)"
    return (
        f"SELECT COUNT({col}) AS n, MIN({value}) AS min_val, MAX({value}) AS max_val "
        f"FROM {qident(table)} WHERE {col} IS NOT NULL"
    )


def _value_expr(column: str, bin_type: BinType) -> str:
    """Comparable bin value of ``column``; NaN and infinities read as NULL."""
    if bin_type == BinType.DATE:
        return f"CAST({qident(column)} AS TIMESTAMP)"
    value = f"CAST({qident(column)} AS DOUBLE)"
    return f"(CASE WHEN isfinite({value}) THEN {value} END)"


def _edge_literal(edge: Any, bin_type: BinType) -> str:
    if bin_type == BinType.DATE:
        return f"TIMESTAMP '{_iso(edge)}'"
    # repr round-trips the exact double
    return f"'{float(edge)!r}'::DOUBLE"


def edge_counts_sql(
    table: str,
    column: str,
    edges: Sequence[Any],
    bin_type: BinType,
    close_last: bool,
) -> str:
    """
    Count values per interval of ``edges``.

    The intervals are joined back against the source rows as an inline
    VALUES table so that every interval, including empty ones, yields a row.
    Intervals are half-open; with ``close_last`` the last one also includes
    its upper edge.
    """
    rows = ", ".join(
        f"({i}, {_edge_literal(edges[i], bin_type)}, {_edge_literal(edges[i + 1], bin_type)})"
        for i in range(len(edges) - 1)
    )
    last = len(edges) - 2
    upper = "src.v < bins.x1"
    if close_last:
        upper = f"(src.v < bins.x1 OR (bins.idx = {last} AND src.v = bins.x1))"
    return (
        f"WITH bins(idx, x0, x1) AS (VALUES {rows}), "
        f"src AS (SELECT {_value_expr(column, bin_type)} AS v FROM {qident(table)}) "
        f'SELECT bins.idx AS idx, COUNT(src.v) AS "length" '
        f"FROM bins LEFT JOIN src ON src.v >= bins.x0 AND {upper} "
        f"GROUP BY bins.idx ORDER BY bins.idx"
    )


def ordinal_top_sql(table: str, column: str, limit: int) -> str:
    """Distinct values by descending count, ties in first-seen order."""
    col = qident(column)
    return (
        f'SELECT {col} AS "key", COUNT(*) AS "length" FROM {qident(table)} '
        f"WHERE {col} IS NOT NULL GROUP BY {col} "
        f'ORDER BY "length" DESC, MIN(rowid) LIMIT {int(limit)}'
    )


def ordinal_overflow_sql(table: str, column: str, keep: int) -> str:
    """
    Distinct-value count, the summed count of every value ranked after the
    first ``keep`` values, and the non-null total.
    """
    col = qident(column)
    return (
        f"WITH ranked AS ("
        f"SELECT COUNT(*) AS cnt, "
        f"ROW_NUMBER() OVER (ORDER BY COUNT(*) DESC, MIN(rowid)) AS rn "
        f"FROM {qident(table)} WHERE {col} IS NOT NULL GROUP BY {col}) "
        f"SELECT COUNT(*) AS n_distinct, "
        f"COALESCE(SUM(cnt) FILTER (WHERE rn > {int(keep)}), 0) AS other_length, "
        f"COALESCE(SUM(cnt), 0) AS total FROM ranked"
    )


def selection_predicate(
    column: str,
    bin_type: BinType,
    selected: Sequence[Bin],
    bins: Sequence[Bin],
) -> Tuple[str, List[Any]]:
    """
    WHERE clause matching the records of ``selected``.

    Ordinal keys become an IN test; the "Other" bin matches every non-null
    value outside the kept keys of ``bins``. Range bins become a disjunction
    of half-open range tests (closed for the last continuous bin).

    Returns:
        (sql, params) with ``?`` placeholders
    """
    col = qident(column)
    clauses: List[str] = []
    params: List[Any] = []

    if bin_type == BinType.ORDINAL:
        keys = [b.key for b in selected if not b.is_other]
        if keys:
            clauses.append(f"{col} IN ({', '.join(['?'] * len(keys))})")
            params.extend(keys)
        if any(b.is_other for b in selected):
            kept = [b.key for b in bins if not b.is_other]
            if kept:
                clauses.append(
                    f"({col} IS NOT NULL AND {col} NOT IN ({', '.join(['?'] * len(kept))}))"
                )
                params.extend(kept)
            else:
                clauses.append(f"{col} IS NOT NULL")
    else:
        value = _value_expr(column, bin_type)
        for b in selected:
            upper = "<=" if b.closed else "<"
            clauses.append(f"({value} >= ? AND {value} {upper} ?)")
            if bin_type == BinType.DATE:
                params.extend([as_datetime(b.x0), as_datetime(b.x1)])
            else:
                params.extend([float(b.x0), float(b.x1)])

    return " OR ".join(clauses), params


def records_matching_sql(
    table: str,
    column: str,
    bin_type: BinType,
    selected: Sequence[Bin],
    bins: Sequence[Bin],
) -> Tuple[str, List[Any]]:
    """SELECT every record of ``table`` that falls in a selected bin, in load order."""
    predicate, params = selection_predicate(column, bin_type, selected, bins)
    return (
        f"SELECT * FROM {qident(table)} WHERE {predicate} ORDER BY rowid",
        params,
    )
