from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import psycopg2
from psycopg2.extras import execute_values

"""Batched INSERT built on psycopg2.extras.execute_values.

Rows are sent one page at a time so that each statement's outcome (inserted
rows, conflicts skipped) can be observed per page. With ``conflict_columns``
the statement becomes ``ON CONFLICT (...) DO NOTHING`` and conflicting rows
are simply not counted as inserted.
"""


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Metrics for a single page of a batch insert."""
    batch_size: int  # rows submitted in this page
    inserted_rows: int  # rows actually written (conflicts excluded)
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    submitted_rows: int
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None

    @property
    def skipped_rows(self) -> int:
        return self.submitted_rows - self.inserted_rows


def build_insert_sql(
    table: str,
    columns: Sequence[str],
    conflict_columns: Sequence[str] | None = None,
    returning: str | None = None,
) -> str:
    cols_sql = ",".join(f'"{c}"' for c in columns)
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s"
    if conflict_columns:
        conflict_sql = ",".join(f'"{c}"' for c in conflict_columns)
        sql += f" ON CONFLICT ({conflict_sql}) DO NOTHING"
    if returning:
        sql += f" RETURNING {returning}"
    return sql


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    conflict_columns: Sequence[str] | None = None,
    returning: str | None = None,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Insert rows page by page.

    Parameters
    ----------
    cursor: psycopg2 cursor (inside the caller's transaction)
    table: target table (trusted identifier)
    columns: insert columns
    rows: row sequences matching ``columns``
    conflict_columns: when given, conflicts on these columns are ignored
    returning: column expression to RETURN; inserted rows are then counted
        from the returned values, otherwise from ``cursor.rowcount``
    page_size: rows per statement
    metrics_callback: receives BatchMetrics after every page.
        Not invoked when ``rows`` is empty.
    """
    if page_size < 1:
        raise BatchInsertError(f"page_size must be >= 1, got {page_size}")

    rows_list = list(rows)
    if not rows_list:
        return InsertResult(submitted_rows=0, inserted_rows=0, returned_values=[] if returning else None)

    sql = build_insert_sql(table, columns, conflict_columns, returning)
    inserted = 0
    returned: list[tuple[Any, ...]] | None = [] if returning else None

    for offset in range(0, len(rows_list), page_size):
        page = rows_list[offset:offset + page_size]
        start_time = time.time()
        try:
            if returning:
                page_returned = execute_values(cursor, sql, page, page_size=page_size, fetch=True)
                returned.extend(page_returned)  # type: ignore[union-attr]
                page_inserted = len(page_returned)
            else:
                execute_values(cursor, sql, page, page_size=page_size)
                page_inserted = max(cursor.rowcount, 0)
        except psycopg2.Error as e:
            raise BatchInsertError(str(e)) from e
        end_time = time.time()
        inserted += page_inserted
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(page),
                    inserted_rows=page_inserted,
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    return InsertResult(submitted_rows=len(rows_list), inserted_rows=inserted, returned_values=returned)
