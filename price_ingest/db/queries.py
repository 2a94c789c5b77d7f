from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date
from decimal import Decimal
from typing import Any

from ..models.export_filters import ExportFilters
from ..models.price_record import PriceRecord
from .batch_insert import BatchMetrics, batch_insert
from .schema import PRICES_TABLE

"""SQL used by the import and export services.

The services import these functions by name; tests replace them with an
in-memory store.
"""

INSERT_COLUMNS = ("source_id", "name", "category", "price", "create_date")
CONFLICT_COLUMNS = ("name", "category", "price", "create_date")
EXPORT_COLUMNS = ("id", "name", "category", "price", "create_date")

AGGREGATES_SQL = f"SELECT COUNT(DISTINCT category), COALESCE(SUM(price), 0) FROM {PRICES_TABLE}"

ExportRow = tuple[int, str, str, str, date]


def insert_prices(
    cursor: Any,
    records: Sequence[PriceRecord],
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> int:
    """Insert records, ignoring rows that hit ux_prices_dedupe. Returns inserted count."""
    result = batch_insert(
        cursor,
        table=PRICES_TABLE,
        columns=INSERT_COLUMNS,
        rows=[r.as_insert_row() for r in records],
        conflict_columns=CONFLICT_COLUMNS,
        returning="id",
        page_size=page_size,
        metrics_callback=metrics_callback,
    )
    return result.inserted_rows


def fetch_aggregates(cursor: Any) -> tuple[int, Decimal]:
    """Distinct category count and price sum over every stored row."""
    cursor.execute(AGGREGATES_SQL)
    categories, total = cursor.fetchone()
    return int(categories), Decimal(total)


def build_export_query(filters: ExportFilters) -> tuple[str, list[Any]]:
    """Build the filtered, ordered export SELECT.

    Price bounds are whole currency units, so ``min=5`` matches 5.00 and up.
    """
    sql = f"SELECT id, name, category, price::text, create_date FROM {PRICES_TABLE}"
    conditions: list[str] = []
    params: list[Any] = []
    if filters.start is not None:
        conditions.append("create_date >= %s")
        params.append(filters.start)
    if filters.end is not None:
        conditions.append("create_date <= %s")
        params.append(filters.end)
    if filters.min is not None:
        conditions.append("price >= %s")
        params.append(Decimal(filters.min))
    if filters.max is not None:
        conditions.append("price <= %s")
        params.append(Decimal(filters.max))
    if conditions:
        sql += " WHERE " + " AND ".join(conditions)
    sql += " ORDER BY create_date, category, name"
    return sql, params


def fetch_export_rows(cursor: Any, filters: ExportFilters) -> list[ExportRow]:
    sql, params = build_export_query(filters)
    cursor.execute(sql, params)
    return list(cursor.fetchall())
