from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from price_ingest.db import queries
from price_ingest.models.export_filters import ExportFilters
from price_ingest.models.price_record import PriceRecord


class RecordingCursor:
    def __init__(self, one=None, many=None) -> None:
        self.executed: list[tuple[str, object]] = []
        self._one = one
        self._many = many or []

    def execute(self, sql, params=None):
        self.executed.append((sql, params))

    def fetchone(self):
        return self._one

    def fetchall(self):
        return self._many


def test_unbounded_export_query_has_no_where():
    sql, params = queries.build_export_query(ExportFilters())
    assert "WHERE" not in sql
    assert sql.endswith("ORDER BY create_date, category, name")
    assert params == []


def test_all_bounds_are_parameterized_and_inclusive():
    f = ExportFilters(start=date(2024, 1, 1), end=date(2024, 1, 31), min=10, max=20)
    sql, params = queries.build_export_query(f)
    assert "create_date >= %s AND create_date <= %s AND price >= %s AND price <= %s" in sql
    assert params == [date(2024, 1, 1), date(2024, 1, 31), Decimal(10), Decimal(20)]


def test_single_price_bound():
    sql, params = queries.build_export_query(ExportFilters(max=5))
    assert " WHERE price <= %s " in sql
    assert params == [Decimal(5)]


def test_fetch_aggregates_converts_types():
    cur = RecordingCursor(one=(3, Decimal("12.50")))
    assert queries.fetch_aggregates(cur) == (3, Decimal("12.50"))
    assert "COUNT(DISTINCT category)" in cur.executed[0][0]
    assert "COALESCE(SUM(price), 0)" in cur.executed[0][0]


def test_fetch_export_rows_runs_built_query():
    row = (1, "Apple", "Fruit", "1.50", date(2024, 1, 1))
    cur = RecordingCursor(many=[row])
    assert queries.fetch_export_rows(cur, ExportFilters(min=1)) == [row]
    assert cur.executed[0][1] == [Decimal(1)]


def test_insert_prices_uses_dedupe_conflict_target(monkeypatch):
    captured = {}

    class _Result:
        inserted_rows = 1

    def fake_batch_insert(cursor, **kwargs):
        captured.update(kwargs)
        return _Result()

    monkeypatch.setattr(queries, "batch_insert", fake_batch_insert)
    rec = PriceRecord("Apple", "Fruit", 150, "1.50", date(2024, 1, 1), source_id="9")
    assert queries.insert_prices(object(), [rec], page_size=7) == 1
    assert captured["table"] == "prices"
    assert captured["conflict_columns"] == ("name", "category", "price", "create_date")
    assert captured["rows"] == [("9", "Apple", "Fruit", "1.50", date(2024, 1, 1))]
    assert captured["returning"] == "id"
    assert captured["page_size"] == 7


@pytest.mark.parametrize("column", queries.CONFLICT_COLUMNS)
def test_conflict_columns_are_inserted(column: str):
    assert column in queries.INSERT_COLUMNS
