from __future__ import annotations

import io
import os
import zipfile
from decimal import Decimal

import pytest

from conftest import csv_bytes, make_tar, make_zip
from price_ingest.archive.dispatcher import CsvNotFoundError
from price_ingest.db.schema import PRICES_TABLE, ensure_schema
from price_ingest.models.export_filters import ExportFilters
from price_ingest.services.exporter import export_zip
from price_ingest.services.importer import import_archive

"""Runs against a real PostgreSQL database.

Set PRICE_INGEST_TEST_DSN to a disposable database to enable; the prices
table is truncated before every test.
"""

TEST_DSN = os.getenv("PRICE_INGEST_TEST_DSN")

pytestmark = pytest.mark.skipif(not TEST_DSN, reason="PRICE_INGEST_TEST_DSN not set (requires PostgreSQL)")


@pytest.fixture
def pg_conn():
    import psycopg2

    conn = psycopg2.connect(TEST_DSN)
    conn.autocommit = False
    ensure_schema(conn)
    with conn.cursor() as cur:
        cur.execute(f"TRUNCATE {PRICES_TABLE} RESTART IDENTITY")
    conn.commit()
    try:
        yield conn
    finally:
        conn.close()


def test_import_dedup_and_aggregates(pg_conn):
    data = make_zip({"data.csv": csv_bytes("1,Apple,Fruit,1.5,2024-01-01", "2,Apple,Fruit,1.50,2024-01-01")})
    res = import_archive(pg_conn, io.BytesIO(data), "zip", page_size=1)
    assert (res.total_count, res.duplicates_count, res.total_items) == (2, 1, 1)
    assert res.total_price == Decimal("1.50")

    again = import_archive(pg_conn, io.BytesIO(data), "zip")
    assert (again.duplicates_count, again.total_items) == (2, 0)


def test_missing_csv_commits_nothing(pg_conn):
    with pytest.raises(CsvNotFoundError):
        import_archive(pg_conn, io.BytesIO(make_tar({"x.txt": b"x"}, gz=True)), "tar")
    with pg_conn.cursor() as cur:
        cur.execute(f"SELECT COUNT(*) FROM {PRICES_TABLE}")
        assert cur.fetchone()[0] == 0


def test_export_order_and_bounds(pg_conn):
    data = make_zip(
        {
            "data.csv": csv_bytes(
                "1,Pear,Fruit,10,2024-01-02",
                "2,Apple,Fruit,10.00,2024-01-01",
                "3,Bread,Bakery,9.99,2024-01-01",
            )
        }
    )
    import_archive(pg_conn, io.BytesIO(data), "zip")
    with zipfile.ZipFile(io.BytesIO(export_zip(pg_conn, ExportFilters(min=10, max=10)))) as zf:
        lines = zf.read("data.csv").decode("utf-8").splitlines()
    assert [line.split(",")[1] for line in lines[1:]] == ["Apple", "Pear"]
