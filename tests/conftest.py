# Shared pytest fixtures
from __future__ import annotations

import io
import tarfile
import tempfile
import zipfile
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from price_ingest.db.batch_insert import BatchMetrics
from price_ingest.models.export_filters import ExportFilters


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
import:
  page_size: 2
  max_upload_mb: 1
logs_directory: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "price_ingest.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def make_zip(entries: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, payload in entries.items():
            if name.endswith("/"):
                zf.writestr(zipfile.ZipInfo(name), b"")
            else:
                zf.writestr(name, payload)
    return buf.getvalue()


def make_tar(entries: dict[str, bytes], gz: bool = False) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz" if gz else "w") as tf:
        for name, payload in entries.items():
            info = tarfile.TarInfo(name.rstrip("/"))
            if name.endswith("/"):
                info.type = tarfile.DIRTYPE
                tf.addfile(info)
            else:
                info.size = len(payload)
                tf.addfile(info, io.BytesIO(payload))
    return buf.getvalue()


CSV_HEADER = "id,name,category,price,create_date\n"


def csv_bytes(*rows: str, header: str = CSV_HEADER) -> bytes:
    return (header + "".join(r + "\n" for r in rows)).encode("utf-8")


class FakeCursor:
    def __init__(self, conn: FakeConnection) -> None:
        self.connection = conn

    def __enter__(self) -> FakeCursor:
        return self

    def __exit__(self, *exc) -> None:
        return None


class FakeConnection:
    """psycopg2-like connection over a FakePriceStore."""

    def __init__(self, store: FakePriceStore) -> None:
        self.store = store
        self.pending: list[tuple] = []
        self.commits = 0
        self.rollbacks = 0
        self.fail_on_commit: Exception | None = None

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        if self.fail_on_commit is not None:
            raise self.fail_on_commit
        self.store.rows.extend(self.pending)
        self.pending = []
        self.commits += 1

    def rollback(self) -> None:
        self.pending = []
        self.rollbacks += 1


class FakePriceStore:
    """In-memory stand-in for the prices table and its queries."""

    def __init__(self) -> None:
        self.rows: list[tuple[int, str | None, str, str, str, date]] = []
        self.next_id = 1
        self.fail_on_insert: Exception | None = None
        self.fail_on_query: Exception | None = None
        self.insert_calls = 0

    def connect(self) -> FakeConnection:
        return FakeConnection(self)

    @staticmethod
    def _identity(row: tuple) -> tuple:
        return row[2], row[3], row[4], row[5]

    def insert_prices(self, cursor, records, page_size=1000, metrics_callback=None) -> int:
        self.insert_calls += 1
        conn = cursor.connection
        existing = {self._identity(r) for r in self.rows + conn.pending}
        inserted = 0
        for offset in range(0, len(records), page_size):
            page = records[offset:offset + page_size]
            page_inserted = 0
            for rec in page:
                if self.fail_on_insert is not None:
                    raise self.fail_on_insert
                row = (self.next_id, rec.source_id, rec.name, rec.category, rec.price_decimal, rec.create_date)
                if self._identity(row) in existing:
                    continue
                existing.add(self._identity(row))
                conn.pending.append(row)
                self.next_id += 1
                page_inserted += 1
            inserted += page_inserted
            if metrics_callback is not None:
                metrics_callback(BatchMetrics(len(page), page_inserted, 0.0, 0.0, 0.0))
        return inserted

    def fetch_aggregates(self, cursor) -> tuple[int, Decimal]:
        if self.fail_on_query is not None:
            raise self.fail_on_query
        categories = {r[3] for r in self.rows}
        total = sum((Decimal(r[4]) for r in self.rows), Decimal(0))
        return len(categories), total

    def fetch_export_rows(self, cursor, filters: ExportFilters) -> list[tuple]:
        if self.fail_on_query is not None:
            raise self.fail_on_query
        out = []
        for row_id, _source, name, category, price, created in self.rows:
            if filters.start is not None and created < filters.start:
                continue
            if filters.end is not None and created > filters.end:
                continue
            if filters.min is not None and Decimal(price) < filters.min:
                continue
            if filters.max is not None and Decimal(price) > filters.max:
                continue
            out.append((row_id, name, category, price, created))
        out.sort(key=lambda r: (r[4], r[2], r[1]))
        return out


@pytest.fixture()
def fake_store(monkeypatch) -> FakePriceStore:
    """Patch the query functions used by the services with an in-memory store."""
    import price_ingest.services.exporter as exporter
    import price_ingest.services.importer as importer

    store = FakePriceStore()
    monkeypatch.setattr(importer, "insert_prices", store.insert_prices)
    monkeypatch.setattr(importer, "fetch_aggregates", store.fetch_aggregates)
    monkeypatch.setattr(exporter, "fetch_export_rows", store.fetch_export_rows)
    return store

