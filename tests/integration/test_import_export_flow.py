from __future__ import annotations

import json
import zipfile
from contextlib import contextmanager
from pathlib import Path

import pandas as pd
import pytest

import price_ingest.cli.__main__ as cli
from conftest import csv_bytes, make_tar, make_zip
from price_ingest.logging.init import reset_logging

"""End-to-end CLI runs (import -> export) over the in-memory store."""


@pytest.fixture
def cli_env(write_config, temp_workdir: Path, fake_store, monkeypatch):
    @contextmanager
    def fake_connection(db_cfg):
        yield fake_store.connect()

    monkeypatch.setattr(cli, "db_connection", fake_connection)
    reset_logging()
    return temp_workdir


def _run_import(workdir: Path, name: str, data: bytes, capsys, kind: str = "zip") -> tuple[int, dict | None]:
    archive = workdir / "data" / name
    archive.write_bytes(data)
    code = cli.main(["import", str(archive), "--type", kind])
    out = capsys.readouterr().out
    return code, (json.loads(out) if out.strip() else None)


def _export(workdir: Path, *args: str) -> pd.DataFrame:
    out = workdir / "out.zip"
    assert cli.main(["export", "-o", str(out), *args]) == 0
    with zipfile.ZipFile(out) as zf:
        assert zf.namelist() == ["data.csv"]
        with zf.open("data.csv") as fh:
            return pd.read_csv(fh, dtype=str)


def test_trailing_zero_variants_collapse(cli_env: Path, fake_store, capsys):
    code, res = _run_import(
        cli_env,
        "upload.zip",
        make_zip({"data.csv": csv_bytes("1,Apple,Fruit,1.5,2024-01-01", "2,Apple,Fruit,1.50,2024-01-01")}),
        capsys,
    )
    assert code == 0
    assert (res["total_count"], res["duplicates_count"], res["total_items"]) == (2, 1, 1)


def test_second_import_is_all_duplicates(cli_env: Path, fake_store, capsys):
    data = make_zip(
        {
            "data.csv": csv_bytes(
                "1,Apple,Fruit,1.50,2024-01-01",
                "2,Bread,Bakery,2.25,2024-01-02",
                "3,Milk,Dairy,0.99,2024-01-03",
            )
        }
    )
    _, first = _run_import(cli_env, "upload.zip", data, capsys)
    _, second = _run_import(cli_env, "upload.zip", data, capsys)
    assert first["total_items"] == 3
    assert second["total_items"] == 0
    assert second["duplicates_count"] == 3
    assert second["total_categories"] == 3
    assert second["total_price"] == pytest.approx(4.74)


def test_counts_balance_with_rejections(cli_env: Path, fake_store, capsys):
    _, res = _run_import(
        cli_env,
        "upload.zip",
        make_zip(
            {
                "data.csv": csv_bytes(
                    "1,Apple,Fruit,1.50,2024-01-01",
                    "2,APPLE,fruit,1.5,2024-01-01",
                    "3,Pear,Fruit,1,50,2024-01-01",
                    "4,Plum,Fruit,-1,2024-01-01",
                    "5,Kiwi,Fruit,2.00,2024-01-01",
                )
            }
        ),
        capsys,
    )
    assert res["total_count"] == 5
    assert res["total_items"] == 2
    assert res["duplicates_count"] == 1
    rejected = res["total_count"] - res["total_items"] - res["duplicates_count"]
    assert rejected == 2


def test_tar_gz_without_csv_commits_nothing(cli_env: Path, fake_store, capsys):
    data = make_tar({"prices.json": b"[]", "docs/": b""}, gz=True)
    code, res = _run_import(cli_env, "upload.tar.gz", data, capsys, kind="tar")
    assert code == 2
    assert res is None
    assert fake_store.rows == []
    assert fake_store.insert_calls == 0


def test_export_all_sorted_by_date_category_name(cli_env: Path, fake_store, capsys):
    _run_import(
        cli_env,
        "upload.tar",
        make_tar(
            {
                "data.csv": csv_bytes(
                    "1,Zucchini,Vegetables,3,2024-01-02",
                    "2,Pear,Fruit,2,2024-01-02",
                    "3,Apple,Fruit,1,2024-01-02",
                    "4,Bagel,Bakery,4,2024-01-03",
                    "5,Rye,Bakery,5,2024-01-01",
                )
            }
        ),
        capsys,
        kind="tar",
    )
    df = _export(cli_env)
    assert list(df.columns) == ["id", "name", "category", "price", "create_date"]
    assert list(df["name"]) == ["Rye", "Apple", "Pear", "Zucchini", "Bagel"]
    assert list(df["price"]) == ["5.00", "1.00", "2.00", "3.00", "4.00"]


def test_export_exact_price_bounds(cli_env: Path, fake_store, capsys):
    _run_import(
        cli_env,
        "upload.zip",
        make_zip({"data.csv": csv_bytes("1,A,X,9.99,2024-01-01", "2,B,X,10,2024-01-01", "3,C,X,10.01,2024-01-01")}),
        capsys,
    )
    df = _export(cli_env, "--min", "10", "--max", "10")
    assert list(df["price"]) == ["10.00"]


def test_export_date_window(cli_env: Path, fake_store, capsys):
    _run_import(
        cli_env,
        "upload.zip",
        make_zip({"data.csv": csv_bytes("1,A,X,1,2024-01-01", "2,B,X,1,2024-01-15", "3,C,X,1,2024-02-01")}),
        capsys,
    )
    df = _export(cli_env, "--start", "2024-01-01", "--end", "2024-01-15")
    assert list(df["name"]) == ["A", "B"]


@pytest.mark.parametrize(
    "args",
    [
        ["--start", "2024-02-01", "--end", "2024-01-01"],
        ["--min", "11", "--max", "10"],
        ["--min", "0"],
    ],
)
def test_invalid_export_filters_rejected_before_query(cli_env: Path, monkeypatch, args):
    import price_ingest.services.exporter as exporter

    def fail_query(*a, **kw):
        raise AssertionError("query must not run")

    monkeypatch.setattr(exporter, "fetch_export_rows", fail_query)
    assert cli.main(["export", *args]) == 2
    assert not (cli_env / "data.zip").exists()
