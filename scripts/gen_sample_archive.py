#!/usr/bin/env python3
"""Sample archive generation for manual and load testing.

Produces a zip, tar or tar.gz archive holding one ``data.csv`` with the
columns ``id,name,category,price,create_date``. A share of the rows can be
repeated (to exercise deduplication) or corrupted (to exercise row
rejection).
"""
from __future__ import annotations

import argparse
import io
import sys
import tarfile
import zipfile
from pathlib import Path

import numpy as np
import pandas as pd

CATEGORIES = ["Fruit", "Vegetables", "Dairy", "Bakery", "Drinks", "Household"]
BAD_PRICES = ["1,50", "abc", "0", "1.234", "-3"]


def generate_prices(rows: int, duplicate_ratio: float, invalid_ratio: float, seed: int = 42) -> pd.DataFrame:
    """Generate a price table with controlled duplicates and invalid rows."""
    rng = np.random.default_rng(seed)
    cents = rng.integers(1, 100_000, size=rows)
    days = rng.integers(0, 365, size=rows)
    df = pd.DataFrame(
        {
            "id": np.arange(1, rows + 1),
            "name": [f"Item_{n}" for n in rng.integers(1000, 9999, size=rows)],
            "category": rng.choice(CATEGORIES, size=rows),
            "price": [f"{c // 100}.{c % 100:02d}" for c in cents],
            "create_date": (pd.Timestamp("2024-01-01") + pd.to_timedelta(days, unit="D")).strftime("%Y-%m-%d"),
        }
    )

    n_dup = int(rows * duplicate_ratio)
    if n_dup:
        df = pd.concat([df, df.sample(n=n_dup, random_state=seed)], ignore_index=True)

    n_bad = int(rows * invalid_ratio)
    if n_bad:
        bad_idx = rng.choice(len(df), size=n_bad, replace=False)
        df.loc[bad_idx, "price"] = rng.choice(BAD_PRICES, size=n_bad)
    return df


def write_archive(df: pd.DataFrame, output: Path, kind: str, entry_name: str = "data.csv") -> None:
    payload = df.to_csv(index=False, lineterminator="\n").encode("utf-8")
    if kind == "zip":
        with zipfile.ZipFile(output, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(entry_name, payload)
        return
    mode = "w:gz" if kind == "tar.gz" else "w"
    with tarfile.open(output, mode) as tf:
        info = tarfile.TarInfo(entry_name)
        info.size = len(payload)
        tf.addfile(info, io.BytesIO(payload))


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate sample price archives",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s sample.zip --rows 1000
  %(prog)s sample.tar.gz --kind tar.gz --rows 50000 --duplicates 0.1 --invalid 0.02
        """,
    )
    parser.add_argument("output", type=Path, help="Output archive path")
    parser.add_argument("--kind", choices=["zip", "tar", "tar.gz"], default="zip")
    parser.add_argument("--rows", type=int, default=1000, help="Distinct rows (default: 1000)")
    parser.add_argument("--duplicates", type=float, default=0.0, help="Share of rows repeated (0-1)")
    parser.add_argument("--invalid", type=float, default=0.0, help="Share of rows with a bad price (0-1)")
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    if not (0 <= args.duplicates <= 1 and 0 <= args.invalid <= 1):
        print("Error: ratios must be between 0 and 1", file=sys.stderr)
        return 1

    df = generate_prices(args.rows, args.duplicates, args.invalid, args.seed)
    write_archive(df, args.output, args.kind)
    print(f"Created {args.kind} archive: {args.output} ({len(df):,} rows)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
