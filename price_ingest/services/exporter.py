from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Sequence
from typing import Any

import pandas as pd
import psycopg2

from ..db.queries import EXPORT_COLUMNS, ExportRow, fetch_export_rows
from ..models.export_filters import ExportFilters
from .importer import PersistenceError

"""Filtered export: query -> CSV -> zip, all in memory.

The archive always holds exactly one entry, ``data.csv``, with the header
``id,name,category,price,create_date``. Rows come back ordered by
create_date, category, name.
"""

logger = logging.getLogger(__name__)

EXPORT_ENTRY_NAME = "data.csv"


def render_csv(rows: Sequence[ExportRow]) -> str:
    """Render export rows as CSV text (``\\n`` line endings, header always present)."""
    df = pd.DataFrame(
        [
            (
                row_id,
                name,
                category,
                price,
                create_date.isoformat() if hasattr(create_date, "isoformat") else str(create_date),
            )
            for row_id, name, category, price, create_date in rows
        ],
        columns=list(EXPORT_COLUMNS),
    )
    return df.to_csv(index=False, lineterminator="\n")


def package_zip(csv_text: str, entry_name: str = EXPORT_ENTRY_NAME) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(entry_name, csv_text.encode("utf-8"))
    return buf.getvalue()


def export_zip(conn: Any, filters: ExportFilters) -> bytes:
    """Return zip bytes holding the filtered records as ``data.csv``.

    Raises:
        PersistenceError: the export query failed
    """
    try:
        with conn.cursor() as cur:
            rows = fetch_export_rows(cur, filters)
        # read-only; close the implicit transaction
        conn.rollback()
    except psycopg2.Error as e:
        raise PersistenceError(f"query export: {e}") from e

    logger.info("export rows=%d filters=%s", len(rows), filters)
    return package_zip(render_csv(rows))
