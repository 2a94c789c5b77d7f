from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import IO, Any

import psycopg2

from ..archive.dispatcher import ArchiveError, open_csv_stream
from ..db.batch_insert import BatchInsertError
from ..db.queries import fetch_aggregates, insert_prices
from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import ARCHIVE_LEVEL_LINE, ErrorRecord
from ..models.import_result import ImportResult, normalize_total_price
from ..models.price_record import PriceRecord
from ..parsing.records import ParseOutcome, SchemaError, parse_records
from .progress import InsertProgress

"""Import orchestration: archive -> CSV -> candidates -> one transaction.

Flow of ``import_archive``:
1. ``load_archive``: locate the CSV entry and parse the whole payload into
   memory. Archive and header problems abort here, before storage is touched,
   so callers can run it before opening a database connection.
2. ``import_candidates``: drop intra-batch duplicates (case-insensitive name/category, cents, date).
3. Insert the survivors in a single transaction with ON CONFLICT DO NOTHING;
   conflicts with rows stored by earlier calls count as duplicates.
4. Commit, then re-read the global aggregates (distinct categories, price sum).

Any persistence failure rolls the whole batch back; row-level validation
failures never abort the import, they are only counted.
"""

logger = logging.getLogger(__name__)


class ProcessingError(Exception):
    """Base exception for processing errors."""


class PersistenceError(ProcessingError):
    """Raised when a transaction or query against storage fails."""


@dataclass(frozen=True)
class DedupOutcome:
    unique: list[PriceRecord]
    duplicates: int


def dedup_batch(records: Iterable[PriceRecord]) -> DedupOutcome:
    """Keep the first record per dedup_key, count the rest as duplicates."""
    seen: set[tuple[str, str, int, str]] = set()
    unique: list[PriceRecord] = []
    duplicates = 0
    for rec in records:
        key = rec.dedup_key
        if key in seen:
            duplicates += 1
            continue
        seen.add(key)
        unique.append(rec)
    return DedupOutcome(unique=unique, duplicates=duplicates)


def read_candidates(source: IO[bytes], kind: str, encoding: str = "utf-8-sig") -> tuple[str, ParseOutcome]:
    """Return the CSV entry name and the parsed payload."""
    with open_csv_stream(source, kind) as entry:
        outcome = parse_records(entry.stream, encoding=encoding)
    return entry.name, outcome


def _error_type(exc: BaseException) -> str:
    """CorruptArchiveError -> CORRUPT_ARCHIVE_ERROR"""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", type(exc).__name__).upper()


def _rollback(conn: Any) -> None:
    try:
        conn.rollback()
    except psycopg2.Error as e:
        logger.warning("rollback failed: %s", e)


def persist_records(conn: Any, records: list[PriceRecord], page_size: int = 1000) -> int:
    """Insert records in one transaction and return the number written.

    Raises:
        PersistenceError: insert or commit failed; nothing from this call is kept
    """
    if not records:
        return 0
    try:
        with InsertProgress(len(records)) as progress, conn.cursor() as cur:
            inserted = insert_prices(cur, records, page_size=page_size, metrics_callback=progress.on_page)
        conn.commit()
    except (BatchInsertError, psycopg2.Error) as e:
        _rollback(conn)
        raise PersistenceError(f"insert: {e}") from e
    except BaseException:
        # interrupted (e.g. KeyboardInterrupt): nothing from this call may persist
        _rollback(conn)
        raise
    return inserted


def read_aggregates(conn: Any) -> tuple[int, int | Decimal]:
    try:
        with conn.cursor() as cur:
            categories, total = fetch_aggregates(cur)
        conn.commit()
    except psycopg2.Error as e:
        _rollback(conn)
        raise PersistenceError(f"aggregates: {e}") from e
    return categories, normalize_total_price(total)


def load_archive(
    source: IO[bytes],
    kind: str,
    *,
    encoding: str = "utf-8-sig",
    error_log: ErrorLogBuffer | None = None,
    archive_name: str = "<upload>",
) -> tuple[str, ParseOutcome]:
    """Read and validate the archive without touching storage.

    Archive-level failures and rejected rows go to ``error_log``.

    Raises:
        ArchiveError: archive unreadable or without a CSV entry
        SchemaError: header missing required columns
    """
    try:
        entry_name, outcome = read_candidates(source, kind, encoding=encoding)
    except (ArchiveError, SchemaError) as e:
        if error_log is not None:
            error_log.append(
                ErrorRecord.create(archive_name, "", ARCHIVE_LEVEL_LINE, _error_type(e), str(e))
            )
        raise

    if error_log is not None and outcome.rejections:
        error_log.add_rejections(archive_name, entry_name, outcome.rejections)
    return entry_name, outcome


def import_candidates(conn: Any, entry_name: str, outcome: ParseOutcome, *, page_size: int = 1000) -> ImportResult:
    """Dedup the parsed candidates, insert them in one transaction and report.

    Raises:
        PersistenceError: storage failure (batch rolled back)
    """
    dedup = dedup_batch(outcome.records)
    logger.info(
        "entry=%s read=%d valid=%d rejected=%d batch_duplicates=%d",
        entry_name,
        outcome.total_count,
        len(outcome.records),
        len(outcome.rejections),
        dedup.duplicates,
    )

    inserted = persist_records(conn, dedup.unique, page_size=page_size)
    storage_duplicates = len(dedup.unique) - inserted
    if storage_duplicates:
        logger.info("skipped %d rows already stored", storage_duplicates)

    categories, total_price = read_aggregates(conn)

    return ImportResult(
        total_count=outcome.total_count,
        duplicates_count=dedup.duplicates + storage_duplicates,
        total_items=inserted,
        total_categories=categories,
        total_price=total_price,
        rejected_count=len(outcome.rejections),
        csv_entry=entry_name,
    )


def import_archive(
    conn: Any,
    source: IO[bytes],
    kind: str,
    *,
    page_size: int = 1000,
    encoding: str = "utf-8-sig",
    error_log: ErrorLogBuffer | None = None,
    archive_name: str = "<upload>",
) -> ImportResult:
    """Import the CSV payload of an archive.

    Args:
        conn: psycopg2 connection (autocommit off)
        source: seekable binary stream holding the archive
        kind: "zip" or "tar"
        page_size: rows per INSERT statement
        encoding: CSV payload encoding
        error_log: optional buffer receiving rejected rows and archive errors
        archive_name: label used in error records

    Raises:
        ArchiveError: archive unreadable or without a CSV entry
        SchemaError: header missing required columns
        PersistenceError: storage failure (batch rolled back)
    """
    entry_name, outcome = load_archive(
        source, kind, encoding=encoding, error_log=error_log, archive_name=archive_name
    )
    return import_candidates(conn, entry_name, outcome, page_size=page_size)
