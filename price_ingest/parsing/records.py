from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import IO

from ..models.price_record import PriceRecord
from .dates import InvalidDateError, parse_date
from .price import InvalidPriceError, canonicalize_price

"""CSV record parsing and row validation.

The first CSV record is the header. Column lookup is case-insensitive on the
trimmed header cell. Missing required columns abort the whole payload
(SchemaError); every other problem is row-scoped: the row is counted in
``total_count``, recorded as a RowRejection and left out of the candidates.
"""

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("name", "category", "price", "create_date")
ID_COLUMN = "id"  # optional, kept as source_id


class SchemaError(Exception):
    """Raised when the CSV header is missing or lacks required columns."""


class RowValueError(ValueError):
    """Row-scoped validation failure carrying an UPPER_SNAKE reason code."""

    def __init__(self, error_type: str, message: str) -> None:
        super().__init__(message)
        self.error_type = error_type


@dataclass(frozen=True)
class RowRejection:
    line: int  # 1-based data record number
    error_type: str  # UPPER_SNAKE reason code
    message: str


@dataclass
class ParseOutcome:
    columns: list[str]
    records: list[PriceRecord] = field(default_factory=list)
    rejections: list[RowRejection] = field(default_factory=list)
    total_count: int = 0


def build_column_index(header: list[str]) -> dict[str, int]:
    """Map lower-cased header names to positions; raise SchemaError on gaps."""
    index: dict[str, int] = {}
    for pos, cell in enumerate(header):
        index[cell.strip().lower()] = pos
    missing = [col for col in REQUIRED_COLUMNS if col not in index]
    if missing:
        raise SchemaError(f"csv missing required columns: {missing}")
    return index


def _cell(rec: list[str], index: dict[str, int], col: str) -> str:
    pos = index.get(col)
    if pos is None or pos >= len(rec):
        return ""
    return rec[pos].strip()


def parse_row(rec: list[str], index: dict[str, int], line: int) -> PriceRecord:
    """Validate one tokenized record.

    Raises:
        RowValueError: with ``error_type`` set to the rejection reason
    """
    name = _cell(rec, index, "name")
    category = _cell(rec, index, "category")
    price_text = _cell(rec, index, "price")
    date_text = _cell(rec, index, "create_date")

    empty = [c for c, v in zip(REQUIRED_COLUMNS, (name, category, price_text, date_text)) if not v]
    if empty:
        raise RowValueError("EMPTY_FIELD", f"empty required fields: {empty}")

    try:
        cents, canonical = canonicalize_price(price_text)
    except InvalidPriceError as e:
        raise RowValueError(e.reason, str(e)) from e

    try:
        create_date = parse_date(date_text)
    except InvalidDateError as e:
        raise RowValueError("INVALID_DATE", str(e)) from e

    source_id = _cell(rec, index, ID_COLUMN) or None
    return PriceRecord(
        name=name,
        category=category,
        price_cents=cents,
        price_decimal=canonical,
        create_date=create_date,
        source_id=source_id,
        line_number=line,
    )


class _LineTap:
    """Line iterator for csv.reader that remembers the raw lines of the current record."""

    def __init__(self, lines: Iterator[str]) -> None:
        self._lines = lines
        self.consumed: list[str] = []

    def __iter__(self) -> _LineTap:
        return self

    def __next__(self) -> str:
        line = next(self._lines)
        self.consumed.append(line)
        return line


def _has_bare_quote(raw: str) -> bool:
    """True when a ``"`` appears inside a field that does not start with a quote.

    ``raw`` is one record that the strict csv reader already accepted, so a
    closing quote is always followed by a delimiter or the line end.
    """
    i, n = 0, len(raw)
    while i < n:
        while i < n and raw[i] == " ":
            i += 1
        if i < n and raw[i] == '"':
            i += 1
            while i < n:
                if raw[i] == '"':
                    if raw[i + 1 : i + 2] == '"':
                        i += 2
                        continue
                    i += 1
                    break
                i += 1
        else:
            while i < n and raw[i] not in ",\r\n":
                if raw[i] == '"':
                    return True
                i += 1
        if i >= n or raw[i] != ",":
            return False
        i += 1
    return False


def _records(reader: Iterator[list[str]], tap: _LineTap) -> Iterator[list[str] | csv.Error]:
    """Yield tokenized records, or the csv.Error for a record that failed to tokenize.

    The csv reader resets its state at the start of every record, so iteration
    can continue after an error. A bare quote inside an unquoted field is
    reported as an error as well.
    """
    while True:
        tap.consumed.clear()
        try:
            rec = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            yield e
            continue
        if not rec:
            # blank line, not a record
            continue
        if _has_bare_quote("".join(tap.consumed)):
            yield csv.Error('bare " in non-quoted field')
            continue
        yield rec


def parse_records(stream: IO[bytes], encoding: str = "utf-8-sig") -> ParseOutcome:
    """Read the whole CSV payload from a binary stream.

    Raises:
        SchemaError: empty payload, undecodable payload, or missing required columns
    """
    text = io.TextIOWrapper(stream, encoding=encoding, newline="")
    tap = _LineTap(text)
    reader = csv.reader(tap, strict=True, skipinitialspace=True)
    try:
        try:
            header = next(reader)
        except StopIteration:
            raise SchemaError("csv is empty: no header row") from None
        except csv.Error as e:
            raise SchemaError(f"read csv header: {e}") from e

        index = build_column_index(header)
        outcome = ParseOutcome(columns=[c.strip().lower() for c in header])

        for item in _records(reader, tap):
            outcome.total_count += 1
            line = outcome.total_count
            if isinstance(item, csv.Error):
                logger.warning("csv read error at line %d, skipping: %s", line, item)
                outcome.rejections.append(RowRejection(line, "MALFORMED_CSV", str(item)))
                continue
            try:
                outcome.records.append(parse_row(item, index, line))
            except RowValueError as e:
                logger.debug("row %d rejected: %s", line, e)
                outcome.rejections.append(RowRejection(line, e.error_type, str(e)))
    except UnicodeDecodeError as e:
        raise SchemaError(f"csv payload is not valid {encoding}: {e}") from e
    finally:
        # the underlying stream belongs to the archive layer
        text.detach()

    logger.debug(
        "parsed csv: total=%d valid=%d rejected=%d",
        outcome.total_count,
        len(outcome.records),
        len(outcome.rejections),
    )
    return outcome
