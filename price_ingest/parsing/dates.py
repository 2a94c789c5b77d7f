from __future__ import annotations

import re
from datetime import date, datetime

"""Strict calendar date parsing (YYYY-MM-DD only)."""

__all__ = [
    "DATE_FORMAT",
    "InvalidDateError",
    "parse_date",
]

DATE_FORMAT = "%Y-%m-%d"
# strptime alone accepts "2024-1-1"; the shape check keeps the grammar strict.
_DATE_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")


class InvalidDateError(ValueError):
    """Raised when text is not a valid YYYY-MM-DD calendar date."""


def parse_date(text: str) -> date:
    if not _DATE_RE.match(text):
        raise InvalidDateError(f"invalid date {text!r} (expected YYYY-MM-DD)")
    try:
        return datetime.strptime(text, DATE_FORMAT).date()
    except ValueError as e:
        raise InvalidDateError(f"invalid date {text!r}: {e}") from e
