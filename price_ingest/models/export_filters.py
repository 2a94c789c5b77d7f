from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date

from ..parsing.dates import InvalidDateError, parse_date

"""Export filter model and query-parameter parsing.

Filters arrive as query-style key/value pairs (``start``, ``end``, ``min``,
``max``). All validation happens here, before any query is built.
"""

__all__ = [
    "ExportFilters",
    "FilterError",
    "parse_export_filters",
]

_NATURAL_RE = re.compile(r"^[0-9]+$")


class FilterError(ValueError):
    """Raised when export filter parameters are invalid."""


@dataclass(frozen=True)
class ExportFilters:
    """Inclusive bounds for an export. None means unbounded on that side."""
    start: date | None = None
    end: date | None = None
    min: int | None = None  # whole currency units
    max: int | None = None

    def __post_init__(self) -> None:
        if self.start is not None and self.end is not None and self.start > self.end:
            raise FilterError("start must be <= end")
        if self.min is not None and self.min <= 0:
            raise FilterError("invalid min (expected natural number > 0)")
        if self.max is not None and self.max <= 0:
            raise FilterError("invalid max (expected natural number > 0)")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise FilterError("min must be <= max")

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None and self.min is None and self.max is None


def _parse_bound_date(params: Mapping[str, str | None], key: str) -> date | None:
    raw = (params.get(key) or "").strip()
    if not raw:
        return None
    try:
        return parse_date(raw)
    except InvalidDateError as e:
        raise FilterError(f"invalid {key} (expected YYYY-MM-DD)") from e


def _parse_bound_int(params: Mapping[str, str | None], key: str) -> int | None:
    raw = (params.get(key) or "").strip()
    if not raw:
        return None
    if not _NATURAL_RE.match(raw) or int(raw) <= 0:
        raise FilterError(f"invalid {key} (expected natural number > 0)")
    return int(raw)


def parse_export_filters(params: Mapping[str, str | None]) -> ExportFilters:
    """Build ExportFilters from query-style parameters.

    Blank values count as absent. Raises FilterError on any malformed value or
    when ``start > end`` / ``min > max``.
    """
    return ExportFilters(
        start=_parse_bound_date(params, "start"),
        end=_parse_bound_date(params, "end"),
        min=_parse_bound_int(params, "min"),
        max=_parse_bound_int(params, "max"),
    )
