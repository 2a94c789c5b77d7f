from __future__ import annotations

from dataclasses import dataclass
from datetime import date

"""PriceRecord model for the price archive importer.

A PriceRecord is one CSV data row after validation and canonicalization.
It is created only by the record parser and never mutated afterwards.
"""

__all__ = [
    "PriceRecord",
]


@dataclass(frozen=True)
class PriceRecord:
    """Canonical form of a single price row.

    ``price_decimal`` is always regenerated from ``price_cents`` so that
    "5", "5.0" and "5.00" map to the same stored value.
    """
    name: str  # as submitted (case preserved)
    category: str  # as submitted (case preserved)
    price_cents: int  # > 0
    price_decimal: str  # "{whole}.{frac:02d}"
    create_date: date
    source_id: str | None = None  # CSV "id" column, metadata only
    line_number: int = 0  # 1-based data record number within the CSV

    @property
    def dedup_key(self) -> tuple[str, str, int, str]:
        """Key used for intra-batch duplicate detection (case-insensitive name/category)."""
        return (
            self.name.lower(),
            self.category.lower(),
            self.price_cents,
            self.create_date.isoformat(),
        )

    @property
    def identity(self) -> tuple[str, str, str, date]:
        """Persisted uniqueness tuple (matches the ux_prices_dedupe constraint)."""
        return (self.name, self.category, self.price_decimal, self.create_date)

    def as_insert_row(self) -> tuple[str | None, str, str, str, date]:
        return (self.source_id, self.name, self.category, self.price_decimal, self.create_date)
