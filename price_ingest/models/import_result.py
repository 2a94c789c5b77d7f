from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

"""Import result model.

ImportResult aggregates the counters of one import call. The batch counters
(total_count / duplicates_count / total_items) describe this call only, while
total_categories / total_price are read back from storage after commit and
therefore cover every stored record.
"""

__all__ = [
    "ImportResult",
    "normalize_total_price",
]


def normalize_total_price(value: Decimal | int | None) -> int | Decimal:
    """Render a stored price sum as int when it has no fractional cents."""
    if value is None:
        return 0
    amount = Decimal(value)
    if amount == amount.to_integral_value():
        return int(amount)
    return amount.quantize(Decimal("0.01"))


@dataclass(frozen=True)
class ImportResult:
    """Aggregated counters for a single import call."""
    total_count: int  # CSV data records read, malformed ones included
    duplicates_count: int  # intra-batch + storage-level duplicates
    total_items: int  # rows inserted by this call
    total_categories: int  # distinct categories over all stored rows
    total_price: int | Decimal  # sum over all stored rows
    rejected_count: int = 0  # validation/tokenization rejections (not duplicates)
    csv_entry: str | None = None  # archive entry the CSV was read from

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready mapping with the five public counters."""
        total_price: Any = self.total_price
        if isinstance(total_price, Decimal):
            total_price = float(total_price)
        return {
            "total_count": self.total_count,
            "duplicates_count": self.duplicates_count,
            "total_items": self.total_items,
            "total_categories": self.total_categories,
            "total_price": total_price,
        }
