from __future__ import annotations

from decimal import Decimal

from ..models.import_result import ImportResult

"""SUMMARY line rendering for import results."""


def _format_amount(value: int | Decimal) -> str:
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    return str(value)


def render_summary_fields(result: ImportResult) -> str:
    """The key=value part of the SUMMARY line, without the level label."""
    return (
        f"total_count={result.total_count} "
        f"duplicates_count={result.duplicates_count} "
        f"total_items={result.total_items} "
        f"rejected={result.rejected_count} "
        f"total_categories={result.total_categories} "
        f"total_price={_format_amount(result.total_price)}"
    )


def render_summary_line(result: ImportResult) -> str:
    """Render the SUMMARY line for one import.

    Format:
    SUMMARY total_count={n} duplicates_count={n} total_items={n} rejected={n}
    total_categories={n} total_price={amount}

    ``total_price`` prints without decimals when the stored sum is whole,
    otherwise with exactly two fractional digits.

    Examples:
        >>> r = ImportResult(total_count=3, duplicates_count=1, total_items=1,
        ...                  total_categories=2, total_price=Decimal("12.50"), rejected_count=1)
        >>> render_summary_line(r)  # doctest: +NORMALIZE_WHITESPACE
        'SUMMARY total_count=3 duplicates_count=1 total_items=1 rejected=1 total_categories=2 total_price=12.50'
    """
    return f"SUMMARY {render_summary_fields(result)}"
