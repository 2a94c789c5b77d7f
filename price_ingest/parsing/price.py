from __future__ import annotations

"""Price canonicalization.

Prices are converted to integer cents with exact integer arithmetic and the
decimal text is always regenerated from the cents value, never copied from
the input. Accepted grammar: optional digits, optionally followed by a single
``.`` and one or two digits. A bare leading ``.`` reads as ``0.``.
"""

__all__ = [
    "MAX_CENTS",
    "InvalidPriceError",
    "canonicalize_price",
    "format_cents",
]

_DIGITS = frozenset("0123456789")

# largest value a NUMERIC(12,2) column holds: 9999999999.99
MAX_CENTS = 10**12 - 1


class InvalidPriceError(ValueError):
    """Raised when a price text is rejected.

    ``reason`` is an UPPER_SNAKE code suitable for the error log.
    """

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason


def format_cents(cents: int) -> str:
    whole, frac = divmod(cents, 100)
    return f"{whole}.{frac:02d}"


def _all_digits(part: str) -> bool:
    return bool(part) and all(ch in _DIGITS for ch in part)


def canonicalize_price(text: str) -> tuple[int, str]:
    """Return ``(cents, canonical_decimal)`` for a price text.

    Raises InvalidPriceError for blank text, comma separators, malformed
    numbers, more than two fractional digits, a value of zero, or a value
    too large for the storage column.

    >>> canonicalize_price("5")
    (500, '5.00')
    >>> canonicalize_price(".5")
    (50, '0.50')
    """
    s = text.strip()
    if not s:
        raise InvalidPriceError("EMPTY", "empty price")
    if "," in s:
        raise InvalidPriceError("COMMA_SEPARATOR", "price must use '.' as decimal separator")
    if s.startswith("."):
        s = "0" + s

    parts = s.split(".")
    if len(parts) > 2 or not _all_digits(parts[0]):
        raise InvalidPriceError("MALFORMED", f"bad price {text!r}")

    frac = ""
    if len(parts) == 2:
        frac = parts[1]
        if not _all_digits(frac):
            raise InvalidPriceError("MALFORMED", f"bad price {text!r}")
        if len(frac) > 2:
            raise InvalidPriceError("TOO_MANY_FRACTION_DIGITS", f"too many fractional digits in {text!r}")

    cents = int(parts[0]) * 100 + int(frac.ljust(2, "0"))
    if cents <= 0:
        raise InvalidPriceError("NON_POSITIVE", f"non-positive price {text!r}")
    if cents > MAX_CENTS:
        raise InvalidPriceError("OUT_OF_RANGE", f"price {text!r} exceeds {format_cents(MAX_CENTS)}")
    return cents, format_cents(cents)
