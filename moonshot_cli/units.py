"""
Unit Conversion — Decimal Amounts ↔ Fixed-Point Token Integers
===============================================================

ERC-20 amounts travel on the wire as base-unit integers:
  • alUSD / alpUSD : 18 decimals (1 alUSD = 10^18 wei)
  • YT-alUSD       : 6 decimals
  • USDC           : 6 decimals

to_wei() works on the decimal string so large amounts never pass through
a float; excess fractional digits are truncated, not rounded.
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Union

from moonshot_cli.errors import InvalidInputError

WEI_DECIMALS = 18  # alUSD, alpUSD
YT_DECIMALS = 6
USDC_DECIMALS = 6

Amount = Union[str, int, float, Decimal]


def _decimal_string(amount: Amount) -> str:
    if isinstance(amount, float):
        if not math.isfinite(amount):
            raise InvalidInputError(f"Amount must be finite, got {amount}")
        # repr() gives the shortest round-tripping form (no float noise)
        text = repr(amount)
    else:
        text = str(amount).strip()
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise InvalidInputError(f"Not a number: {amount!r}") from None
    if not value.is_finite():
        raise InvalidInputError(f"Amount must be finite, got {amount}")
    if value < 0:
        raise InvalidInputError(f"Amount must be non-negative, got {amount}")
    if value == 0:
        value = abs(value)  # "-0" -> "0"
    # Normalise exponent notation (1e-7, 2E+3) to plain digits
    return format(value, "f")


def to_wei(amount: Amount, decimals: int = WEI_DECIMALS) -> str:
    """Convert a human-readable amount to a base-unit integer string.

    >>> to_wei("1.5")
    '1500000000000000000'
    >>> to_wei(0)
    '0'
    >>> to_wei("2.1234567", 6)
    '2123456'
    """
    integer_part, _, decimal_part = _decimal_string(amount).partition(".")
    padded = decimal_part.ljust(decimals, "0")[:decimals]
    return (integer_part + padded).lstrip("0") or "0"


def from_wei(raw: Union[str, int, float], decimals: int = WEI_DECIMALS) -> float:
    """Convert a base-unit integer (or numeric string) to a float amount."""
    try:
        value = Decimal(str(raw).strip() or "0")
    except InvalidOperation:
        raise InvalidInputError(f"Not a number: {raw!r}") from None
    return float(value.scaleb(-decimals))


def format_from_wei(
    raw: Union[str, int, float], decimals: int = WEI_DECIMALS, places: int = 6
) -> str:
    """Format a base-unit amount as a fixed-point decimal string.

    >>> format_from_wei("1500000000000000000")
    '1.500000'
    >>> format_from_wei("2500000", 6, 2)
    '2.50'
    """
    return f"{from_wei(raw, decimals):.{places}f}"
