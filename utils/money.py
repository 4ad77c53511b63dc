"""
Money helpers. All monetary values are Decimal, rounded to cents half-up.
"""
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

MoneyLike = Union[Decimal, int, str]


def to_money(value: MoneyLike) -> Decimal:
     """Convert to Decimal without going through float."""
     if isinstance(value, float):
          raise TypeError("Money values must not be floats; pass a Decimal or string")
     return value if isinstance(value, Decimal) else Decimal(str(value))


def quantize_money(value: MoneyLike) -> Decimal:
     """Round to 2 decimal places using ROUND_HALF_UP."""
     return to_money(value).quantize(CENT, rounding=ROUND_HALF_UP)


def floor_money(value: MoneyLike) -> Decimal:
     """Truncate to 2 decimal places (towards zero)."""
     return to_money(value).quantize(CENT, rounding=ROUND_DOWN)
