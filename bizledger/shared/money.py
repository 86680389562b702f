"""Money helpers shared by the ledger and its surfaces"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from ..config import CURRENCY_MINOR_UNITS

ZERO = Decimal("0")

# Smallest currency subunit, e.g. Decimal("0.01") for cents
MINOR_UNIT = Decimal(1).scaleb(-CURRENCY_MINOR_UNITS)

# Tolerance for monetary comparisons: half a minor unit
EPSILON = MINOR_UNIT / 2


def to_decimal(value: Any) -> Decimal:
    """
    Lenient conversion for values read back from the store.

    Anything that is not a finite number (None, garbage strings, NaN) becomes 0.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    if not result.is_finite():
        return ZERO
    return result


def round_money(value: Decimal) -> Decimal:
    """Round to the currency minor unit (half up)"""
    return value.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def parse_money(value: Any, field_name: str = "amount") -> Decimal:
    """
    Strict parse of an incoming amount.

    Returns the amount rounded to the minor unit.

    Raises:
        ValueError: If the value is missing, not a finite number, or not positive
            once rounded
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"{field_name} must be a positive number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"{field_name} must be a positive number") from None
    if not amount.is_finite():
        raise ValueError(f"{field_name} must be a positive number")

    amount = round_money(amount)
    if amount <= ZERO:
        raise ValueError(f"{field_name} must be a positive number")
    return amount


def exceeds(amount: Decimal, limit: Decimal) -> bool:
    """True when `amount` is larger than `limit` beyond the rounding tolerance"""
    return amount > limit + EPSILON


def split_amount_evenly(total: Decimal, count: int) -> list[Decimal]:
    """
    Split `total` into `count` parts that add up exactly.

    Leftover minor units go to the first parts.
    """
    if count <= 0:
        return []
    units = int(round_money(total) / MINOR_UNIT)
    base, leftover = divmod(units, count)
    return [(base + (1 if index < leftover else 0)) * MINOR_UNIT for index in range(count)]


def as_float(value: Decimal) -> float:
    """Convert a ledger amount for JSON responses"""
    return float(round_money(value))
