"""
Money Helpers

Single-currency Decimal arithmetic with two-decimal precision.
NEVER uses float for monetary values.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from typing import Union

from .errors import ValidationError

# High precision for intermediate amortization math
getcontext().prec = 28

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

AmountLike = Union[Decimal, int, str, float]


def to_decimal(value: AmountLike) -> Decimal:
    """Convert a value to Decimal without going through binary float"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value: AmountLike) -> Decimal:
    """Round to cents using ROUND_HALF_UP"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: AmountLike) -> str:
    """Format for display and log messages"""
    return f"{quantize(value):,.2f}"


def parse_amount(value: AmountLike, field_name: str = "amount") -> Decimal:
    """Caller input as an exact cent amount, raising ValidationError otherwise"""
    label = field_name.capitalize()
    try:
        raw = to_decimal(value)
        if not raw.is_finite():
            raise ValidationError(f"{label} must be finite", {field_name: str(value)})
        amount = quantize(raw)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(f"{label} must be a decimal number",
                              {field_name: str(value)}) from exc
    if amount != raw:
        raise ValidationError(f"{label} cannot have more than two decimal places",
                              {field_name: str(value)})
    return amount
