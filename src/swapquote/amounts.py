"""Arbitrary-precision amount helpers.

Native amounts travel as integer strings. Intermediate math runs on
Decimal inside a wide local context so that no step silently loses
precision the way the default 28-digit context would.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Context, Decimal, localcontext
from typing import Union

Amount = Union[str, int, Decimal]

# Wide enough for wei-denominated balances multiplied by 1e18 ratios
_CONTEXT = Context(prec=80, rounding=ROUND_HALF_UP)

DIVIDE_PRECISION = 18


def to_decimal(value: Amount) -> Decimal:
    """Convert an amount to Decimal, rejecting floats."""
    if isinstance(value, float):
        raise TypeError("Amounts must not be floats")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def add(a: Amount, b: Amount) -> Decimal:
    with localcontext(_CONTEXT):
        return to_decimal(a) + to_decimal(b)


def sub(a: Amount, b: Amount) -> Decimal:
    with localcontext(_CONTEXT):
        return to_decimal(a) - to_decimal(b)


def mul(a: Amount, b: Amount) -> Decimal:
    with localcontext(_CONTEXT):
        return to_decimal(a) * to_decimal(b)


def div18(a: Amount, b: Amount) -> Decimal:
    """Divide, truncating the result to 18 decimal places."""
    with localcontext(_CONTEXT):
        quotient = to_decimal(a) / to_decimal(b)
        return quotient.quantize(Decimal(1).scaleb(-DIVIDE_PRECISION), rounding=ROUND_DOWN)


def round_half_up(value: Amount) -> Decimal:
    """Round to an integer, halves away from zero."""
    with localcontext(_CONTEXT):
        return to_decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP)


def to_native_string(value: Amount) -> str:
    """Render an integral amount as a plain integer string (no exponent)."""
    rounded = round_half_up(value)
    return format(rounded, "f")


def format_amount(value: Amount) -> str:
    """Render an amount without exponent notation or trailing zeros."""
    dec = to_decimal(value)
    with localcontext(_CONTEXT):
        if dec == dec.to_integral_value():
            return format(dec.quantize(Decimal(1)), "f")
        return format(dec.normalize(), "f")


def gt(a: Amount, b: Amount) -> bool:
    return to_decimal(a) > to_decimal(b)
