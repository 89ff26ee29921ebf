"""Fixed-precision helpers shared by the ledger, the market and the reports."""

from decimal import ROUND_DOWN, ROUND_HALF_EVEN, Context, Decimal, localcontext
from functools import lru_cache
from typing import Union

Number = Union[Decimal, float, int, str]

ZERO = Decimal(0)

# Digits a configured amount may occupy at its precision.
MAX_AMOUNT_DIGITS = 28

# Products of two amounts (price x supply) must stay exact.
LEDGER_CONTEXT = Context(prec=3 * MAX_AMOUNT_DIGITS, rounding=ROUND_HALF_EVEN)


def ledger_context():
    """Decimal context a run executes in."""
    return localcontext(LEDGER_CONTEXT)


@lru_cache(maxsize=None)
def quantum(precision: int) -> Decimal:
    """Smallest positive amount representable at ``precision`` digits."""
    return Decimal(1).scaleb(-precision)


def digits_needed(value: Number, precision: int) -> int:
    """Significant digits ``value`` occupies once quantized to ``precision``."""
    value = Decimal(value)
    integer_digits = value.adjusted() + 1 if value >= 1 else 1
    return integer_digits + precision


def quantize(value: Number, precision: int, rounding: str = ROUND_HALF_EVEN) -> Decimal:
    """Round ``value`` to ``precision`` fractional digits.

    Floats go through ``repr`` so that ``0.1`` becomes ``Decimal("0.1")`` and
    not its binary expansion.
    """
    if isinstance(value, float):
        value = Decimal(repr(value))
    elif not isinstance(value, Decimal):
        value = Decimal(value)
    return value.quantize(quantum(precision), rounding=rounding, context=LEDGER_CONTEXT)


def quantize_down(value: Number, precision: int) -> Decimal:
    return quantize(value, precision, rounding=ROUND_DOWN)


def percent_of(amount: Decimal, percentage: Decimal, precision: int) -> Decimal:
    """``percentage`` percent of ``amount``, rounded half-even."""
    return quantize(amount * percentage / Decimal(100), precision)
