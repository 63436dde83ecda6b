"""
Module: windpark_kernel.db.types
Responsibility: Decimal constants and rounding helpers for money and
    percentages.  Centralizes precision so that every calculator and
    service rounds the same way.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and all modules.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in settlement or invoice arithmetic.  Every amount
      is a Decimal; values crossing a float boundary (JSON snapshots) go
      through to_decimal() on the way back in.
    - round_money() (cents) and round_percent() (4 places) are the ONLY
      sanctioned rounding functions.  Both round half-up.

Failure modes:
    - decimal.InvalidOperation on non-numeric input to to_decimal().

Audit relevance:
    Settlement amounts must reproduce historical credit notes to the cent.
    Consistent rounding here is what makes recalculation reproducible.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any


MONEY_DECIMAL_PLACES = 2
PERCENT_DECIMAL_PLACES = 4
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """
    Convert an int, str, float or Decimal to Decimal.

    Floats go through ``str()`` so that 0.1 becomes Decimal("0.1") and not
    its binary expansion.  None maps to zero.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to cent precision (half-up).

    Preconditions: value is a Decimal.
    Postconditions: Returns value quantized to ``decimal_places``.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def round_percent(value: Decimal) -> Decimal:
    """Round a share percentage to 4 decimal places (half-up)."""
    return round_money(value, PERCENT_DECIMAL_PLACES)
