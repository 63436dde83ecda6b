"""
Tax calculations -- pure functions, no I/O.

All amounts are Decimal and rounded half-up to cents.
"""

from decimal import Decimal

from windpark_kernel.db.types import HUNDRED, ZERO, round_money
from windpark_modules.tax.models import TaxAmounts, TaxType


def calculate_tax_amounts(
    net_amount: Decimal,
    tax_type: TaxType | str,
    tax_rate: Decimal,
) -> TaxAmounts:
    """
    Tax and gross amount for a net line amount.

    tax = round2(net * rate / 100), gross = net + tax.  EXEMPT lines
    always use a 0 % rate, whatever ``tax_rate`` says.
    """
    net = round_money(net_amount)
    rate = ZERO if TaxType(tax_type) == TaxType.EXEMPT else tax_rate
    tax = round_money(net * rate / HUNDRED)
    return TaxAmounts(
        net_amount=net,
        tax_rate=rate,
        tax_amount=tax,
        gross_amount=net + tax,
    )
