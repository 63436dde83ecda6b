"""
Tax Module.

Responsibility:
    Tenant tax configuration for settlement documents: dated VAT rates,
    the fee-position tax map, tenant document settings and gap-free
    invoice numbering.

Architecture:
    windpark_modules -- business modules (this layer).
    Tax arithmetic lives in ``calculations.py``; number allocation sits on
    the kernel ``SequenceService``.

Invariants:
    - All monetary amounts use ``Decimal`` -- NEVER ``float``.
    - Missing tax rates raise ``TaxRateNotFoundError`` instead of
      defaulting to 0 %.
"""

from windpark_modules.tax.calculations import calculate_tax_amounts
from windpark_modules.tax.models import (
    DEFAULT_POSITION_TAX_MAP,
    PositionType,
    TaxAmounts,
    TaxType,
    TenantSettings,
)
from windpark_modules.tax.numbering import InvoiceNumberService
from windpark_modules.tax.service import TaxConfigurationService

__all__ = [
    "TaxType",
    "PositionType",
    "TaxAmounts",
    "TenantSettings",
    "DEFAULT_POSITION_TAX_MAP",
    "calculate_tax_amounts",
    "TaxConfigurationService",
    "InvoiceNumberService",
]
