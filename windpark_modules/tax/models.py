"""
Tax Domain Models.

Responsibility:
    Frozen dataclass DTOs and enums for German VAT handling of settlement
    documents: tax types, settlement fee positions and computed tax
    amounts.

Architecture:
    windpark_modules -- business modules (this layer).
    Pure data containers with no I/O and no ORM coupling.

Invariants:
    - All models are ``frozen=True`` (immutable after construction).
    - All monetary fields use ``Decimal`` -- NEVER ``float``.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID


class TaxType(str, Enum):
    """VAT categories (UStG)."""
    STANDARD = "STANDARD"
    REDUCED = "REDUCED"
    EXEMPT = "EXEMPT"


class PositionType(str, Enum):
    """Fee components of a lease settlement that carry a tax type."""
    POOL_AREA = "POOL_AREA"
    TURBINE_SITE = "TURBINE_SITE"
    SEALED_AREA = "SEALED_AREA"
    ROAD_USAGE = "ROAD_USAGE"
    CABLE_ROUTE = "CABLE_ROUTE"


# Pool share is a taxable service; land use for site, roads and cables is
# exempt under section 4 no. 12 UStG.
DEFAULT_POSITION_TAX_MAP: dict[PositionType, TaxType] = {
    PositionType.POOL_AREA: TaxType.STANDARD,
    PositionType.TURBINE_SITE: TaxType.EXEMPT,
    PositionType.SEALED_AREA: TaxType.EXEMPT,
    PositionType.ROAD_USAGE: TaxType.EXEMPT,
    PositionType.CABLE_ROUTE: TaxType.EXEMPT,
}


@dataclass(frozen=True)
class TaxAmounts:
    """Net, tax and gross amount of one invoice line."""
    net_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    gross_amount: Decimal


@dataclass(frozen=True)
class TenantSettings:
    """Tenant-level document settings."""
    tenant_id: UUID
    tax_exempt_note: str
    payment_term_days: int = 30
    invoice_retention_years: int = 10
    contract_retention_years: int = 10
