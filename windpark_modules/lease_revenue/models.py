"""
Lease Revenue Domain Models (``windpark_modules.lease_revenue.models``).

Responsibility
--------------
Enums and frozen dataclass value objects for the landowner settlement:
calculation inputs per park and lease, calculation results, operator
shares and cost allocation results, annex rows for the credit note
(revenue table, turbine productions, fee positions) and the result of an
invoice generation run.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by
``loader`` and ``calculations``, consumed by ``service`` and
``invoicing``.

Invariants enforced
-------------------
* Calculation models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.  Floats appear
  only in ``to_dict()`` output destined for JSON snapshot columns.

Failure modes
-------------
* Construction with invalid enum values raises ``ValueError``.

Audit relevance
---------------
* ``to_dict()`` output is frozen into ``calculation_details`` of the
  settlement and of each final credit note, so the document can be
  reproduced without the master data it was computed from.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from windpark_kernel.db.types import ZERO, to_decimal


class SettlementStatus(str, Enum):
    """Lease revenue settlement lifecycle states."""
    OPEN = "OPEN"
    CALCULATED = "CALCULATED"
    ADVANCE_CREATED = "ADVANCE_CREATED"
    SETTLED = "SETTLED"
    PENDING_REVIEW = "PENDING_REVIEW"
    APPROVED = "APPROVED"
    CLOSED = "CLOSED"


class PeriodType(str, Enum):
    ADVANCE = "ADVANCE"
    FINAL = "FINAL"


class AdvanceInterval(str, Enum):
    YEARLY = "YEARLY"
    QUARTERLY = "QUARTERLY"
    MONTHLY = "MONTHLY"


class AllocationStatus(str, Enum):
    """Park cost allocation lifecycle states."""
    DRAFT = "DRAFT"
    INVOICED = "INVOICED"
    CLOSED = "CLOSED"


class RevenueDisplayMode(str, Enum):
    """How the revenue table on the final credit note groups energy revenue."""
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


# Settlement statuses whose ADVANCE items count as paid advances
ADVANCE_PAID_STATUSES: tuple[str, ...] = (
    SettlementStatus.CALCULATED.value,
    SettlementStatus.SETTLED.value,
    SettlementStatus.ADVANCE_CREATED.value,
    SettlementStatus.PENDING_REVIEW.value,
    SettlementStatus.APPROVED.value,
    SettlementStatus.CLOSED.value,
)

# Settlement statuses a cost allocation may be created from
ALLOCATABLE_STATUSES: tuple[str, ...] = (
    SettlementStatus.CALCULATED.value,
    SettlementStatus.SETTLED.value,
    SettlementStatus.ADVANCE_CREATED.value,
)


def _num(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


# =============================================================================
# Calculation input
# =============================================================================


@dataclass(frozen=True)
class LeaseCalculationInput:
    """Per-lease quantities folded from plot areas."""
    lease_id: UUID
    lessor_person_id: UUID
    pool_area_sqm: Decimal = ZERO
    turbine_count: int = 0
    sealed_area_sqm: Decimal = ZERO
    sealed_area_rate: Decimal = ZERO
    road_usage_fee_eur: Decimal = ZERO
    cable_length_m: Decimal = ZERO
    cable_rate: Decimal = ZERO
    direct_billing_fund_id: UUID | None = None


@dataclass(frozen=True)
class SettlementCalculationInput:
    """Everything the calculator needs for one park and year."""
    park_id: UUID
    year: int
    total_park_revenue_eur: Decimal
    revenue_share_percent: Decimal
    minimum_rent_per_turbine: Decimal
    wea_share_percentage: Decimal
    pool_share_percentage: Decimal
    total_wea_count: int
    total_pool_area_sqm: Decimal
    leases: tuple[LeaseCalculationInput, ...] = ()


# =============================================================================
# Calculation result
# =============================================================================


@dataclass(frozen=True)
class LeaseFeeResult:
    """Fee components of one lease."""
    lease_id: UUID
    lessor_person_id: UUID
    pool_area_sqm: Decimal
    pool_area_share_percent: Decimal
    pool_fee_eur: Decimal
    turbine_count: int
    standort_fee_eur: Decimal
    sealed_area_sqm: Decimal
    sealed_area_rate: Decimal
    sealed_area_fee_eur: Decimal
    road_usage_fee_eur: Decimal
    cable_fee_eur: Decimal
    subtotal_eur: Decimal
    taxable_amount_eur: Decimal
    exempt_amount_eur: Decimal
    direct_billing_fund_id: UUID | None = None


@dataclass(frozen=True)
class SettlementCalculationResult:
    """
    Park-level totals plus one ``LeaseFeeResult`` per lease.

    Guarantees:
        ``actual_fee_eur`` is the floor-applied annual fee for FINAL and
        the sum of item subtotals for ADVANCE.
    """
    calculated_fee_eur: Decimal
    minimum_guarantee_eur: Decimal
    actual_fee_eur: Decimal
    used_minimum: bool
    wea_standort_total_eur: Decimal
    pool_area_total_eur: Decimal
    items: tuple[LeaseFeeResult, ...] = ()


@dataclass(frozen=True)
class AdvancePayments:
    """Advance subtotals already settled for a park and year."""
    total_paid_eur: Decimal
    per_lease: dict[UUID, Decimal] = field(default_factory=dict)

    def for_lease(self, lease_id: UUID) -> Decimal:
        return self.per_lease.get(lease_id, ZERO)


@dataclass(frozen=True)
class AdvanceComponentBreakdown:
    """Per-component sums of the advances of one lease."""
    total_eur: Decimal = ZERO
    pool_fee_eur: Decimal = ZERO
    standort_fee_eur: Decimal = ZERO
    sealed_area_fee_eur: Decimal = ZERO
    road_usage_fee_eur: Decimal = ZERO
    cable_fee_eur: Decimal = ZERO


# =============================================================================
# Credit note annex
# =============================================================================


@dataclass(frozen=True)
class RevenueSource:
    """A revenue line entered with a manual calculation (e.g. from a statement)."""
    category: str
    production_kwh: Decimal
    revenue_eur: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "productionKwh": _num(self.production_kwh),
            "revenueEur": _num(self.revenue_eur),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RevenueSource":
        return cls(
            category=data.get("category") or "Einspeisung",
            production_kwh=to_decimal(data.get("productionKwh")),
            revenue_eur=to_decimal(data.get("revenueEur")),
        )


@dataclass(frozen=True)
class RevenueTableEntry:
    """One row of the revenue table (category, ct/kWh, kWh, EUR)."""
    category: str
    rate_ct_per_kwh: Decimal
    production_kwh: Decimal
    revenue_eur: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "rateCtPerKwh": _num(self.rate_ct_per_kwh),
            "productionKwh": _num(self.production_kwh),
            "revenueEur": _num(self.revenue_eur),
        }


@dataclass(frozen=True)
class TurbineProductionEntry:
    """Yearly production of one turbine."""
    designation: str
    production_kwh: Decimal
    operating_hours: Decimal | None
    availability_pct: Decimal | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "designation": self.designation,
            "productionKwh": _num(self.production_kwh),
            "operatingHours": _num(self.operating_hours),
            "availabilityPct": _num(self.availability_pct),
        }


@dataclass(frozen=True)
class FeePosition:
    """A fee or advance offset shown on the final credit note annex."""
    description: str
    net_amount: Decimal
    tax_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "netAmount": _num(self.net_amount),
            "taxType": self.tax_type,
        }


# =============================================================================
# Cost allocation
# =============================================================================


@dataclass(frozen=True)
class OperatorShare:
    """Turbine count and share of one operator fund for a year."""
    operator_fund_id: UUID
    operator_name: str
    total_turbine_count: int
    duldung_turbine_count: int
    total_share_percent: Decimal
    duldung_share_percent: Decimal
    allocation_basis: str


@dataclass(frozen=True)
class AllocationItemResult:
    """Amounts owed by one operator fund."""
    operator_fund_id: UUID
    allocation_basis: str
    allocation_share_percent: Decimal
    total_allocated_eur: Decimal
    direct_settlement_eur: Decimal
    taxable_amount_eur: Decimal
    taxable_vat_eur: Decimal
    exempt_amount_eur: Decimal
    net_payable_eur: Decimal


@dataclass(frozen=True)
class AllocationResult:
    total_usage_fee_eur: Decimal
    total_taxable_eur: Decimal
    total_exempt_eur: Decimal
    items: tuple[AllocationItemResult, ...] = ()


# =============================================================================
# Invoice generation
# =============================================================================


@dataclass
class GenerateInvoiceResult:
    """Outcome of one generator run.  Precondition failures land in ``errors``."""
    created: int = 0
    skipped: int = 0
    invoice_ids: list[UUID] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": self.created,
            "skipped": self.skipped,
            "invoice_ids": [str(i) for i in self.invoice_ids],
            "errors": list(self.errors),
        }
