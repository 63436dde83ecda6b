"""
Lease Revenue Module.

Responsibility:
    Landowner lease fees (Nutzungsentgelt) of a wind park: revenue-based
    fee with a per-turbine minimum guarantee, split into turbine-site and
    pool-area shares plus sealed-area, road and cable surcharges.  Covers
    advance and final settlements, credit notes to landowners and the
    allocation of the fees to the operator funds.

Architecture:
    windpark_modules -- business modules (this layer).
    Pure arithmetic in ``calculations.py``; database reads in ``loader.py``;
    documents in ``invoicing.py``; orchestration in ``service.py``.

Invariants:
    - All monetary amounts use ``Decimal`` -- NEVER ``float``.
    - Status changes follow the workflows in ``workflows.py``.
"""

from windpark_modules.lease_revenue.calculations import (
    calculate_advance_fees,
    calculate_cost_allocation,
    calculate_settlement_fees,
    get_active_revenue_phase,
)
from windpark_modules.lease_revenue.config import LeaseRevenueConfig
from windpark_modules.lease_revenue.invoicing import LeaseRevenueInvoiceGenerator
from windpark_modules.lease_revenue.loader import SettlementDataLoader
from windpark_modules.lease_revenue.models import (
    AdvanceInterval,
    AllocationStatus,
    GenerateInvoiceResult,
    PeriodType,
    RevenueDisplayMode,
    RevenueSource,
    SettlementStatus,
)
from windpark_modules.lease_revenue.service import LeaseRevenueSettlementService
from windpark_modules.lease_revenue.workflows import (
    COST_ALLOCATION_WORKFLOW,
    LEASE_REVENUE_SETTLEMENT_WORKFLOW,
)

__all__ = [
    "SettlementStatus",
    "PeriodType",
    "AdvanceInterval",
    "AllocationStatus",
    "RevenueDisplayMode",
    "RevenueSource",
    "GenerateInvoiceResult",
    "calculate_settlement_fees",
    "calculate_advance_fees",
    "calculate_cost_allocation",
    "get_active_revenue_phase",
    "LeaseRevenueConfig",
    "SettlementDataLoader",
    "LeaseRevenueInvoiceGenerator",
    "LeaseRevenueSettlementService",
    "LEASE_REVENUE_SETTLEMENT_WORKFLOW",
    "COST_ALLOCATION_WORKFLOW",
]
