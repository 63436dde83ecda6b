"""
Lease Revenue Calculations (``windpark_modules.lease_revenue.calculations``).

Responsibility
--------------
Pure functions that turn a ``SettlementCalculationInput`` into fee
components per lease (FINAL and ADVANCE), select the revenue phase for a
settlement year and split a settlement among operator funds.

Architecture position
---------------------
**Modules layer** -- pure calculation helpers.  ZERO I/O, no session, no
clock.  Called by ``LeaseRevenueSettlementService``.

Invariants enforced
-------------------
* All arithmetic is ``Decimal``; money is rounded half-up to cents with
  ``round_money``, share percentages to 4 places with ``round_percent``.
* Each lease is rounded independently.  The park totals are not
  reconciled against the sum of lease fees here; any cent difference is
  resolved when invoice lines are built.
* The minimum guarantee floor applies to the whole park, never per lease.

Failure modes
-------------
* None.  Zero denominators (no pool area, no turbines) yield zero shares.

Audit relevance
---------------
* ``used_minimum`` records whether the floor replaced the revenue-based
  fee; it is copied into the settlement header.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import Protocol

from windpark_kernel.db.types import HUNDRED, ZERO, round_money, round_percent
from windpark_kernel.logging_config import get_logger
from windpark_kernel.models.park import DistributionMode
from windpark_modules.lease_revenue.models import (
    AdvanceInterval,
    AllocationItemResult,
    AllocationResult,
    LeaseCalculationInput,
    LeaseFeeResult,
    OperatorShare,
    SettlementCalculationInput,
    SettlementCalculationResult,
)

logger = get_logger("modules.lease_revenue.calculations")


class RevenuePhaseLike(Protocol):
    start_year: int
    end_year: int | None
    revenue_share_percentage: Decimal


_INTERVAL_DIVISORS: dict[AdvanceInterval, int] = {
    AdvanceInterval.YEARLY: 1,
    AdvanceInterval.QUARTERLY: 4,
    AdvanceInterval.MONTHLY: 12,
}


def interval_divisor(advance_interval: AdvanceInterval | str | None) -> int:
    """Number of advance periods per year (1 when no interval is set)."""
    if advance_interval is None:
        return 1
    return _INTERVAL_DIVISORS[AdvanceInterval(advance_interval)]


def get_active_revenue_phase(
    phases: Sequence[RevenuePhaseLike],
    commissioning_year: int,
    settlement_year: int,
) -> RevenuePhaseLike | None:
    """
    Revenue phase covering the settlement year.

    Years in operation count from 1 in the commissioning year.  A phase
    without ``end_year`` is open-ended.  The first matching phase wins.
    """
    years_in_operation = settlement_year - commissioning_year + 1
    for phase in phases:
        if years_in_operation < phase.start_year:
            continue
        if phase.end_year is None or years_in_operation <= phase.end_year:
            return phase
    return None


# =============================================================================
# FINAL settlement
# =============================================================================


def _lease_fees(
    lease: LeaseCalculationInput,
    pool_fee: Decimal,
    pool_share_percent: Decimal,
    standort_fee: Decimal,
    sealed_area_fee: Decimal,
    road_usage_fee: Decimal,
    cable_fee: Decimal,
) -> LeaseFeeResult:
    subtotal = round_money(pool_fee + standort_fee + sealed_area_fee + road_usage_fee + cable_fee)
    return LeaseFeeResult(
        lease_id=lease.lease_id,
        lessor_person_id=lease.lessor_person_id,
        pool_area_sqm=lease.pool_area_sqm,
        pool_area_share_percent=pool_share_percent,
        pool_fee_eur=pool_fee,
        turbine_count=lease.turbine_count,
        standort_fee_eur=standort_fee,
        sealed_area_sqm=lease.sealed_area_sqm,
        sealed_area_rate=lease.sealed_area_rate,
        sealed_area_fee_eur=sealed_area_fee,
        road_usage_fee_eur=road_usage_fee,
        cable_fee_eur=cable_fee,
        subtotal_eur=subtotal,
        taxable_amount_eur=round_money(pool_fee),
        exempt_amount_eur=round_money(standort_fee + sealed_area_fee + road_usage_fee + cable_fee),
        direct_billing_fund_id=lease.direct_billing_fund_id,
    )


def _pool_share_percent(lease_pool_sqm: Decimal, total_pool_sqm: Decimal) -> Decimal:
    if total_pool_sqm <= ZERO:
        return ZERO
    return round_percent(lease_pool_sqm / total_pool_sqm * HUNDRED)


def _standort_share(total: Decimal, turbine_count: int, total_wea_count: int) -> Decimal:
    if total_wea_count <= 0:
        return ZERO
    return round_money(total * turbine_count / total_wea_count)


def calculate_settlement_fees(data: SettlementCalculationInput) -> SettlementCalculationResult:
    """
    Annual (FINAL) fees for every lease of a park.

    The revenue-based fee is compared against the minimum guarantee
    (minimum rent per turbine times turbine count); the larger one is
    split into the WEA-site pool and the area pool, which are then
    distributed by turbine count and pool area respectively.  Surcharges
    (sealed area, road usage, cable route) are added per lease.
    """
    calculated_fee = round_money(
        data.total_park_revenue_eur * data.revenue_share_percent / HUNDRED
    )
    minimum_guarantee = round_money(data.minimum_rent_per_turbine * data.total_wea_count)
    actual_fee = max(calculated_fee, minimum_guarantee)
    used_minimum = minimum_guarantee >= calculated_fee

    wea_standort_total = round_money(actual_fee * data.wea_share_percentage / HUNDRED)
    pool_area_total = round_money(actual_fee * data.pool_share_percentage / HUNDRED)

    items = []
    for lease in data.leases:
        share_percent = _pool_share_percent(lease.pool_area_sqm, data.total_pool_area_sqm)
        items.append(_lease_fees(
            lease,
            pool_fee=round_money(pool_area_total * share_percent / HUNDRED),
            pool_share_percent=share_percent,
            standort_fee=_standort_share(
                wea_standort_total, lease.turbine_count, data.total_wea_count
            ),
            sealed_area_fee=round_money(lease.sealed_area_sqm * lease.sealed_area_rate),
            road_usage_fee=round_money(lease.road_usage_fee_eur),
            cable_fee=round_money(lease.cable_length_m * lease.cable_rate),
        ))

    logger.debug(
        "settlement_fees_calculated",
        extra={
            "park_id": str(data.park_id),
            "year": data.year,
            "calculated_fee_eur": str(calculated_fee),
            "minimum_guarantee_eur": str(minimum_guarantee),
            "used_minimum": used_minimum,
            "lease_count": len(items),
        },
    )

    return SettlementCalculationResult(
        calculated_fee_eur=calculated_fee,
        minimum_guarantee_eur=minimum_guarantee,
        actual_fee_eur=actual_fee,
        used_minimum=used_minimum,
        wea_standort_total_eur=wea_standort_total,
        pool_area_total_eur=pool_area_total,
        items=tuple(items),
    )


# =============================================================================
# ADVANCE settlement
# =============================================================================


def calculate_advance_fees(
    data: SettlementCalculationInput,
    advance_interval: AdvanceInterval | str | None,
) -> SettlementCalculationResult:
    """
    Advance fees for one period, based on the minimum guarantee only.

    The yearly minimum guarantee and every surcharge are divided by the
    number of periods per year.  Revenue is not known yet, so the
    revenue-based fee is reported as 0 and the floor is always used.
    """
    divisor = interval_divisor(advance_interval)

    yearly_minimum = round_money(data.minimum_rent_per_turbine * data.total_wea_count)
    period_amount = round_money(yearly_minimum / divisor)

    wea_standort_total = round_money(period_amount * data.wea_share_percentage / HUNDRED)
    pool_area_total = round_money(period_amount * data.pool_share_percentage / HUNDRED)

    items = []
    for lease in data.leases:
        share_percent = _pool_share_percent(lease.pool_area_sqm, data.total_pool_area_sqm)
        items.append(_lease_fees(
            lease,
            pool_fee=round_money(pool_area_total * share_percent / HUNDRED),
            pool_share_percent=share_percent,
            standort_fee=_standort_share(
                wea_standort_total, lease.turbine_count, data.total_wea_count
            ),
            sealed_area_fee=round_money(
                lease.sealed_area_sqm * lease.sealed_area_rate / divisor
            ),
            road_usage_fee=round_money(lease.road_usage_fee_eur / divisor),
            cable_fee=round_money(lease.cable_length_m * lease.cable_rate / divisor),
        ))

    actual_fee = round_money(sum((item.subtotal_eur for item in items), ZERO))

    logger.debug(
        "advance_fees_calculated",
        extra={
            "park_id": str(data.park_id),
            "year": data.year,
            "advance_interval": AdvanceInterval(advance_interval).value if advance_interval else None,
            "period_amount_eur": str(period_amount),
            "lease_count": len(items),
        },
    )

    return SettlementCalculationResult(
        calculated_fee_eur=ZERO,
        minimum_guarantee_eur=period_amount,
        actual_fee_eur=actual_fee,
        used_minimum=True,
        wea_standort_total_eur=wea_standort_total,
        pool_area_total_eur=pool_area_total,
        items=tuple(items),
    )


# =============================================================================
# Cost allocation
# =============================================================================


def calculate_cost_allocation(
    total_taxable_eur: Decimal,
    total_exempt_eur: Decimal,
    operators: Sequence[OperatorShare],
    distribution_mode: DistributionMode | str,
    vat_rate: Decimal,
    direct_billing_by_fund: dict | None = None,
) -> AllocationResult:
    """
    Split a settlement's taxable and exempt totals among operator funds.

    PROPORTIONAL uses each operator's share of all turbines; SMOOTHED and
    TOLERATED use the share of tolerated (DULDUNG) turbines.  Amounts the
    landowners already invoiced directly to an operator are deducted from
    its net payable.
    """
    mode = DistributionMode(distribution_mode)
    direct_billing_by_fund = direct_billing_by_fund or {}

    items = []
    for operator in operators:
        share = (
            operator.total_share_percent
            if mode == DistributionMode.PROPORTIONAL
            else operator.duldung_share_percent
        )
        taxable = round_money(total_taxable_eur * share / HUNDRED)
        exempt = round_money(total_exempt_eur * share / HUNDRED)
        allocated = round_money(taxable + exempt)
        direct = round_money(direct_billing_by_fund.get(operator.operator_fund_id, ZERO))

        items.append(AllocationItemResult(
            operator_fund_id=operator.operator_fund_id,
            allocation_basis=operator.allocation_basis,
            allocation_share_percent=round_percent(share),
            total_allocated_eur=allocated,
            direct_settlement_eur=direct,
            taxable_amount_eur=taxable,
            taxable_vat_eur=round_money(taxable * vat_rate / HUNDRED),
            exempt_amount_eur=exempt,
            net_payable_eur=round_money(allocated - direct),
        ))

    return AllocationResult(
        total_usage_fee_eur=round_money(total_taxable_eur + total_exempt_eur),
        total_taxable_eur=round_money(total_taxable_eur),
        total_exempt_eur=round_money(total_exempt_eur),
        items=tuple(items),
    )
