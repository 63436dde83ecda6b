"""
Tests for the pure lease revenue calculations.

Covers:
- Revenue phase selection by year in operation
- FINAL fees: revenue share, minimum guarantee floor, pool and WEA split
- Per-lease surcharges and taxable / exempt split
- ADVANCE fees per interval
- Cost allocation among operator funds
"""

from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from windpark_kernel.models.park import DistributionMode
from windpark_modules.lease_revenue.calculations import (
    calculate_advance_fees,
    calculate_cost_allocation,
    calculate_settlement_fees,
    get_active_revenue_phase,
    interval_divisor,
)
from windpark_modules.lease_revenue.models import (
    AdvanceInterval,
    LeaseCalculationInput,
    OperatorShare,
    SettlementCalculationInput,
)

MUELLER_ID = uuid4()
AGRAR_ID = uuid4()


def make_input(revenue: str = "1000000.00") -> SettlementCalculationInput:
    """Three turbines, 10,000 EUR minimum each, 8 % of revenue, 10/90 split."""
    return SettlementCalculationInput(
        park_id=uuid4(),
        year=2024,
        total_park_revenue_eur=Decimal(revenue),
        revenue_share_percent=Decimal("8"),
        minimum_rent_per_turbine=Decimal("10000"),
        wea_share_percentage=Decimal("10"),
        pool_share_percentage=Decimal("90"),
        total_wea_count=3,
        total_pool_area_sqm=Decimal("100000"),
        leases=(
            LeaseCalculationInput(
                lease_id=MUELLER_ID,
                lessor_person_id=uuid4(),
                pool_area_sqm=Decimal("60000"),
                turbine_count=2,
                sealed_area_sqm=Decimal("100"),
                sealed_area_rate=Decimal("2.00"),
                road_usage_fee_eur=Decimal("1000.00"),
            ),
            LeaseCalculationInput(
                lease_id=AGRAR_ID,
                lessor_person_id=uuid4(),
                pool_area_sqm=Decimal("40000"),
                turbine_count=1,
                cable_length_m=Decimal("200"),
                cable_rate=Decimal("1.50"),
            ),
        ),
    )


def item_for(result, lease_id):
    return next(i for i in result.items if i.lease_id == lease_id)


class TestRevenuePhase:
    """Tests for get_active_revenue_phase."""

    PHASES = [
        SimpleNamespace(start_year=1, end_year=10, revenue_share_percentage=Decimal("8")),
        SimpleNamespace(start_year=11, end_year=None, revenue_share_percentage=Decimal("10")),
    ]

    @pytest.mark.parametrize(
        "settlement_year, expected",
        [(2020, "8"), (2024, "8"), (2029, "8"), (2030, "10"), (2045, "10")],
    )
    def test_phase_by_year_in_operation(self, settlement_year, expected):
        phase = get_active_revenue_phase(self.PHASES, 2020, settlement_year)
        assert phase.revenue_share_percentage == Decimal(expected)

    def test_year_before_commissioning(self):
        assert get_active_revenue_phase(self.PHASES, 2020, 2019) is None

    def test_gap_between_phases(self):
        phases = [SimpleNamespace(start_year=1, end_year=5, revenue_share_percentage=Decimal("8"))]
        assert get_active_revenue_phase(phases, 2020, 2025) is None


class TestFinalFees:
    """Tests for calculate_settlement_fees."""

    def test_revenue_above_minimum(self):
        result = calculate_settlement_fees(make_input())
        assert result.calculated_fee_eur == Decimal("80000.00")
        assert result.minimum_guarantee_eur == Decimal("30000.00")
        assert result.actual_fee_eur == Decimal("80000.00")
        assert result.used_minimum is False
        assert result.wea_standort_total_eur == Decimal("8000.00")
        assert result.pool_area_total_eur == Decimal("72000.00")

    def test_lease_with_sealed_area_and_road(self):
        item = item_for(calculate_settlement_fees(make_input()), MUELLER_ID)
        assert item.pool_area_share_percent == Decimal("60.0000")
        assert item.pool_fee_eur == Decimal("43200.00")
        assert item.standort_fee_eur == Decimal("5333.33")
        assert item.sealed_area_fee_eur == Decimal("200.00")
        assert item.road_usage_fee_eur == Decimal("1000.00")
        assert item.cable_fee_eur == Decimal("0.00")
        assert item.subtotal_eur == Decimal("49733.33")
        assert item.taxable_amount_eur == Decimal("43200.00")
        assert item.exempt_amount_eur == Decimal("6533.33")

    def test_lease_with_cable(self):
        item = item_for(calculate_settlement_fees(make_input()), AGRAR_ID)
        assert item.pool_area_share_percent == Decimal("40.0000")
        assert item.pool_fee_eur == Decimal("28800.00")
        assert item.standort_fee_eur == Decimal("2666.67")
        assert item.cable_fee_eur == Decimal("300.00")
        assert item.subtotal_eur == Decimal("31766.67")
        assert item.exempt_amount_eur == Decimal("2966.67")

    def test_subtotal_is_taxable_plus_exempt(self):
        for item in calculate_settlement_fees(make_input()).items:
            assert item.subtotal_eur == item.taxable_amount_eur + item.exempt_amount_eur

    def test_minimum_guarantee_floor(self):
        result = calculate_settlement_fees(make_input(revenue="300000.00"))
        assert result.calculated_fee_eur == Decimal("24000.00")
        assert result.actual_fee_eur == Decimal("30000.00")
        assert result.used_minimum is True
        assert item_for(result, MUELLER_ID).pool_fee_eur == Decimal("16200.00")
        assert item_for(result, MUELLER_ID).standort_fee_eur == Decimal("2000.00")

    def test_revenue_equal_to_minimum_counts_as_minimum(self):
        result = calculate_settlement_fees(make_input(revenue="375000.00"))
        assert result.calculated_fee_eur == result.minimum_guarantee_eur
        assert result.used_minimum is True

    def test_no_pool_area(self):
        data = make_input()
        data = SettlementCalculationInput(**{**data.__dict__, "total_pool_area_sqm": Decimal("0")})
        for item in calculate_settlement_fees(data).items:
            assert item.pool_area_share_percent == Decimal("0")
            assert item.pool_fee_eur == Decimal("0")


class TestAdvanceFees:
    """Tests for calculate_advance_fees."""

    @pytest.mark.parametrize(
        "interval, divisor",
        [(None, 1), ("YEARLY", 1), (AdvanceInterval.QUARTERLY, 4), ("MONTHLY", 12)],
    )
    def test_interval_divisor(self, interval, divisor):
        assert interval_divisor(interval) == divisor

    def test_quarterly_period(self):
        result = calculate_advance_fees(make_input(), AdvanceInterval.QUARTERLY)
        assert result.calculated_fee_eur == Decimal("0")
        assert result.minimum_guarantee_eur == Decimal("7500.00")
        assert result.used_minimum is True
        assert result.wea_standort_total_eur == Decimal("750.00")
        assert result.pool_area_total_eur == Decimal("6750.00")

    def test_quarterly_surcharges_are_divided(self):
        result = calculate_advance_fees(make_input(), "QUARTERLY")
        mueller = item_for(result, MUELLER_ID)
        assert mueller.pool_fee_eur == Decimal("4050.00")
        assert mueller.standort_fee_eur == Decimal("500.00")
        assert mueller.sealed_area_fee_eur == Decimal("50.00")
        assert mueller.road_usage_fee_eur == Decimal("250.00")
        assert mueller.subtotal_eur == Decimal("4850.00")

        agrar = item_for(result, AGRAR_ID)
        assert agrar.cable_fee_eur == Decimal("75.00")
        assert agrar.subtotal_eur == Decimal("3025.00")

    def test_actual_fee_is_sum_of_subtotals(self):
        result = calculate_advance_fees(make_input(), "QUARTERLY")
        assert result.actual_fee_eur == Decimal("7875.00")

    def test_revenue_is_ignored(self):
        low = calculate_advance_fees(make_input(revenue="1.00"), "YEARLY")
        high = calculate_advance_fees(make_input(revenue="9000000.00"), "YEARLY")
        assert low.actual_fee_eur == high.actual_fee_eur


class TestCostAllocation:
    """Tests for calculate_cost_allocation."""

    def _operators(self):
        nord, sued = uuid4(), uuid4()
        return nord, sued, [
            OperatorShare(
                operator_fund_id=nord, operator_name="Nord",
                total_turbine_count=3, duldung_turbine_count=1,
                total_share_percent=Decimal("75"), duldung_share_percent=Decimal("50"),
                allocation_basis="3/4",
            ),
            OperatorShare(
                operator_fund_id=sued, operator_name="Sued",
                total_turbine_count=1, duldung_turbine_count=1,
                total_share_percent=Decimal("25"), duldung_share_percent=Decimal("50"),
                allocation_basis="1/4",
            ),
        ]

    def test_proportional(self):
        nord, sued, operators = self._operators()
        result = calculate_cost_allocation(
            Decimal("72000"), Decimal("9500"), operators,
            DistributionMode.PROPORTIONAL, Decimal("19"),
        )
        assert result.total_usage_fee_eur == Decimal("81500.00")
        items = {i.operator_fund_id: i for i in result.items}
        assert items[nord].taxable_amount_eur == Decimal("54000.00")
        assert items[nord].exempt_amount_eur == Decimal("7125.00")
        assert items[nord].total_allocated_eur == Decimal("61125.00")
        assert items[nord].taxable_vat_eur == Decimal("10260.00")
        assert items[nord].allocation_share_percent == Decimal("75.0000")
        assert items[sued].taxable_amount_eur == Decimal("18000.00")
        assert items[sued].net_payable_eur == Decimal("20375.00")

    @pytest.mark.parametrize("mode", ["SMOOTHED", "TOLERATED"])
    def test_duldung_modes_use_tolerated_share(self, mode):
        nord, _, operators = self._operators()
        result = calculate_cost_allocation(
            Decimal("72000"), Decimal("9500"), operators, mode, Decimal("19"),
        )
        nord_item = next(i for i in result.items if i.operator_fund_id == nord)
        assert nord_item.taxable_amount_eur == Decimal("36000.00")
        assert nord_item.exempt_amount_eur == Decimal("4750.00")

    def test_direct_billing_deducted(self):
        nord, sued, operators = self._operators()
        result = calculate_cost_allocation(
            Decimal("72000"), Decimal("9500"), operators, "PROPORTIONAL", Decimal("19"),
            direct_billing_by_fund={nord: Decimal("1000")},
        )
        items = {i.operator_fund_id: i for i in result.items}
        assert items[nord].direct_settlement_eur == Decimal("1000.00")
        assert items[nord].net_payable_eur == Decimal("60125.00")
        assert items[sued].direct_settlement_eur == Decimal("0")
