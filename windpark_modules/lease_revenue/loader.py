"""
Settlement Data Loader (``windpark_modules.lease_revenue.loader``).

Responsibility
--------------
Read-only queries that assemble calculator input from master data: park
terms and revenue phase, park revenue from energy settlements, per-lease
quantities folded from plot areas, advances already settled, operator
shares, the frozen plot summary of a lease and the annex data (revenue
table, turbine productions) of final credit notes.

Architecture position
---------------------
**Modules layer** -- query helper used inside service transactions.
Never commits, never writes.

Invariants enforced
-------------------
* Only ACTIVE turbines, ACTIVE plots and ACTIVE leases are considered.
* Energy revenue counts only in statuses CALCULATED, INVOICED, CLOSED.
* AUSGLEICH (compensation) areas count toward the pool area.
* A KABEL area without a length uses its sqm as the length.

Failure modes
-------------
* ``MissingParkConfigurationError`` -- park missing, or a lease term the
  calculation needs is not set.
* ``RevenuePhaseNotFoundError`` -- no revenue phase covers the year.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from windpark_kernel.db.types import HUNDRED, ZERO, round_money, round_percent, to_decimal
from windpark_kernel.exceptions import MissingParkConfigurationError, RevenuePhaseNotFoundError
from windpark_kernel.logging_config import get_logger
from windpark_kernel.models.energy import (
    COUNTED_ENERGY_STATUSES,
    EnergySettlement,
    TurbineProduction,
)
from windpark_kernel.models.land import AreaType, LeasePlot, LeaseStatus, Plot, PlotStatus
from windpark_kernel.models.park import (
    DistributionMode,
    OperatorStatus,
    Park,
    Turbine,
    TurbineStatus,
)
from windpark_modules.lease_revenue.calculations import get_active_revenue_phase
from windpark_modules.lease_revenue.labels import build_fund_name
from windpark_modules.lease_revenue.models import (
    ADVANCE_PAID_STATUSES,
    AdvanceComponentBreakdown,
    AdvancePayments,
    LeaseCalculationInput,
    OperatorShare,
    PeriodType,
    RevenueDisplayMode,
    RevenueSource,
    RevenueTableEntry,
    SettlementCalculationInput,
    TurbineProductionEntry,
)
from windpark_modules.lease_revenue.orm import (
    LeaseRevenueSettlementItemModel,
    LeaseRevenueSettlementModel,
)

logger = get_logger("modules.lease_revenue.loader")

_POOL_AREA_TYPES = (AreaType.POOL.value, AreaType.AUSGLEICH.value)


@dataclass
class _LeaseAccumulator:
    lease_id: UUID
    lessor_person_id: UUID
    sealed_area_sqm: Decimal
    sealed_area_rate: Decimal
    cable_rate: Decimal
    direct_billing_fund_id: UUID | None
    pool_area_sqm: Decimal = ZERO
    turbine_count: int = 0
    road_usage_fee_eur: Decimal = ZERO
    cable_length_m: Decimal = ZERO

    def freeze(self) -> LeaseCalculationInput:
        return LeaseCalculationInput(
            lease_id=self.lease_id,
            lessor_person_id=self.lessor_person_id,
            pool_area_sqm=self.pool_area_sqm,
            turbine_count=self.turbine_count,
            sealed_area_sqm=self.sealed_area_sqm,
            sealed_area_rate=self.sealed_area_rate,
            road_usage_fee_eur=self.road_usage_fee_eur,
            cable_length_m=self.cable_length_m,
            cable_rate=self.cable_rate,
            direct_billing_fund_id=self.direct_billing_fund_id,
        )


@dataclass
class _OperatorAccumulator:
    fund_id: UUID
    name: str
    total: int = 0
    duldung: int = 0


@dataclass
class _ProductionAccumulator:
    designation: str
    production_kwh: Decimal = ZERO
    operating_hours: Decimal = ZERO
    availability: list[Decimal] = field(default_factory=list)


class SettlementDataLoader:
    """
    Builds calculator input and annex data from the database.

    Contract
    --------
    * Every query is scoped by ``tenant_id``.
    * Returned values are immutable domain objects, never ORM rows.

    Non-goals
    ---------
    * Does NOT flush, commit or lock.
    """

    def __init__(self, session: Session):
        self._session = session

    # =========================================================================
    # Park
    # =========================================================================

    def get_park(self, tenant_id: UUID, park_id: UUID) -> Park:
        park = self._session.execute(
            select(Park).where(Park.id == park_id, Park.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if park is None:
            raise MissingParkConfigurationError(str(park_id), "park")
        return park

    def load_settlement_data(
        self,
        tenant_id: UUID,
        park_id: UUID,
        year: int,
        linked_energy_settlement_id: UUID | None = None,
    ) -> SettlementCalculationInput:
        """
        Calculator input for a park and year.

        Raises:
            MissingParkConfigurationError: Park or required lease term missing.
            RevenuePhaseNotFoundError: No revenue phase covers ``year``.
        """
        park = self.get_park(tenant_id, park_id)
        for field_name in (
            "commissioning_date",
            "minimum_rent_per_turbine",
            "wea_share_percentage",
            "pool_share_percentage",
        ):
            if getattr(park, field_name) is None:
                raise MissingParkConfigurationError(str(park_id), field_name)
        # A zero minimum rent counts as not configured; zero shares are valid
        if not park.minimum_rent_per_turbine:
            raise MissingParkConfigurationError(str(park_id), "minimum_rent_per_turbine")

        phase = get_active_revenue_phase(
            park.revenue_phases, park.commissioning_date.year, year,
        )
        if phase is None:
            raise RevenuePhaseNotFoundError(str(park_id), year)

        total_revenue = self.load_park_revenue(
            tenant_id, park_id, year, linked_energy_settlement_id,
        )
        total_wea_count = sum(
            1 for turbine in park.turbines if turbine.status == TurbineStatus.ACTIVE.value
        )

        weg_rate = to_decimal(park.weg_compensation_per_sqm)
        kabel_rate = to_decimal(park.kabel_compensation_per_m)

        plots = self._session.execute(
            select(Plot).where(
                Plot.tenant_id == tenant_id,
                Plot.park_id == park_id,
                Plot.status == PlotStatus.ACTIVE.value,
            )
            .order_by(Plot.plot_number, Plot.id)
        ).scalars().all()

        leases: dict[UUID, _LeaseAccumulator] = {}
        total_pool_sqm = ZERO
        for plot in plots:
            for lease_plot in plot.lease_plots:
                lease = lease_plot.lease
                if lease is None or lease.status != LeaseStatus.ACTIVE.value:
                    continue

                acc = leases.get(lease.id)
                if acc is None:
                    acc = _LeaseAccumulator(
                        lease_id=lease.id,
                        lessor_person_id=lease.lessor_id,
                        sealed_area_sqm=to_decimal(lease.sealed_area_sqm),
                        sealed_area_rate=(
                            lease.sealed_area_rate
                            if lease.sealed_area_rate is not None
                            else weg_rate
                        ),
                        cable_rate=kabel_rate,
                        direct_billing_fund_id=lease.direct_billing_fund_id,
                    )
                    leases[lease.id] = acc

                for area in plot.plot_areas:
                    area_sqm = to_decimal(area.area_sqm)
                    if area.area_type in _POOL_AREA_TYPES:
                        acc.pool_area_sqm += area_sqm
                        total_pool_sqm += area_sqm
                    elif area.area_type == AreaType.WEA_STANDORT.value:
                        acc.turbine_count += 1
                    elif area.area_type == AreaType.WEG.value:
                        acc.road_usage_fee_eur += round_money(area_sqm * weg_rate)
                    elif area.area_type == AreaType.KABEL.value:
                        acc.cable_length_m += (
                            area.length_m if area.length_m is not None else area_sqm
                        )

        logger.info(
            "settlement_data_loaded",
            extra={
                "tenant_id": str(tenant_id),
                "park_id": str(park_id),
                "year": year,
                "lease_count": len(leases),
                "total_wea_count": total_wea_count,
                "total_park_revenue_eur": str(total_revenue),
            },
        )

        return SettlementCalculationInput(
            park_id=park_id,
            year=year,
            total_park_revenue_eur=total_revenue,
            revenue_share_percent=phase.revenue_share_percentage,
            minimum_rent_per_turbine=park.minimum_rent_per_turbine,
            wea_share_percentage=park.wea_share_percentage,
            pool_share_percentage=park.pool_share_percentage,
            total_wea_count=total_wea_count,
            total_pool_area_sqm=round_money(total_pool_sqm),
            leases=tuple(acc.freeze() for acc in leases.values()),
        )

    def load_park_revenue(
        self,
        tenant_id: UUID,
        park_id: UUID,
        year: int,
        linked_energy_settlement_id: UUID | None = None,
    ) -> Decimal:
        """Net operator revenue of the linked statement, or of all counted ones."""
        if linked_energy_settlement_id is not None:
            linked = self._session.execute(
                select(EnergySettlement.net_operator_revenue_eur).where(
                    EnergySettlement.id == linked_energy_settlement_id,
                    EnergySettlement.tenant_id == tenant_id,
                )
            ).scalar_one_or_none()
            return to_decimal(linked)

        total = self._session.execute(
            select(func.sum(EnergySettlement.net_operator_revenue_eur)).where(
                EnergySettlement.tenant_id == tenant_id,
                EnergySettlement.park_id == park_id,
                EnergySettlement.year == year,
                EnergySettlement.status.in_(COUNTED_ENERGY_STATUSES),
            )
        ).scalar()
        return to_decimal(total)

    # =========================================================================
    # Advances
    # =========================================================================

    def _advance_items(
        self, tenant_id: UUID, park_id: UUID, year: int,
    ) -> list[LeaseRevenueSettlementItemModel]:
        return list(self._session.execute(
            select(LeaseRevenueSettlementItemModel)
            .join(LeaseRevenueSettlementModel)
            .where(
                LeaseRevenueSettlementModel.tenant_id == tenant_id,
                LeaseRevenueSettlementModel.park_id == park_id,
                LeaseRevenueSettlementModel.year == year,
                LeaseRevenueSettlementModel.period_type == PeriodType.ADVANCE.value,
                LeaseRevenueSettlementModel.status.in_(ADVANCE_PAID_STATUSES),
            )
        ).scalars())

    def load_advance_payments_for_final(
        self, tenant_id: UUID, park_id: UUID, year: int,
    ) -> AdvancePayments:
        """Advance subtotals per lease, to be deducted in the final settlement."""
        per_lease: dict[UUID, Decimal] = {}
        total = ZERO
        for item in self._advance_items(tenant_id, park_id, year):
            per_lease[item.lease_id] = per_lease.get(item.lease_id, ZERO) + item.subtotal_eur
            total += item.subtotal_eur
        return AdvancePayments(total_paid_eur=round_money(total), per_lease=per_lease)

    def load_advance_component_breakdown(
        self, tenant_id: UUID, park_id: UUID, year: int,
    ) -> dict[UUID, AdvanceComponentBreakdown]:
        """Advance amounts per lease and fee component, rounded to cents."""
        sums: dict[UUID, list[Decimal]] = {}
        for item in self._advance_items(tenant_id, park_id, year):
            acc = sums.setdefault(item.lease_id, [ZERO] * 6)
            for idx, amount in enumerate((
                item.subtotal_eur,
                item.pool_fee_eur,
                item.standort_fee_eur,
                item.sealed_area_fee_eur,
                item.road_usage_fee_eur,
                item.cable_fee_eur,
            )):
                acc[idx] += amount

        return {
            lease_id: AdvanceComponentBreakdown(*(round_money(v) for v in values))
            for lease_id, values in sums.items()
        }

    # =========================================================================
    # Plot summary
    # =========================================================================

    def build_plot_summary(self, lease_id: UUID) -> list[dict[str, Any]]:
        """JSON snapshot of the plots and areas linked to a lease."""
        lease_plots = self._session.execute(
            select(LeasePlot).where(LeasePlot.lease_id == lease_id)
        ).scalars()

        summary = []
        for lease_plot in lease_plots:
            plot = lease_plot.plot
            summary.append({
                "plotId": str(plot.id),
                "plotNumber": plot.plot_number,
                "cadastralDistrict": plot.cadastral_district,
                "fieldNumber": plot.field_number,
                "areaSqm": float(to_decimal(plot.area_sqm)),
                "turbineCount": sum(
                    1 for a in plot.plot_areas if a.area_type == AreaType.WEA_STANDORT.value
                ),
                "areas": [
                    {
                        "type": a.area_type,
                        "sqm": float(to_decimal(a.area_sqm)),
                        "lengthM": float(to_decimal(a.length_m)),
                    }
                    for a in plot.plot_areas
                ],
            })
        return summary

    # =========================================================================
    # Operators
    # =========================================================================

    def load_operator_shares(
        self, tenant_id: UUID, park_id: UUID, year: int,
    ) -> list[OperatorShare]:
        """
        Turbine count and share per operator fund for ``year``.

        The operator of a turbine is its most recent ACTIVE assignment that
        overlaps the year.  With distribution mode SMOOTHED or TOLERATED
        all of an operator's turbines count as tolerated (DULDUNG).
        """
        park = self.get_park(tenant_id, park_id)
        year_start = date(year, 1, 1)
        year_end = date(year, 12, 31)
        is_duldung = park.default_distribution_mode in (
            DistributionMode.SMOOTHED.value,
            DistributionMode.TOLERATED.value,
        )

        turbines = [t for t in park.turbines if t.status == TurbineStatus.ACTIVE.value]
        operators: dict[UUID, _OperatorAccumulator] = {}
        for turbine in turbines:
            current = next(
                (
                    op for op in turbine.operator_history
                    if op.status == OperatorStatus.ACTIVE.value
                    and op.valid_from <= year_end
                    and (op.valid_to is None or op.valid_to > year_start)
                ),
                None,
            )
            if current is None or current.operator_fund is None:
                continue
            acc = operators.setdefault(
                current.operator_fund_id,
                _OperatorAccumulator(
                    fund_id=current.operator_fund_id,
                    name=build_fund_name(current.operator_fund),
                ),
            )
            acc.total += 1
            if is_duldung:
                acc.duldung += 1

        total_turbines = len(turbines)
        total_duldung = (
            sum(acc.duldung for acc in operators.values()) if is_duldung else total_turbines
        )

        shares = []
        for acc in operators.values():
            if is_duldung:
                basis = f"{acc.duldung}/{total_duldung} ({total_duldung} WEA DULDUNG)"
            else:
                basis = f"{acc.total}/{total_turbines} ({total_turbines} WEA gesamt)"
            shares.append(OperatorShare(
                operator_fund_id=acc.fund_id,
                operator_name=acc.name,
                total_turbine_count=acc.total,
                duldung_turbine_count=acc.duldung,
                total_share_percent=(
                    round_percent(Decimal(acc.total) / total_turbines * HUNDRED)
                    if total_turbines > 0 else ZERO
                ),
                duldung_share_percent=(
                    round_percent(Decimal(acc.duldung) / total_duldung * HUNDRED)
                    if total_duldung > 0 else ZERO
                ),
                allocation_basis=basis,
            ))
        return shares

    # =========================================================================
    # Credit note annex
    # =========================================================================

    @staticmethod
    def _table_entry(category: str, production_kwh: Decimal, revenue_eur: Decimal) -> RevenueTableEntry:
        rate = (
            round_percent(revenue_eur / production_kwh * HUNDRED)
            if production_kwh > ZERO else ZERO
        )
        return RevenueTableEntry(
            category=category,
            rate_ct_per_kwh=rate,
            production_kwh=production_kwh,
            revenue_eur=revenue_eur,
        )

    def revenue_table_from_sources(
        self, sources: list[RevenueSource],
    ) -> list[RevenueTableEntry]:
        """Revenue table from sources entered with a manual calculation."""
        return [
            self._table_entry(s.category or "Einspeisung", s.production_kwh, s.revenue_eur)
            for s in sources
        ]

    def load_revenue_table_entries(
        self,
        tenant_id: UUID,
        park_id: UUID,
        year: int,
        display_mode: RevenueDisplayMode | str = RevenueDisplayMode.YEARLY,
    ) -> list[RevenueTableEntry]:
        """
        Revenue table rows from energy settlements, split into EEG and
        direct marketing (DV).

        MONTHLY gives one EEG and one DV row per statement, YEARLY one of
        each for the whole year.  Statements without a split fall back to
        their net revenue.
        """
        statements = self._session.execute(
            select(EnergySettlement)
            .where(
                EnergySettlement.tenant_id == tenant_id,
                EnergySettlement.park_id == park_id,
                EnergySettlement.year == year,
                EnergySettlement.status.in_(COUNTED_ENERGY_STATUSES),
            )
            .order_by(EnergySettlement.month)
        ).scalars().all()

        entries: list[RevenueTableEntry] = []

        if RevenueDisplayMode(display_mode) == RevenueDisplayMode.MONTHLY:
            for s in statements:
                label = f"{s.month:02d}/{year}" if s.month else str(year)
                eeg_kwh = to_decimal(s.eeg_production_kwh)
                eeg_eur = to_decimal(s.eeg_revenue_eur)
                dv_kwh = to_decimal(s.dv_production_kwh)
                dv_eur = to_decimal(s.dv_revenue_eur)
                if eeg_eur > ZERO:
                    entries.append(self._table_entry(f"EEG {label}", eeg_kwh, eeg_eur))
                if dv_eur > ZERO:
                    entries.append(self._table_entry(f"DV {label}", dv_kwh, dv_eur))
                if eeg_eur == ZERO and dv_eur == ZERO:
                    total_eur = to_decimal(s.net_operator_revenue_eur)
                    if total_eur > ZERO:
                        entries.append(self._table_entry(
                            label, to_decimal(s.total_production_kwh), total_eur,
                        ))
            return entries

        eeg_kwh = eeg_eur = dv_kwh = dv_eur = total_kwh = total_eur = ZERO
        for s in statements:
            eeg_kwh += to_decimal(s.eeg_production_kwh)
            eeg_eur += to_decimal(s.eeg_revenue_eur)
            dv_kwh += to_decimal(s.dv_production_kwh)
            dv_eur += to_decimal(s.dv_revenue_eur)
            total_kwh += to_decimal(s.total_production_kwh)
            total_eur += to_decimal(s.net_operator_revenue_eur)

        if eeg_eur > ZERO:
            entries.append(self._table_entry(f"EEG {year}", eeg_kwh, eeg_eur))
        if dv_eur > ZERO:
            entries.append(self._table_entry(f"Direktvermarktung {year}", dv_kwh, dv_eur))
        if not entries and total_eur > ZERO:
            entries.append(self._table_entry(f"Jahresabrechnung {year}", total_kwh, total_eur))
        return entries

    def load_turbine_productions(
        self, tenant_id: UUID, park_id: UUID, year: int,
    ) -> list[TurbineProductionEntry]:
        """Yearly production per turbine of the park, sorted by designation."""
        rows = self._session.execute(
            select(TurbineProduction)
            .join(Turbine, TurbineProduction.turbine_id == Turbine.id)
            .where(
                TurbineProduction.tenant_id == tenant_id,
                TurbineProduction.year == year,
                Turbine.park_id == park_id,
            )
        ).scalars().all()

        per_turbine: dict[UUID, _ProductionAccumulator] = {}
        for row in rows:
            acc = per_turbine.setdefault(
                row.turbine_id, _ProductionAccumulator(designation=row.turbine.designation),
            )
            acc.production_kwh += to_decimal(row.production_kwh)
            acc.operating_hours += to_decimal(row.operating_hours)
            if row.availability_pct is not None:
                acc.availability.append(row.availability_pct)

        entries = [
            TurbineProductionEntry(
                designation=acc.designation,
                production_kwh=acc.production_kwh,
                operating_hours=acc.operating_hours if acc.operating_hours > ZERO else None,
                availability_pct=(
                    round_money(sum(acc.availability, ZERO) / len(acc.availability))
                    if acc.availability else None
                ),
            )
            for acc in per_turbine.values()
        ]
        return sorted(entries, key=lambda e: e.designation)

    # =========================================================================
    # Settlements
    # =========================================================================

    def find_settlement(
        self,
        tenant_id: UUID,
        park_id: UUID,
        year: int,
        period_type: PeriodType | str,
        month: int | None,
    ) -> LeaseRevenueSettlementModel | None:
        """The settlement for a park and period, if one exists."""
        stmt = select(LeaseRevenueSettlementModel).where(
            LeaseRevenueSettlementModel.tenant_id == tenant_id,
            LeaseRevenueSettlementModel.park_id == park_id,
            LeaseRevenueSettlementModel.year == year,
            LeaseRevenueSettlementModel.period_type == PeriodType(period_type).value,
        )
        if month is None:
            stmt = stmt.where(LeaseRevenueSettlementModel.month.is_(None))
        else:
            stmt = stmt.where(LeaseRevenueSettlementModel.month == month)
        return self._session.execute(
            stmt.order_by(LeaseRevenueSettlementModel.created_at)
        ).scalars().first()


def revenue_sources_from_details(details: dict[str, Any] | None) -> list[RevenueSource]:
    """Revenue sources stored in a settlement's ``calculation_details``."""
    if not details:
        return []
    return [RevenueSource.from_dict(s) for s in details.get("revenueSources") or []]
