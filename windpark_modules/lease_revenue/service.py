"""
Lease Revenue Settlement Service (``windpark_modules.lease_revenue.service``).

Responsibility
--------------
Orchestrates the landowner settlement lifecycle for one park and period:
open, calculate (and recalculate), create advance or final credit notes,
allocate the fees to the operator funds and invoice them, then review,
approve and close.

Architecture position
---------------------
**Modules layer**.  Composes the pure calculator
(``calculations.py``), the ``SettlementDataLoader`` and the invoice
generators.  Every public mutating method owns its transaction boundary:
commit on success, rollback and re-raise on error.

Invariants enforced
-------------------
* At most one settlement per (tenant, park, year, period type, month);
  a finalized one blocks a second ``open_settlement``.
* Status changes follow ``LEASE_REVENUE_SETTLEMENT_WORKFLOW`` and
  ``COST_ALLOCATION_WORKFLOW``.
* Recalculation replaces all items atomically while holding the
  settlement row lock; two concurrent recalculations serialize.
* Item rows carry a frozen ``plot_summary`` taken inside the same
  transaction as the amounts.

Failure modes
-------------
* ``SettlementNotFoundError`` / ``AllocationNotFoundError`` -- unknown id
  for the tenant.
* ``SettlementStateError`` / ``AllocationStateError`` -- action not
  allowed in the current status.
* ``DuplicateSettlementError`` -- period already finalized.
* ``MissingParkConfigurationError``, ``RevenuePhaseNotFoundError``,
  ``TaxRateNotFoundError``, ``NoOperatorsError`` -- from loading.

Audit relevance
---------------
* ``calculation_details`` records who calculated when, with which inputs.
* Review and approval timestamps and the approving user are stored on
  the settlement row.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from windpark_config import WindparkConfig
from windpark_kernel.db.types import ZERO, round_money, to_decimal
from windpark_kernel.domain.clock import Clock, SystemClock
from windpark_kernel.exceptions import (
    AllocationNotFoundError,
    DuplicateSettlementError,
    NoOperatorsError,
    SettlementNotFoundError,
    SettlementStateError,
)
from windpark_kernel.logging_config import LogContext, get_logger
from windpark_kernel.models.invoice import InvoiceStatus
from windpark_modules.lease_revenue.calculations import (
    calculate_advance_fees,
    calculate_cost_allocation,
    calculate_settlement_fees,
)
from windpark_modules.lease_revenue.config import LeaseRevenueConfig
from windpark_modules.lease_revenue.invoicing import LeaseRevenueInvoiceGenerator
from windpark_modules.lease_revenue.loader import SettlementDataLoader
from windpark_modules.lease_revenue.models import (
    ALLOCATABLE_STATUSES,
    AdvanceInterval,
    AdvancePayments,
    AllocationStatus,
    GenerateInvoiceResult,
    PeriodType,
    RevenueDisplayMode,
    RevenueSource,
    SettlementCalculationInput,
    SettlementCalculationResult,
    SettlementStatus,
)
from windpark_modules.lease_revenue.orm import (
    LeaseRevenueSettlementItemModel,
    LeaseRevenueSettlementModel,
    ParkCostAllocationItemModel,
    ParkCostAllocationModel,
)
from windpark_modules.lease_revenue.workflows import (
    require_allocation_transition,
    require_settlement_transition,
)
from windpark_modules.tax.models import TaxType
from windpark_modules.tax.service import TaxConfigurationService

logger = get_logger("modules.lease_revenue.service")

# A settlement in one of these states is reused by ``open_settlement``
_REOPENABLE_STATUSES = (SettlementStatus.OPEN.value, SettlementStatus.CALCULATED.value)


class LeaseRevenueSettlementService:
    """
    Orchestrates lease revenue settlements and operator cost allocations.

    Contract
    --------
    * All methods are tenant-scoped; a row of another tenant is reported
      as not found.
    * Mutating methods commit before returning.

    Guarantees
    ----------
    * A failed calculation or allocation leaves no partial rows behind.

    Non-goals
    ---------
    * Does NOT render or archive PDFs (see ``windpark_services``).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: WindparkConfig | None = None,
        module_config: LeaseRevenueConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._module_config = module_config or LeaseRevenueConfig.with_defaults()
        self._loader = SettlementDataLoader(session)
        self._tax = TaxConfigurationService(session, config=config)
        self._invoices = LeaseRevenueInvoiceGenerator(
            session,
            clock=self._clock,
            config=config,
            module_config=self._module_config,
        )

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_settlement(
        self,
        tenant_id: UUID,
        settlement_id: UUID,
        for_update: bool = False,
    ) -> LeaseRevenueSettlementModel:
        """
        Raises:
            SettlementNotFoundError: Unknown id for the tenant.
        """
        stmt = select(LeaseRevenueSettlementModel).where(
            LeaseRevenueSettlementModel.id == settlement_id,
            LeaseRevenueSettlementModel.tenant_id == tenant_id,
        )
        if for_update:
            stmt = stmt.with_for_update(of=LeaseRevenueSettlementModel)
        settlement = self._session.execute(stmt).unique().scalar_one_or_none()
        if settlement is None:
            raise SettlementNotFoundError(str(settlement_id))
        return settlement

    def get_allocation(
        self,
        tenant_id: UUID,
        allocation_id: UUID,
        for_update: bool = False,
    ) -> ParkCostAllocationModel:
        """
        Raises:
            AllocationNotFoundError: Unknown id for the tenant.
        """
        stmt = select(ParkCostAllocationModel).where(
            ParkCostAllocationModel.id == allocation_id,
            ParkCostAllocationModel.tenant_id == tenant_id,
        )
        if for_update:
            stmt = stmt.with_for_update(of=ParkCostAllocationModel)
        allocation = self._session.execute(stmt).unique().scalar_one_or_none()
        if allocation is None:
            raise AllocationNotFoundError(str(allocation_id))
        return allocation

    # =========================================================================
    # Open / delete
    # =========================================================================

    @staticmethod
    def _validate_period(
        period_type: PeriodType,
        advance_interval: AdvanceInterval | None,
        month: int | None,
    ) -> None:
        if month is not None and not 1 <= month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {month}")
        if period_type != PeriodType.ADVANCE:
            return
        if advance_interval is None:
            raise ValueError("ADVANCE settlements require an advance interval")
        if advance_interval != AdvanceInterval.YEARLY and month is None:
            raise ValueError(
                f"{advance_interval.value} advance settlements require a month"
            )

    def open_settlement(
        self,
        tenant_id: UUID,
        park_id: UUID,
        year: int,
        actor_id: UUID,
        period_type: PeriodType | str = PeriodType.FINAL,
        advance_interval: AdvanceInterval | str | None = None,
        month: int | None = None,
        linked_energy_settlement_id: UUID | None = None,
        advance_due_date: date | None = None,
        settlement_due_date: date | None = None,
        notes: str | None = None,
    ) -> LeaseRevenueSettlementModel:
        """
        Create an OPEN settlement, or reuse the one for the same period.

        A settlement that is still OPEN or CALCULATED is returned with its
        mutable fields (interval, linked statement, due dates, notes)
        updated from the arguments that are given.

        Raises:
            ValueError: Inconsistent period arguments.
            MissingParkConfigurationError: Park unknown for the tenant.
            DuplicateSettlementError: The period is already finalized.
        """
        period_type = PeriodType(period_type)
        advance_interval = AdvanceInterval(advance_interval) if advance_interval else None
        self._validate_period(period_type, advance_interval, month)

        try:
            self._loader.get_park(tenant_id, park_id)
            existing = self._loader.find_settlement(tenant_id, park_id, year, period_type, month)

            if existing is not None:
                if existing.status not in _REOPENABLE_STATUSES:
                    raise DuplicateSettlementError(str(existing.id), existing.status)

                if advance_interval is not None:
                    existing.advance_interval = advance_interval.value
                if linked_energy_settlement_id is not None:
                    existing.linked_energy_settlement_id = linked_energy_settlement_id
                if advance_due_date is not None:
                    existing.advance_due_date = advance_due_date
                if settlement_due_date is not None:
                    existing.settlement_due_date = settlement_due_date
                if notes is not None:
                    existing.notes = notes
                existing.updated_by_id = actor_id
                self._session.commit()

                logger.info(
                    "settlement_reused",
                    extra={"settlement_id": str(existing.id), "status": existing.status},
                )
                return existing

            settlement = LeaseRevenueSettlementModel(
                tenant_id=tenant_id,
                park_id=park_id,
                year=year,
                period_type=period_type.value,
                advance_interval=advance_interval.value if advance_interval else None,
                month=month,
                status=SettlementStatus.OPEN.value,
                linked_energy_settlement_id=linked_energy_settlement_id,
                advance_due_date=advance_due_date,
                settlement_due_date=settlement_due_date,
                notes=notes,
                created_by_id=actor_id,
            )
            self._session.add(settlement)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "settlement_opened",
            extra={
                "tenant_id": str(tenant_id),
                "settlement_id": str(settlement.id),
                "park_id": str(park_id),
                "year": year,
                "period_type": period_type.value,
                "month": month,
            },
        )
        return settlement

    def delete_settlement(self, tenant_id: UUID, settlement_id: UUID, actor_id: UUID) -> None:
        """
        Delete a settlement that was never calculated.

        Raises:
            SettlementNotFoundError: Unknown id for the tenant.
            SettlementStateError: Status is not OPEN.
        """
        try:
            settlement = self.get_settlement(tenant_id, settlement_id, for_update=True)
            if settlement.status != SettlementStatus.OPEN.value:
                raise SettlementStateError(
                    str(settlement.id), settlement.status, (SettlementStatus.OPEN.value,),
                )
            self._session.delete(settlement)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "settlement_deleted",
            extra={"settlement_id": str(settlement_id), "actor_id": str(actor_id)},
        )

    # =========================================================================
    # Calculation
    # =========================================================================

    def execute_settlement_calculation(
        self,
        tenant_id: UUID,
        settlement_id: UUID,
        actor_id: UUID | None = None,
        manual_revenue_eur: Decimal | None = None,
        revenue_sources: Sequence[RevenueSource] | None = None,
        revenue_display_mode: RevenueDisplayMode | str | None = None,
    ) -> tuple[LeaseRevenueSettlementModel, SettlementCalculationResult]:
        """
        Calculate a settlement and replace its items.

        ADVANCE settlements are calculated from the minimum guarantee of
        one advance period and store revenue and share as 0.  FINAL
        settlements record the advances already paid per lease and the
        remainder still due.

        Args:
            manual_revenue_eur: Replaces the loaded park revenue when > 0.
            revenue_sources: Revenue lines behind a manual figure, kept for
                the final credit note annex.
            revenue_display_mode: Grouping of the annex revenue table.

        Raises:
            SettlementNotFoundError: Unknown id for the tenant.
            SettlementStateError: Status is not OPEN or CALCULATED.
        """
        display_mode = RevenueDisplayMode(
            revenue_display_mode or self._module_config.default_revenue_display_mode
        )

        with LogContext.bind(
            tenant_id=tenant_id, actor_id=actor_id, settlement_id=settlement_id,
        ):
            try:
                settlement = self.get_settlement(tenant_id, settlement_id, for_update=True)
                require_settlement_transition(settlement, "calculate")
                is_advance = settlement.period_type == PeriodType.ADVANCE.value

                data = self._loader.load_settlement_data(
                    tenant_id,
                    settlement.park_id,
                    settlement.year,
                    settlement.linked_energy_settlement_id,
                )
                manual_revenue = to_decimal(manual_revenue_eur)
                if manual_revenue > ZERO:
                    data = replace(data, total_park_revenue_eur=manual_revenue)

                if is_advance:
                    result = calculate_advance_fees(data, settlement.advance_interval)
                    advances = AdvancePayments(total_paid_eur=ZERO)
                else:
                    result = calculate_settlement_fees(data)
                    advances = self._loader.load_advance_payments_for_final(
                        tenant_id, settlement.park_id, settlement.year,
                    )

                # Old items go first: the new ones reuse (settlement, lease)
                settlement.items.clear()
                self._session.flush()

                settlement.total_park_revenue_eur = ZERO if is_advance else data.total_park_revenue_eur
                settlement.revenue_share_percent = ZERO if is_advance else data.revenue_share_percent
                settlement.calculated_fee_eur = result.calculated_fee_eur
                settlement.minimum_guarantee_eur = result.minimum_guarantee_eur
                settlement.actual_fee_eur = result.actual_fee_eur
                settlement.used_minimum = result.used_minimum
                settlement.wea_standort_total_eur = result.wea_standort_total_eur
                settlement.pool_area_total_eur = result.pool_area_total_eur
                settlement.total_wea_count = data.total_wea_count
                settlement.total_pool_area_sqm = data.total_pool_area_sqm
                settlement.status = SettlementStatus.CALCULATED.value
                settlement.updated_by_id = actor_id
                settlement.calculation_details = self._calculation_details(
                    settlement, data, advances, actor_id, revenue_sources, display_mode,
                )

                for position, fees in enumerate(result.items, start=1):
                    advance_paid = ZERO if is_advance else round_money(advances.for_lease(fees.lease_id))
                    remainder = (
                        ZERO if is_advance
                        else round_money(max(ZERO, fees.subtotal_eur - advance_paid))
                    )
                    settlement.items.append(LeaseRevenueSettlementItemModel(
                        position=position,
                        lease_id=fees.lease_id,
                        lessor_person_id=fees.lessor_person_id,
                        direct_billing_fund_id=fees.direct_billing_fund_id,
                        pool_area_sqm=fees.pool_area_sqm,
                        pool_area_share_percent=fees.pool_area_share_percent,
                        pool_fee_eur=fees.pool_fee_eur,
                        turbine_count=fees.turbine_count,
                        standort_fee_eur=fees.standort_fee_eur,
                        sealed_area_sqm=fees.sealed_area_sqm,
                        sealed_area_rate=fees.sealed_area_rate,
                        sealed_area_fee_eur=fees.sealed_area_fee_eur,
                        road_usage_fee_eur=fees.road_usage_fee_eur,
                        cable_fee_eur=fees.cable_fee_eur,
                        subtotal_eur=fees.subtotal_eur,
                        taxable_amount_eur=fees.taxable_amount_eur,
                        exempt_amount_eur=fees.exempt_amount_eur,
                        advance_paid_eur=advance_paid,
                        remainder_eur=remainder,
                        plot_summary=self._loader.build_plot_summary(fees.lease_id),
                    ))

                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "settlement_calculated",
                extra={
                    "period_type": settlement.period_type,
                    "year": settlement.year,
                    "item_count": len(result.items),
                    "actual_fee_eur": str(result.actual_fee_eur),
                    "used_minimum": result.used_minimum,
                },
            )
        return settlement, result

    def _calculation_details(
        self,
        settlement: LeaseRevenueSettlementModel,
        data: SettlementCalculationInput,
        advances: AdvancePayments,
        actor_id: UUID | None,
        revenue_sources: Sequence[RevenueSource] | None,
        display_mode: RevenueDisplayMode,
    ) -> dict[str, Any]:
        details: dict[str, Any] = {
            "calculatedAt": self._clock.now_utc().isoformat(),
            "calculatedBy": str(actor_id) if actor_id else None,
            "periodType": settlement.period_type,
            "advanceInterval": settlement.advance_interval,
            "totalPaidAdvances": float(advances.total_paid_eur),
            "input": {
                "totalParkRevenueEur": float(data.total_park_revenue_eur),
                "revenueSharePercent": float(data.revenue_share_percent),
                "minimumRentPerTurbine": float(data.minimum_rent_per_turbine),
                "weaSharePercentage": float(data.wea_share_percentage),
                "poolSharePercentage": float(data.pool_share_percentage),
            },
        }
        if revenue_sources:
            details["revenueSources"] = [s.to_dict() for s in revenue_sources]
        details["revenueDisplayMode"] = display_mode.value
        return details

    # =========================================================================
    # Cost allocation
    # =========================================================================

    def execute_cost_allocation(
        self,
        tenant_id: UUID,
        settlement_id: UUID,
        actor_id: UUID,
        period_label: str | None = None,
        notes: str | None = None,
    ) -> ParkCostAllocationModel:
        """
        Split a calculated settlement's fees among the park's operator funds.

        Taxable (pool) and exempt totals are summed over the settlement
        items and divided by turbine share.  Fees a landowner bills
        directly to an operator are deducted from that operator's net
        payable.  The result is a DRAFT allocation.

        Raises:
            SettlementStateError: Settlement not CALCULATED, SETTLED or
                ADVANCE_CREATED.
            NoOperatorsError: No turbine has an active operator in the year.
            TaxRateNotFoundError: No standard VAT rate on January 1.
        """
        with LogContext.bind(
            tenant_id=tenant_id, actor_id=actor_id, settlement_id=settlement_id,
        ):
            try:
                settlement = self.get_settlement(tenant_id, settlement_id, for_update=True)
                if settlement.status not in ALLOCATABLE_STATUSES:
                    raise SettlementStateError(
                        str(settlement.id), settlement.status, ALLOCATABLE_STATUSES,
                    )

                total_taxable = ZERO
                total_exempt = ZERO
                direct_by_fund: dict[UUID, Decimal] = {}
                for item in settlement.items:
                    total_taxable += item.taxable_amount_eur
                    total_exempt += item.exempt_amount_eur
                    if item.direct_billing_fund_id is not None:
                        direct_by_fund[item.direct_billing_fund_id] = (
                            direct_by_fund.get(item.direct_billing_fund_id, ZERO)
                            + item.subtotal_eur
                        )

                operators = self._loader.load_operator_shares(
                    tenant_id, settlement.park_id, settlement.year,
                )
                if not operators:
                    raise NoOperatorsError(str(settlement.park_id), settlement.year)

                vat_rate = self._tax.get_tax_rate(
                    tenant_id, TaxType.STANDARD, date(settlement.year, 1, 1),
                )
                result = calculate_cost_allocation(
                    total_taxable,
                    total_exempt,
                    operators,
                    settlement.park.default_distribution_mode,
                    vat_rate,
                    direct_by_fund,
                )

                allocation = ParkCostAllocationModel(
                    tenant_id=tenant_id,
                    lease_revenue_settlement_id=settlement.id,
                    status=AllocationStatus.DRAFT.value,
                    total_usage_fee_eur=result.total_usage_fee_eur,
                    total_taxable_eur=result.total_taxable_eur,
                    total_exempt_eur=result.total_exempt_eur,
                    period_label=period_label or self._module_config.allocation_period_label.format(
                        year=settlement.year,
                    ),
                    notes=notes,
                    created_by_id=actor_id,
                    items=[
                        ParkCostAllocationItemModel(
                            position=position,
                            operator_fund_id=item.operator_fund_id,
                            allocation_basis=item.allocation_basis,
                            allocation_share_percent=item.allocation_share_percent,
                            total_allocated_eur=item.total_allocated_eur,
                            direct_settlement_eur=item.direct_settlement_eur,
                            taxable_amount_eur=item.taxable_amount_eur,
                            taxable_vat_eur=item.taxable_vat_eur,
                            exempt_amount_eur=item.exempt_amount_eur,
                            net_payable_eur=item.net_payable_eur,
                        )
                        for position, item in enumerate(result.items, start=1)
                    ],
                )
                self._session.add(allocation)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "cost_allocation_executed",
                extra={
                    "allocation_id": str(allocation.id),
                    "operator_count": len(result.items),
                    "total_usage_fee_eur": str(result.total_usage_fee_eur),
                    "vat_rate": str(vat_rate),
                },
            )
        return allocation

    # =========================================================================
    # Invoices
    # =========================================================================

    def generate_advance_invoices(
        self,
        tenant_id: UUID,
        settlement_id: UUID,
        actor_id: UUID,
        initial_status: InvoiceStatus | str | None = None,
    ) -> GenerateInvoiceResult:
        return self._invoices.generate_advance_invoices(
            tenant_id, settlement_id, actor_id, initial_status,
        )

    def generate_settlement_invoices(
        self,
        tenant_id: UUID,
        settlement_id: UUID,
        actor_id: UUID,
        initial_status: InvoiceStatus | str | None = None,
    ) -> GenerateInvoiceResult:
        return self._invoices.generate_settlement_invoices(
            tenant_id, settlement_id, actor_id, initial_status,
        )

    def generate_allocation_invoices(
        self,
        tenant_id: UUID,
        allocation_id: UUID,
        actor_id: UUID,
    ) -> GenerateInvoiceResult:
        return self._invoices.generate_allocation_invoices(tenant_id, allocation_id, actor_id)

    # =========================================================================
    # Review lifecycle
    # =========================================================================

    def _advance_settlement(
        self,
        tenant_id: UUID,
        settlement_id: UUID,
        actor_id: UUID,
        action: str,
        **stamps: Any,
    ) -> LeaseRevenueSettlementModel:
        try:
            settlement = self.get_settlement(tenant_id, settlement_id, for_update=True)
            transition = require_settlement_transition(settlement, action)
            previous = settlement.status
            settlement.status = transition.to_state
            settlement.updated_by_id = actor_id
            for column, value in stamps.items():
                setattr(settlement, column, value)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "settlement_status_changed",
            extra={
                "settlement_id": str(settlement_id),
                "action": action,
                "from_status": previous,
                "to_status": settlement.status,
                "actor_id": str(actor_id),
            },
        )
        return settlement

    def submit_for_review(self, tenant_id: UUID, settlement_id: UUID, actor_id: UUID) -> LeaseRevenueSettlementModel:
        return self._advance_settlement(
            tenant_id, settlement_id, actor_id, "submit_for_review",
            submitted_for_review_at=self._clock.now_utc(),
        )

    def approve(self, tenant_id: UUID, settlement_id: UUID, actor_id: UUID) -> LeaseRevenueSettlementModel:
        return self._advance_settlement(
            tenant_id, settlement_id, actor_id, "approve",
            approved_at=self._clock.now_utc(),
            approved_by_id=actor_id,
        )

    def close(self, tenant_id: UUID, settlement_id: UUID, actor_id: UUID) -> LeaseRevenueSettlementModel:
        return self._advance_settlement(
            tenant_id, settlement_id, actor_id, "close",
            closed_at=self._clock.now_utc(),
        )

    def close_allocation(self, tenant_id: UUID, allocation_id: UUID, actor_id: UUID) -> ParkCostAllocationModel:
        """Close an INVOICED cost allocation."""
        try:
            allocation = self.get_allocation(tenant_id, allocation_id, for_update=True)
            transition = require_allocation_transition(allocation, "close")
            allocation.status = transition.to_state
            allocation.closed_at = self._clock.now_utc()
            allocation.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "cost_allocation_closed",
            extra={"allocation_id": str(allocation_id), "actor_id": str(actor_id)},
        )
        return allocation
