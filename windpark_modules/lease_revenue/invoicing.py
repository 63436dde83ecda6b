"""
Lease Revenue Invoice Generators (``windpark_modules.lease_revenue.invoicing``).

Responsibility
--------------
Turns calculated settlement items into documents:

* advance credit notes to landowners (``generate_advance_invoices``),
* final credit notes to landowners, net of advances, with the annex data
  for the PDF renderer (``generate_settlement_invoices``),
* invoices to operator funds for their share of the lease costs
  (``generate_allocation_invoices``).

Architecture position
---------------------
**Modules layer**.  Each generator owns one transaction: invoice numbers,
invoices, links on the source rows and the status change are committed
together or not at all.

Invariants enforced
-------------------
* Invoice numbers are allocated in one batch of exactly as many numbers as
  invoices will be created, inside the same transaction (gap-free).
* Rows already linked to an invoice are skipped, so a rerun never creates
  a second document for the same item.
* The line net amounts of every document add up to the item's target
  amount (advance share, remainder, allocated amount); the cent
  difference is pushed onto one designated line.
* Line tax comes from the position tax map; EXEMPT lines are 0 %.

Failure modes
-------------
* Unknown id or wrong status -> reported in ``GenerateInvoiceResult.errors``;
  nothing is written.
* ``TaxRateNotFoundError`` or database errors -> rollback, re-raised.

Audit relevance
---------------
* Every line carries ``reference_type`` / ``reference_id`` of its source.
* Final credit notes carry ``calculation_details`` (calculation summary,
  revenue table, turbine productions, fee positions) so the annex can be
  rendered again without recalculating.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from windpark_config import WindparkConfig
from windpark_engines import allocate_proportionally, distribute_with_remainder
from windpark_kernel.db.types import ZERO, round_money
from windpark_kernel.domain.clock import Clock, SystemClock
from windpark_kernel.exceptions import AllocationStateError, SettlementStateError
from windpark_kernel.logging_config import get_logger
from windpark_kernel.models.invoice import (
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    InvoiceType,
    RecipientType,
)
from windpark_modules.lease_revenue.config import LeaseRevenueConfig
from windpark_modules.lease_revenue.labels import (
    build_fund_name,
    build_plot_description,
    build_recipient_address,
    build_recipient_name,
    get_service_period_dates,
    get_service_period_label,
)
from windpark_modules.lease_revenue.loader import (
    SettlementDataLoader,
    revenue_sources_from_details,
)
from windpark_modules.lease_revenue.models import (
    AdvanceComponentBreakdown,
    AllocationStatus,
    FeePosition,
    GenerateInvoiceResult,
    PeriodType,
    SettlementStatus,
)
from windpark_modules.lease_revenue.orm import (
    LeaseRevenueSettlementItemModel,
    LeaseRevenueSettlementModel,
    ParkCostAllocationModel,
)
from windpark_modules.lease_revenue.workflows import (
    require_allocation_transition,
    require_settlement_transition,
)
from windpark_modules.tax.calculations import calculate_tax_amounts
from windpark_modules.tax.models import PositionType, TaxType
from windpark_modules.tax.numbering import InvoiceNumberService
from windpark_modules.tax.service import TaxConfigurationService

logger = get_logger("modules.lease_revenue.invoicing")

SETTLEMENT_REFERENCE_TYPE = "LEASE_REVENUE_SETTLEMENT"
ALLOCATION_REFERENCE_TYPE = "COST_ALLOCATION"

SQM_PER_HECTARE = Decimal("10000")

# Fee components in line order: (position type, amount attribute on items
# and advance breakdowns, long label, short label)
_COMPONENTS: tuple[tuple[PositionType, str, str, str], ...] = (
    (PositionType.POOL_AREA, "pool_fee_eur", "Flaechenanteil Poolflaeche", "Poolflaeche"),
    (PositionType.TURBINE_SITE, "standort_fee_eur", "WEA-Standort", "WEA-Standort"),
    (PositionType.SEALED_AREA, "sealed_area_fee_eur", "versiegelte Flaeche", "versiegelte Flaeche"),
    (PositionType.ROAD_USAGE, "road_usage_fee_eur", "Wegenutzung", "Wegenutzung"),
    (PositionType.CABLE_ROUTE, "cable_fee_eur", "Kabeltrasse", "Kabeltrasse"),
)

# Components whose final fee line names the plots
_PLOT_COMPONENTS = (PositionType.POOL_AREA, PositionType.TURBINE_SITE)


class _RateTable:
    """Tax rates for one tenant and effective date, looked up once per type."""

    def __init__(self, tax_service: TaxConfigurationService, tenant_id: UUID, effective_date: date):
        self._tax_service = tax_service
        self._tenant_id = tenant_id
        self._effective_date = effective_date
        self._rates: dict[TaxType, Decimal] = {TaxType.EXEMPT: ZERO}

    def rate_for(self, tax_type: TaxType | str) -> Decimal:
        tax_type = TaxType(tax_type)
        if tax_type not in self._rates:
            self._rates[tax_type] = self._tax_service.get_tax_rate(
                self._tenant_id, tax_type, self._effective_date,
            )
        return self._rates[tax_type]


class LeaseRevenueInvoiceGenerator:
    """
    Creates credit notes and operator invoices from settlements.

    Contract
    --------
    * Each ``generate_*`` method returns a ``GenerateInvoiceResult``;
      precondition failures are reported in ``errors``, never raised.
    * ``initial_status`` SENT stamps ``sent_at`` with the clock time.

    Non-goals
    ---------
    * Does NOT render PDFs or archive documents; the renderer sets
      ``pdf_storage_key`` and archiving happens when an invoice is sent.
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
        self._numbers = InvoiceNumberService(session, clock=self._clock, config=config)

    # =========================================================================
    # Shared helpers
    # =========================================================================

    def _lock_settlement(self, tenant_id: UUID, settlement_id: UUID) -> LeaseRevenueSettlementModel | None:
        return self._session.execute(
            select(LeaseRevenueSettlementModel)
            .where(
                LeaseRevenueSettlementModel.id == settlement_id,
                LeaseRevenueSettlementModel.tenant_id == tenant_id,
            )
            .with_for_update(of=LeaseRevenueSettlementModel)
        ).unique().scalar_one_or_none()

    def _initial_status(self, initial_status: InvoiceStatus | str | None) -> str:
        status = InvoiceStatus(initial_status or self._module_config.default_invoice_status)
        if status not in (InvoiceStatus.DRAFT, InvoiceStatus.SENT):
            raise ValueError(f"Generated invoices cannot start in status {status.value}")
        return status.value

    def _make_lines(
        self,
        plans: list[FeePosition],
        rates: _RateTable,
        reference_type: str,
        reference_id: UUID,
    ) -> list[InvoiceItem]:
        lines = []
        for position, plan in enumerate(plans, start=1):
            amounts = calculate_tax_amounts(plan.net_amount, plan.tax_type, rates.rate_for(plan.tax_type))
            lines.append(InvoiceItem(
                position=position,
                description=plan.description,
                quantity=Decimal("1"),
                unit=self._module_config.line_unit,
                unit_price=amounts.net_amount,
                net_amount=amounts.net_amount,
                tax_type=TaxType(plan.tax_type).value,
                tax_rate=amounts.tax_rate,
                tax_amount=amounts.tax_amount,
                gross_amount=amounts.gross_amount,
                reference_type=reference_type,
                reference_id=reference_id,
            ))
        return lines

    def _new_invoice(
        self,
        *,
        tenant_id: UUID,
        actor_id: UUID,
        invoice_type: InvoiceType,
        invoice_number: str,
        status: str,
        recipient_type: RecipientType,
        recipient_name: str,
        recipient_address: str,
        lines: list[InvoiceItem],
        header_tax_rate: Decimal,
        **fields: Any,
    ) -> Invoice:
        invoice = Invoice(
            tenant_id=tenant_id,
            invoice_type=invoice_type.value,
            invoice_number=invoice_number,
            invoice_date=self._clock.today(),
            status=status,
            recipient_type=recipient_type.value,
            recipient_name=recipient_name,
            recipient_address=recipient_address,
            net_amount=round_money(sum((line.net_amount for line in lines), ZERO)),
            tax_rate=header_tax_rate,
            tax_amount=round_money(sum((line.tax_amount for line in lines), ZERO)),
            gross_amount=round_money(sum((line.gross_amount for line in lines), ZERO)),
            sent_at=self._clock.now_utc() if status == InvoiceStatus.SENT.value else None,
            created_by_id=actor_id,
            items=lines,
            **fields,
        )
        self._session.add(invoice)
        self._session.flush()
        return invoice

    @staticmethod
    def _header_tax_rate(plans: list[FeePosition], rates: _RateTable) -> Decimal:
        if any(TaxType(p.tax_type) == TaxType.STANDARD for p in plans):
            return rates.rate_for(TaxType.STANDARD)
        return ZERO

    @staticmethod
    def _fund_id(item: LeaseRevenueSettlementItemModel, settlement: LeaseRevenueSettlementModel) -> UUID | None:
        return item.direct_billing_fund_id or settlement.park.billing_entity_fund_id

    # =========================================================================
    # Advance credit notes
    # =========================================================================

    def _advance_amount(
        self,
        item: LeaseRevenueSettlementItemModel,
        total_subtotal: Decimal,
        minimum_guarantee: Decimal,
    ) -> Decimal:
        if total_subtotal <= ZERO:
            return ZERO
        return round_money(item.subtotal_eur / total_subtotal * minimum_guarantee)

    def generate_advance_invoices(
        self,
        tenant_id: UUID,
        settlement_id: UUID,
        actor_id: UUID,
        initial_status: InvoiceStatus | str | None = None,
    ) -> GenerateInvoiceResult:
        """
        One advance credit note per landowner of a CALCULATED settlement.

        The advance of a lease is its subtotal's share of the period's
        minimum guarantee, split across the fee components in proportion
        to the component amounts.
        """
        result = GenerateInvoiceResult()
        status = self._initial_status(initial_status)
        try:
            settlement = self._lock_settlement(tenant_id, settlement_id)
            if settlement is None:
                result.errors.append("Settlement not found")
                self._session.rollback()
                return result
            try:
                require_settlement_transition(settlement, "create_advance_invoices")
            except SettlementStateError as exc:
                result.errors.append(str(exc))
                self._session.rollback()
                return result

            items = list(settlement.items)
            minimum_guarantee = settlement.minimum_guarantee_eur
            total_subtotal = sum((i.subtotal_eur for i in items), ZERO)

            to_process = [
                (item, self._advance_amount(item, total_subtotal, minimum_guarantee))
                for item in items
                if item.advance_invoice_id is None and item.subtotal_eur > ZERO
            ]
            to_process = [(item, amount) for item, amount in to_process if amount > ZERO]
            result.skipped = len(items) - len(to_process)

            if not to_process:
                self._session.rollback()
                return result

            numbers = self._numbers.get_next_invoice_numbers(
                tenant_id, InvoiceType.CREDIT_NOTE, len(to_process),
            )
            period_start, period_end = get_service_period_dates(
                settlement.year, settlement.period_type, settlement.advance_interval, settlement.month,
            )
            period_label = get_service_period_label(
                settlement.year, settlement.period_type, settlement.advance_interval, settlement.month,
            )
            rates = _RateTable(self._tax, tenant_id, period_start)
            tax_map = self._tax.get_position_tax_map(tenant_id)

            for (item, advance), number in zip(to_process, numbers):
                plans = []
                for position_type, attr, text, _ in _COMPONENTS:
                    fee = getattr(item, attr)
                    if fee > ZERO:
                        plans.append(FeePosition(
                            description=f"Vorschuss {text}\n{period_label}",
                            net_amount=round_money(fee / item.subtotal_eur * advance),
                            tax_type=tax_map[position_type].value,
                        ))
                distribution = distribute_with_remainder(
                    advance, [p.net_amount for p in plans], adjust_index=-1,
                )
                plans = [
                    FeePosition(p.description, amount, p.tax_type)
                    for p, amount in zip(plans, distribution.amounts)
                ]

                person = item.lessor_person
                recipient_name = build_recipient_name(person)
                invoice = self._new_invoice(
                    tenant_id=tenant_id,
                    actor_id=actor_id,
                    invoice_type=InvoiceType.CREDIT_NOTE,
                    invoice_number=number,
                    status=status,
                    recipient_type=RecipientType.PERSON,
                    recipient_name=recipient_name,
                    recipient_address=build_recipient_address(person),
                    lines=self._make_lines(plans, rates, SETTLEMENT_REFERENCE_TYPE, settlement.id),
                    header_tax_rate=self._header_tax_rate(plans, rates),
                    due_date=settlement.advance_due_date,
                    fund_id=self._fund_id(item, settlement),
                    lease_id=item.lease_id,
                    park_id=settlement.park_id,
                    service_start_date=period_start,
                    service_end_date=period_end,
                    internal_reference=f"NE-VS-{settlement.year}-{recipient_name}",
                    payment_reference=(
                        f"Nutzungsentgelt Vorschuss {period_label} - {settlement.park.name}"
                    ),
                )
                item.advance_invoice_id = invoice.id
                item.advance_paid_eur = advance
                result.invoice_ids.append(invoice.id)
                result.created += 1

            settlement.status = SettlementStatus.ADVANCE_CREATED.value
            settlement.advance_created_at = self._clock.now_utc()
            settlement.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "advance_invoices_generated",
            extra={
                "tenant_id": str(tenant_id),
                "settlement_id": str(settlement_id),
                "created_count": result.created,
                "skipped": result.skipped,
            },
        )
        return result

    # =========================================================================
    # Final credit notes
    # =========================================================================

    def _calculation_summary(self, settlement: LeaseRevenueSettlementModel) -> dict[str, Any]:
        park = settlement.park
        pool_sqm = settlement.total_pool_area_sqm
        wea_total = settlement.wea_standort_total_eur
        pool_total = settlement.pool_area_total_eur
        pool_ha = pool_sqm / SQM_PER_HECTARE
        return {
            "totalRevenueEur": float(settlement.total_park_revenue_eur),
            "revenuePhasePercentage": float(settlement.revenue_share_percent),
            "calculatedAnnualFee": float(settlement.calculated_fee_eur),
            "minimumPerContract": float(settlement.minimum_guarantee_eur),
            "actualAnnualFee": float(settlement.actual_fee_eur),
            "weaSharePercentage": float(park.wea_share_percentage or ZERO),
            "weaShareAmount": float(wea_total),
            "weaSharePerUnit": float(
                round_money(wea_total / settlement.total_wea_count)
                if settlement.total_wea_count > 0 else ZERO
            ),
            "weaCount": settlement.total_wea_count,
            "poolSharePercentage": float(park.pool_share_percentage or ZERO),
            "poolShareAmount": float(pool_total),
            "poolSharePerHa": float(round_money(pool_total / pool_ha) if pool_sqm > ZERO else ZERO),
            "poolTotalHa": float(round_money(pool_ha)),
            "parkName": park.name,
            "year": settlement.year,
        }

    def _settlement_pdf_details(self, tenant_id: UUID, settlement: LeaseRevenueSettlementModel) -> dict[str, Any]:
        details = settlement.calculation_details or {}
        sources = revenue_sources_from_details(details)
        if sources:
            revenue_table = self._loader.revenue_table_from_sources(sources)
        else:
            revenue_table = self._loader.load_revenue_table_entries(
                tenant_id,
                settlement.park_id,
                settlement.year,
                details.get("revenueDisplayMode") or self._module_config.default_revenue_display_mode,
            )
        productions = self._loader.load_turbine_productions(
            tenant_id, settlement.park_id, settlement.year,
        )

        pdf: dict[str, Any] = {
            "type": PeriodType.FINAL.value,
            "subtitle": f"Nutzungsentgelt / {settlement.park.name} / {settlement.year}",
        }
        if revenue_table:
            pdf["revenueTable"] = [e.to_dict() for e in revenue_table]
            pdf["revenueTableTotal"] = float(settlement.total_park_revenue_eur)
        pdf["calculationSummary"] = self._calculation_summary(settlement)
        if productions:
            pdf["turbineProductions"] = [p.to_dict() for p in productions]
        return pdf

    @staticmethod
    def _fee_positions(
        item: LeaseRevenueSettlementItemModel,
        advance: AdvanceComponentBreakdown,
        tax_map: dict[PositionType, TaxType],
        year: int,
    ) -> list[FeePosition]:
        """Full annual fees followed by the advance offsets (negative)."""
        plot_desc = build_plot_description(item.plot_summary)
        plot_suffix = f" {plot_desc}" if plot_desc else ""

        positions = []
        for position_type, attr, text, _ in _COMPONENTS:
            fee = getattr(item, attr)
            if fee > ZERO:
                suffix = plot_suffix if position_type in _PLOT_COMPONENTS else ""
                positions.append(FeePosition(
                    description=f"Jahresnutzungsentgelt {text}{suffix}\nJahr {year}",
                    net_amount=round_money(fee),
                    tax_type=tax_map[position_type].value,
                ))
        for position_type, attr, _, short_text in _COMPONENTS:
            paid = getattr(advance, attr)
            if paid > ZERO:
                positions.append(FeePosition(
                    description=f"Verrechnung Vorschuss {short_text}\nJahr {year}",
                    net_amount=-paid,
                    tax_type=tax_map[position_type].value,
                ))
        return positions

    @staticmethod
    def _payout_lines(
        item: LeaseRevenueSettlementItemModel,
        advance: AdvanceComponentBreakdown,
        remainder: Decimal,
        tax_map: dict[PositionType, TaxType],
        year: int,
    ) -> list[FeePosition]:
        """
        Net payout per component (fee minus advance), positive ones only.

        When no component stays positive although the remainder does (the
        advance breakdown and the stored advance disagree), the remainder
        is spread over the positive fees instead.
        """
        candidates = []
        for position_type, attr, _, short_text in _COMPONENTS:
            fee = getattr(item, attr)
            candidates.append((
                position_type,
                short_text,
                fee,
                round_money(fee - getattr(advance, attr)),
            ))

        payouts = [(p, t, net) for p, t, _, net in candidates if net > ZERO]
        if not payouts:
            positive = [(p, t, fee) for p, t, fee, _ in candidates if fee > ZERO]
            shares = allocate_proportionally(remainder, [fee for _, _, fee in positive])
            payouts = [(p, t, share) for (p, t, _), share in zip(positive, shares)]

        distribution = distribute_with_remainder(
            remainder, [net for _, _, net in payouts], adjust_index=0,
        )
        return [
            FeePosition(
                description=f"Verguetung Endabrechnung {text}\nJahr {year}",
                net_amount=amount,
                tax_type=tax_map[position_type].value,
            )
            for (position_type, text, _), amount in zip(payouts, distribution.amounts)
        ]

    def generate_settlement_invoices(
        self,
        tenant_id: UUID,
        settlement_id: UUID,
        actor_id: UUID,
        initial_status: InvoiceStatus | str | None = None,
    ) -> GenerateInvoiceResult:
        """
        One final credit note per landowner whose fees exceed the advances.

        The settlement moves to SETTLED even when no credit note results.
        """
        result = GenerateInvoiceResult()
        status = self._initial_status(initial_status)
        try:
            settlement = self._lock_settlement(tenant_id, settlement_id)
            if settlement is None:
                result.errors.append("Settlement not found")
                self._session.rollback()
                return result
            try:
                require_settlement_transition(settlement, "create_settlement_invoices")
            except SettlementStateError as exc:
                result.errors.append(str(exc))
                self._session.rollback()
                return result

            items = list(settlement.items)
            now = self._clock.now_utc()

            to_process = []
            for item in items:
                if item.settlement_invoice_id is not None:
                    continue
                remainder = round_money(item.subtotal_eur - item.advance_paid_eur)
                if remainder <= ZERO:
                    item.remainder_eur = ZERO
                    continue
                to_process.append((item, remainder))
            result.skipped = len(items) - len(to_process)

            if to_process:
                numbers = self._numbers.get_next_invoice_numbers(
                    tenant_id, InvoiceType.CREDIT_NOTE, len(to_process),
                )
                year = settlement.year
                rates = _RateTable(self._tax, tenant_id, date(year, 1, 1))
                tax_map = self._tax.get_position_tax_map(tenant_id)
                breakdown = self._loader.load_advance_component_breakdown(
                    tenant_id, settlement.park_id, year,
                )
                pdf_details = self._settlement_pdf_details(tenant_id, settlement)

                for (item, remainder), number in zip(to_process, numbers):
                    advance = breakdown.get(item.lease_id, AdvanceComponentBreakdown())
                    plans = self._payout_lines(item, advance, remainder, tax_map, year)
                    fee_positions = self._fee_positions(item, advance, tax_map, year)

                    invoice_details = dict(pdf_details)
                    if fee_positions:
                        invoice_details["feePositions"] = [p.to_dict() for p in fee_positions]

                    person = item.lessor_person
                    recipient_name = build_recipient_name(person)
                    invoice = self._new_invoice(
                        tenant_id=tenant_id,
                        actor_id=actor_id,
                        invoice_type=InvoiceType.CREDIT_NOTE,
                        invoice_number=number,
                        status=status,
                        recipient_type=RecipientType.PERSON,
                        recipient_name=recipient_name,
                        recipient_address=build_recipient_address(person),
                        lines=self._make_lines(plans, rates, SETTLEMENT_REFERENCE_TYPE, settlement.id),
                        header_tax_rate=self._header_tax_rate(plans, rates),
                        due_date=settlement.settlement_due_date,
                        fund_id=self._fund_id(item, settlement),
                        lease_id=item.lease_id,
                        park_id=settlement.park_id,
                        service_start_date=date(year, 1, 1),
                        service_end_date=date(year, 12, 31),
                        internal_reference=f"NE-EA-{year}-{recipient_name}",
                        payment_reference=(
                            f"Nutzungsentgelt Endabrechnung Jahr {year} - {settlement.park.name}"
                        ),
                        calculation_details=invoice_details,
                    )
                    item.settlement_invoice_id = invoice.id
                    item.remainder_eur = remainder
                    result.invoice_ids.append(invoice.id)
                    result.created += 1

            settlement.status = SettlementStatus.SETTLED.value
            settlement.settlement_created_at = now
            settlement.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "settlement_invoices_generated",
            extra={
                "tenant_id": str(tenant_id),
                "settlement_id": str(settlement_id),
                "created_count": result.created,
                "skipped": result.skipped,
            },
        )
        return result

    # =========================================================================
    # Operator invoices
    # =========================================================================

    def generate_allocation_invoices(
        self,
        tenant_id: UUID,
        allocation_id: UUID,
        actor_id: UUID,
    ) -> GenerateInvoiceResult:
        """
        One invoice per operator fund of a DRAFT cost allocation.

        Up to two lines: the taxable pool share at the standard rate with
        the VAT stored on the allocation item, and the exempt site, road
        and cable share at 0 %.
        """
        result = GenerateInvoiceResult()
        try:
            allocation = self._session.execute(
                select(ParkCostAllocationModel)
                .where(
                    ParkCostAllocationModel.id == allocation_id,
                    ParkCostAllocationModel.tenant_id == tenant_id,
                )
                .with_for_update(of=ParkCostAllocationModel)
            ).unique().scalar_one_or_none()
            if allocation is None:
                result.errors.append("Cost allocation not found")
                self._session.rollback()
                return result
            try:
                require_allocation_transition(allocation, "create_invoices")
            except AllocationStateError as exc:
                result.errors.append(str(exc))
                self._session.rollback()
                return result

            items = list(allocation.items)
            to_process = []
            for item in items:
                has_taxable = item.vat_invoice_id is None and item.taxable_amount_eur > ZERO
                has_exempt = item.exempt_invoice_id is None and item.exempt_amount_eur > ZERO
                if has_taxable or has_exempt:
                    to_process.append((item, has_taxable, has_exempt))
            result.skipped = len(items) - len(to_process)

            if not to_process:
                self._session.rollback()
                return result

            settlement = allocation.settlement
            park = settlement.park
            numbers = self._numbers.get_next_invoice_numbers(
                tenant_id, InvoiceType.INVOICE, len(to_process),
            )
            period_start, period_end = get_service_period_dates(
                settlement.year, settlement.period_type, settlement.advance_interval, settlement.month,
            )
            period_label = get_service_period_label(
                settlement.year, settlement.period_type, settlement.advance_interval, settlement.month,
            )
            is_advance = settlement.period_type == PeriodType.ADVANCE.value
            line_prefix = "Vorschuss " if is_advance else ""
            reference_prefix = "Vorschuss" if is_advance else "Kostenaufteilung"

            standard_rate = self._tax.get_tax_rate(tenant_id, TaxType.STANDARD, period_start)
            tax_map = self._tax.get_position_tax_map(tenant_id)
            settings = self._tax.get_tenant_settings(tenant_id)
            due_date = self._clock.today() + timedelta(days=settings.payment_term_days)

            for (item, has_taxable, has_exempt), number in zip(to_process, numbers):
                lines = []
                if has_taxable:
                    net = round_money(item.taxable_amount_eur)
                    vat = round_money(item.taxable_vat_eur)
                    lines.append(InvoiceItem(
                        position=len(lines) + 1,
                        description=(
                            f"{line_prefix}Flaechenanteil Poolflaeche + A&E\n"
                            f"{period_label} ({item.allocation_basis})"
                        ),
                        quantity=Decimal("1"),
                        unit=self._module_config.line_unit,
                        unit_price=net,
                        net_amount=net,
                        tax_type=tax_map[PositionType.POOL_AREA].value,
                        tax_rate=standard_rate,
                        tax_amount=vat,
                        gross_amount=round_money(net + vat),
                        reference_type=ALLOCATION_REFERENCE_TYPE,
                        reference_id=allocation.id,
                    ))
                if has_exempt:
                    net = round_money(item.exempt_amount_eur)
                    lines.append(InvoiceItem(
                        position=len(lines) + 1,
                        description=(
                            f"{line_prefix}WEA-Standort, versiegelte Flaeche, Wegenutzung, Kabel\n"
                            f"{period_label} ({item.allocation_basis})"
                        ),
                        quantity=Decimal("1"),
                        unit=self._module_config.line_unit,
                        unit_price=net,
                        net_amount=net,
                        tax_type=tax_map[PositionType.TURBINE_SITE].value,
                        tax_rate=ZERO,
                        tax_amount=ZERO,
                        gross_amount=net,
                        reference_type=ALLOCATION_REFERENCE_TYPE,
                        reference_id=allocation.id,
                    ))

                fund = item.operator_fund
                invoice = self._new_invoice(
                    tenant_id=tenant_id,
                    actor_id=actor_id,
                    invoice_type=InvoiceType.INVOICE,
                    invoice_number=number,
                    status=InvoiceStatus.DRAFT.value,
                    recipient_type=RecipientType.FUND,
                    recipient_name=build_fund_name(fund),
                    recipient_address=fund.address or "",
                    lines=lines,
                    header_tax_rate=standard_rate if has_taxable else ZERO,
                    due_date=due_date,
                    fund_id=item.operator_fund_id,
                    park_id=park.id,
                    service_start_date=period_start,
                    service_end_date=period_end,
                    internal_reference=f"NE-KA-{settlement.year}-{fund.name}",
                    payment_reference=f"{reference_prefix} Nutzungsentgelt {period_label} - {park.name}",
                    notes=f"Pos. Standort {settings.tax_exempt_note}" if has_exempt else None,
                )
                if has_taxable:
                    item.vat_invoice_id = invoice.id
                if has_exempt:
                    item.exempt_invoice_id = invoice.id
                result.invoice_ids.append(invoice.id)
                result.created += 1

            allocation.status = AllocationStatus.INVOICED.value
            allocation.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "allocation_invoices_generated",
            extra={
                "tenant_id": str(tenant_id),
                "allocation_id": str(allocation_id),
                "created_count": result.created,
                "skipped": result.skipped,
            },
        )
        return result
