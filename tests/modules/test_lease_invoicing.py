"""
Tests for the lease revenue invoice generators.

Covers:
- Advance credit notes: share of the minimum guarantee, line split, numbering
- Final credit notes: fees net of advances, annex data, plot descriptions
- Operator invoices from a cost allocation
- Reruns and precondition failures reported in ``errors``
"""

from datetime import date
from decimal import Decimal

import pytest

from windpark_kernel.models.invoice import Invoice
from windpark_modules.lease_revenue.service import LeaseRevenueSettlementService


@pytest.fixture
def service(session, clock, config):
    return LeaseRevenueSettlementService(session, clock=clock, config=config)


def load_invoices(session, invoice_ids):
    invoices = {i.id: i for i in session.query(Invoice).filter(Invoice.id.in_(invoice_ids))}
    return [invoices[i] for i in invoice_ids]


def invoice_for_lease(invoices, lease):
    return next(i for i in invoices if i.lease_id == lease.id)


def calculated_advance(service, demo_park, tenant_id, actor_id):
    settlement = service.open_settlement(
        tenant_id, demo_park.park.id, 2024, actor_id,
        period_type="ADVANCE", advance_interval="QUARTERLY", month=1,
        advance_due_date=date(2024, 1, 31),
    )
    service.execute_settlement_calculation(tenant_id, settlement.id, actor_id)
    return settlement


def calculated_final(service, demo_park, tenant_id, actor_id):
    settlement = service.open_settlement(
        tenant_id, demo_park.park.id, 2024, actor_id,
        settlement_due_date=date(2025, 3, 31),
    )
    service.execute_settlement_calculation(tenant_id, settlement.id, actor_id)
    return settlement


class TestAdvanceInvoices:
    """Tests for generate_advance_invoices."""

    def test_one_credit_note_per_lease(self, service, session, demo_park, tenant_id, actor_id):
        settlement = calculated_advance(service, demo_park, tenant_id, actor_id)
        result = service.generate_advance_invoices(tenant_id, settlement.id, actor_id)

        assert result.created == 2
        assert result.skipped == 0
        assert result.errors == []

        invoices = load_invoices(session, result.invoice_ids)
        assert [i.invoice_number for i in invoices] == ["GS-2025-00001", "GS-2025-00002"]
        assert {i.invoice_type for i in invoices} == {"CREDIT_NOTE"}
        assert {i.status for i in invoices} == {"DRAFT"}

    def test_advance_is_share_of_minimum_guarantee(self, service, session, demo_park, tenant_id, actor_id):
        settlement = calculated_advance(service, demo_park, tenant_id, actor_id)
        result = service.generate_advance_invoices(tenant_id, settlement.id, actor_id)
        invoices = load_invoices(session, result.invoice_ids)

        mueller = invoice_for_lease(invoices, demo_park.lease_mueller)
        agrar = invoice_for_lease(invoices, demo_park.lease_agrar)
        assert mueller.net_amount == Decimal("4619.05")
        assert agrar.net_amount == Decimal("2880.95")
        assert mueller.net_amount + agrar.net_amount == Decimal("7500.00")

    def test_lines(self, service, session, demo_park, tenant_id, actor_id):
        settlement = calculated_advance(service, demo_park, tenant_id, actor_id)
        result = service.generate_advance_invoices(tenant_id, settlement.id, actor_id)
        mueller = invoice_for_lease(load_invoices(session, result.invoice_ids), demo_park.lease_mueller)

        assert len(mueller.items) == 4
        pool_line = mueller.items[0]
        assert pool_line.description == "Vorschuss Flaechenanteil Poolflaeche\nQuartal 1 - 2024"
        assert pool_line.tax_type == "STANDARD"
        assert pool_line.net_amount == Decimal("3857.14")
        assert pool_line.tax_amount == Decimal("732.86")
        assert {line.tax_type for line in mueller.items[1:]} == {"EXEMPT"}
        assert sum(line.net_amount for line in mueller.items) == Decimal("4619.05")
        assert mueller.tax_amount == Decimal("732.86")
        assert mueller.gross_amount == Decimal("5351.91")
        assert mueller.tax_rate == Decimal("19")

    def test_header_fields(self, service, session, demo_park, tenant_id, actor_id):
        settlement = calculated_advance(service, demo_park, tenant_id, actor_id)
        result = service.generate_advance_invoices(tenant_id, settlement.id, actor_id)
        mueller = invoice_for_lease(load_invoices(session, result.invoice_ids), demo_park.lease_mueller)

        assert mueller.recipient_name == "Hans Mueller"
        assert mueller.recipient_address == "Dorfstrasse 5\n25813 Husum"
        assert mueller.fund_id == demo_park.billing_fund.id
        assert mueller.invoice_date == date(2025, 1, 15)
        assert mueller.due_date == date(2024, 1, 31)
        assert mueller.service_start_date == date(2024, 1, 1)
        assert mueller.service_end_date == date(2024, 3, 31)
        assert mueller.internal_reference == "NE-VS-2024-Hans Mueller"
        assert mueller.payment_reference == "Nutzungsentgelt Vorschuss Quartal 1 - 2024 - Windpark Nord"

    def test_links_and_status(self, service, demo_park, tenant_id, actor_id):
        settlement = calculated_advance(service, demo_park, tenant_id, actor_id)
        result = service.generate_advance_invoices(tenant_id, settlement.id, actor_id)

        settlement = service.get_settlement(tenant_id, settlement.id)
        assert settlement.status == "ADVANCE_CREATED"
        assert settlement.advance_created_at is not None
        assert {i.advance_invoice_id for i in settlement.items} == set(result.invoice_ids)

    def test_sent_status(self, service, session, demo_park, tenant_id, actor_id):
        settlement = calculated_advance(service, demo_park, tenant_id, actor_id)
        result = service.generate_advance_invoices(
            tenant_id, settlement.id, actor_id, initial_status="SENT",
        )
        for invoice in load_invoices(session, result.invoice_ids):
            assert invoice.status == "SENT"
            assert invoice.sent_at is not None

    def test_paid_status_rejected(self, service, demo_park, tenant_id, actor_id):
        settlement = calculated_advance(service, demo_park, tenant_id, actor_id)
        with pytest.raises(ValueError):
            service.generate_advance_invoices(
                tenant_id, settlement.id, actor_id, initial_status="PAID",
            )

    def test_rerun_reports_error(self, service, session, demo_park, tenant_id, actor_id):
        settlement = calculated_advance(service, demo_park, tenant_id, actor_id)
        service.generate_advance_invoices(tenant_id, settlement.id, actor_id)

        result = service.generate_advance_invoices(tenant_id, settlement.id, actor_id)
        assert result.created == 0
        assert "ADVANCE_CREATED" in result.errors[0]
        assert session.query(Invoice).count() == 2

    def test_open_settlement_reports_error(self, service, demo_park, tenant_id, actor_id):
        settlement = service.open_settlement(
            tenant_id, demo_park.park.id, 2024, actor_id,
            period_type="ADVANCE", advance_interval="YEARLY",
        )
        result = service.generate_advance_invoices(tenant_id, settlement.id, actor_id)
        assert result.created == 0
        assert len(result.errors) == 1

    def test_unknown_settlement(self, service, seeded_tenant, actor_id, random_id):
        result = service.generate_advance_invoices(seeded_tenant, random_id, actor_id)
        assert result.errors == ["Settlement not found"]


class TestSettlementInvoices:
    """Tests for generate_settlement_invoices."""

    def test_without_advances(self, service, session, demo_park, tenant_id, actor_id):
        settlement = calculated_final(service, demo_park, tenant_id, actor_id)
        result = service.generate_settlement_invoices(tenant_id, settlement.id, actor_id)
        assert result.created == 2
        invoices = load_invoices(session, result.invoice_ids)

        mueller = invoice_for_lease(invoices, demo_park.lease_mueller)
        assert mueller.net_amount == Decimal("49733.33")
        assert mueller.tax_amount == Decimal("8208.00")
        assert mueller.gross_amount == Decimal("57941.33")
        assert [line.net_amount for line in mueller.items] == [
            Decimal("43200.00"), Decimal("5333.33"), Decimal("200.00"), Decimal("1000.00"),
        ]
        assert mueller.due_date == date(2025, 3, 31)
        assert mueller.service_start_date == date(2024, 1, 1)
        assert mueller.service_end_date == date(2024, 12, 31)
        assert mueller.internal_reference == "NE-EA-2024-Hans Mueller"

        agrar = invoice_for_lease(invoices, demo_park.lease_agrar)
        assert agrar.recipient_name == "Agrar Nordfeld GmbH"
        assert agrar.net_amount == Decimal("31766.67")
        assert agrar.tax_amount == Decimal("5472.00")

    def test_after_advances(self, service, session, demo_park, tenant_id, actor_id):
        advance = calculated_advance(service, demo_park, tenant_id, actor_id)
        service.generate_advance_invoices(tenant_id, advance.id, actor_id)
        final = calculated_final(service, demo_park, tenant_id, actor_id)

        result = service.generate_settlement_invoices(tenant_id, final.id, actor_id)
        invoices = load_invoices(session, result.invoice_ids)
        assert [i.invoice_number for i in invoices] == ["GS-2025-00003", "GS-2025-00004"]

        mueller = invoice_for_lease(invoices, demo_park.lease_mueller)
        assert [line.net_amount for line in mueller.items] == [
            Decimal("39150.00"), Decimal("4833.33"), Decimal("150.00"), Decimal("750.00"),
        ]
        assert mueller.items[0].description == "Verguetung Endabrechnung Poolflaeche\nJahr 2024"
        assert mueller.net_amount == Decimal("44883.33")
        assert mueller.tax_amount == Decimal("7438.50")

        agrar = invoice_for_lease(invoices, demo_park.lease_agrar)
        assert [line.net_amount for line in agrar.items] == [
            Decimal("26100.00"), Decimal("2416.67"), Decimal("225.00"),
        ]
        assert agrar.net_amount == Decimal("28741.67")

    def test_fee_positions_in_annex(self, service, session, demo_park, tenant_id, actor_id):
        advance = calculated_advance(service, demo_park, tenant_id, actor_id)
        service.generate_advance_invoices(tenant_id, advance.id, actor_id)
        final = calculated_final(service, demo_park, tenant_id, actor_id)

        result = service.generate_settlement_invoices(tenant_id, final.id, actor_id)
        invoices = load_invoices(session, result.invoice_ids)
        positions = invoice_for_lease(invoices, demo_park.lease_mueller).calculation_details["feePositions"]

        assert len(positions) == 8
        assert positions[0]["description"] == (
            "Jahresnutzungsentgelt Flaechenanteil Poolflaeche "
            "Flst. 12, Flur 3, Gem. Nordheim\nJahr 2024"
        )
        assert positions[0]["netAmount"] == 43200.0
        assert positions[4]["description"] == "Verrechnung Vorschuss Poolflaeche\nJahr 2024"
        assert positions[4]["netAmount"] == -4050.0

        agrar_positions = invoice_for_lease(invoices, demo_park.lease_agrar).calculation_details["feePositions"]
        assert "Flst. 7, Gem. Nordheim" in agrar_positions[0]["description"]

    def test_annex_summary(self, service, session, demo_park, tenant_id, actor_id):
        settlement = calculated_final(service, demo_park, tenant_id, actor_id)
        result = service.generate_settlement_invoices(tenant_id, settlement.id, actor_id)
        details = load_invoices(session, result.invoice_ids)[0].calculation_details

        assert details["type"] == "FINAL"
        assert details["subtitle"] == "Nutzungsentgelt / Windpark Nord / 2024"
        assert details["revenueTable"][0]["category"] == "Jahresabrechnung 2024"
        assert details["revenueTableTotal"] == 1000000.0
        summary = details["calculationSummary"]
        assert summary["actualAnnualFee"] == 80000.0
        assert summary["weaCount"] == 3
        assert summary["weaSharePerUnit"] == 2666.67
        assert summary["poolTotalHa"] == 10.0
        assert summary["poolSharePerHa"] == 7200.0
        assert "turbineProductions" not in details

    def test_status_settled(self, service, demo_park, tenant_id, actor_id):
        settlement = calculated_final(service, demo_park, tenant_id, actor_id)
        result = service.generate_settlement_invoices(tenant_id, settlement.id, actor_id)
        settlement = service.get_settlement(tenant_id, settlement.id)
        assert settlement.status == "SETTLED"
        assert {i.settlement_invoice_id for i in settlement.items} == set(result.invoice_ids)

    def test_fully_paid_lease_is_skipped(self, service, session, demo_park, tenant_id, actor_id):
        settlement = calculated_final(service, demo_park, tenant_id, actor_id)
        agrar_item = next(
            i for i in service.get_settlement(tenant_id, settlement.id).items
            if i.lease_id == demo_park.lease_agrar.id
        )
        agrar_item.advance_paid_eur = agrar_item.subtotal_eur
        session.commit()

        result = service.generate_settlement_invoices(tenant_id, settlement.id, actor_id)
        assert result.created == 1
        assert result.skipped == 1
        assert agrar_item.remainder_eur == Decimal("0")

    def test_rerun_reports_error(self, service, demo_park, tenant_id, actor_id):
        settlement = calculated_final(service, demo_park, tenant_id, actor_id)
        service.generate_settlement_invoices(tenant_id, settlement.id, actor_id)
        result = service.generate_settlement_invoices(tenant_id, settlement.id, actor_id)
        assert result.created == 0
        assert "SETTLED" in result.errors[0]


class TestAllocationInvoices:
    """Tests for generate_allocation_invoices."""

    def _allocation(self, service, demo_park, tenant_id, actor_id):
        settlement = calculated_final(service, demo_park, tenant_id, actor_id)
        return service.execute_cost_allocation(tenant_id, settlement.id, actor_id)

    def test_one_invoice_per_operator(self, service, session, demo_park, tenant_id, actor_id):
        allocation = self._allocation(service, demo_park, tenant_id, actor_id)
        result = service.generate_allocation_invoices(tenant_id, allocation.id, actor_id)

        assert result.created == 2
        invoices = load_invoices(session, result.invoice_ids)
        assert {i.invoice_number for i in invoices} == {"RE-2025-00001", "RE-2025-00002"}
        assert {i.invoice_type for i in invoices} == {"INVOICE"}
        assert {i.recipient_type for i in invoices} == {"FUND"}

    def test_operator_invoice_content(self, service, session, demo_park, tenant_id, actor_id):
        allocation = self._allocation(service, demo_park, tenant_id, actor_id)
        result = service.generate_allocation_invoices(tenant_id, allocation.id, actor_id)
        nord = next(
            i for i in load_invoices(session, result.invoice_ids)
            if i.fund_id == demo_park.fund_nord.id
        )

        assert nord.recipient_name == "Betreiber Nord GmbH & Co. KG"
        assert nord.recipient_address == "Hafenstrasse 1\n20457 Hamburg"
        assert nord.due_date == date(2025, 2, 14)
        assert nord.notes == "Pos. Standort Steuerfrei gem. §4 Nr.12 UStG"
        assert nord.net_amount == Decimal("54333.36")
        assert nord.tax_amount == Decimal("9120.00")
        assert nord.gross_amount == Decimal("63453.36")
        assert nord.items[0].description == (
            "Flaechenanteil Poolflaeche + A&E\nJahr 2024 (2/3 (3 WEA gesamt))"
        )
        assert nord.items[1].tax_type == "EXEMPT"
        assert nord.items[1].tax_amount == Decimal("0")

    def test_allocation_invoiced(self, service, demo_park, tenant_id, actor_id):
        allocation = self._allocation(service, demo_park, tenant_id, actor_id)
        service.generate_allocation_invoices(tenant_id, allocation.id, actor_id)
        allocation = service.get_allocation(tenant_id, allocation.id)
        assert allocation.status == "INVOICED"
        for item in allocation.items:
            assert item.vat_invoice_id is not None
            assert item.vat_invoice_id == item.exempt_invoice_id

    def test_rerun_reports_error(self, service, demo_park, tenant_id, actor_id):
        allocation = self._allocation(service, demo_park, tenant_id, actor_id)
        service.generate_allocation_invoices(tenant_id, allocation.id, actor_id)
        result = service.generate_allocation_invoices(tenant_id, allocation.id, actor_id)
        assert result.created == 0
        assert "INVOICED" in result.errors[0]

    def test_unknown_allocation(self, service, seeded_tenant, actor_id, random_id):
        result = service.generate_allocation_invoices(seeded_tenant, random_id, actor_id)
        assert result.errors == ["Cost allocation not found"]
