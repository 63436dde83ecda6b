"""
Tests for mark_invoice_sent.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from windpark_kernel.exceptions import InvoiceNotFoundError, InvoiceStateError
from windpark_kernel.models import Invoice, InvoiceStatus
from windpark_modules.archive.orm import ArchivedDocumentModel
from windpark_services import mark_invoice_sent


def add_draft(session, tenant_id, actor_id, pdf_storage_key=None, status=InvoiceStatus.DRAFT):
    invoice = Invoice(
        tenant_id=tenant_id,
        invoice_type="INVOICE",
        invoice_number="RE-2025-00001",
        invoice_date=date(2025, 1, 15),
        status=status.value,
        recipient_type="fund",
        recipient_name="Betreiber Nord GmbH & Co. KG",
        net_amount=Decimal("1000.00"),
        tax_rate=Decimal("19"),
        tax_amount=Decimal("190.00"),
        gross_amount=Decimal("1190.00"),
        pdf_storage_key=pdf_storage_key,
        created_by_id=actor_id,
    )
    session.add(invoice)
    session.commit()
    return invoice.id


class TestMarkInvoiceSent:
    """Tests for the DRAFT -> SENT transition and its archive hook."""

    def test_sent_and_archived(self, session, storage, clock, config, seeded_tenant, actor_id):
        storage.put("renders/re1.pdf", b"%PDF", "application/pdf")
        invoice_id = add_draft(session, seeded_tenant, actor_id, pdf_storage_key="renders/re1.pdf")

        result = mark_invoice_sent(
            session, storage, seeded_tenant, invoice_id, actor_id, clock=clock, config=config,
        )

        assert result.invoice_number == "RE-2025-00001"
        assert result.archive_id is not None
        invoice = session.get(Invoice, invoice_id)
        assert invoice.status == "SENT"
        assert invoice.sent_at is not None
        assert invoice.updated_by_id == actor_id
        assert session.get(ArchivedDocumentModel, result.archive_id).reference_id == invoice_id

    def test_archive_failure_keeps_sent(self, session, storage, clock, config, seeded_tenant, actor_id):
        invoice_id = add_draft(session, seeded_tenant, actor_id, pdf_storage_key="renders/missing.pdf")

        result = mark_invoice_sent(
            session, storage, seeded_tenant, invoice_id, actor_id, clock=clock, config=config,
        )

        assert result.archive_id is None
        assert session.get(Invoice, invoice_id).status == "SENT"

    def test_not_draft(self, session, storage, clock, config, seeded_tenant, actor_id):
        invoice_id = add_draft(session, seeded_tenant, actor_id, status=InvoiceStatus.PAID)

        with pytest.raises(InvoiceStateError) as exc_info:
            mark_invoice_sent(session, storage, seeded_tenant, invoice_id, actor_id, clock=clock, config=config)
        assert exc_info.value.current_status == "PAID"

    def test_unknown_or_foreign_invoice(
        self, session, storage, clock, config, seeded_tenant, other_tenant_id, actor_id,
    ):
        invoice_id = add_draft(session, seeded_tenant, actor_id)

        with pytest.raises(InvoiceNotFoundError):
            mark_invoice_sent(session, storage, seeded_tenant, uuid4(), actor_id, clock=clock, config=config)
        with pytest.raises(InvoiceNotFoundError):
            mark_invoice_sent(session, storage, other_tenant_id, invoice_id, actor_id, clock=clock, config=config)

    def test_archive_record_committed(self, session, storage, clock, config, seeded_tenant, actor_id):
        storage.put("renders/re1.pdf", b"%PDF", "application/pdf")
        invoice_id = add_draft(session, seeded_tenant, actor_id, pdf_storage_key="renders/re1.pdf")

        result = mark_invoice_sent(
            session, storage, seeded_tenant, invoice_id, actor_id, clock=clock, config=config,
        )
        session.rollback()

        assert session.get(ArchivedDocumentModel, result.archive_id) is not None
        assert session.get(Invoice, invoice_id).status == "SENT"
