"""
Tests for the auto-archive hooks.

The hooks never raise: skipped or failed documents come back as None and
leave a log line behind.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from windpark_kernel.models import Contract, Invoice, InvoiceStatus, InvoiceType
from windpark_kernel.utils.hashing import hash_document
from windpark_modules.archive.models import ArchiveDocumentType
from windpark_modules.archive.orm import ArchivedDocumentModel
from windpark_services import (
    auto_archive_contract,
    auto_archive_generic_document,
    auto_archive_invoice,
    auto_archive_settlement,
)


def add_invoice(session, tenant_id, actor_id, number="GS-2025-00001",
                invoice_type=InvoiceType.CREDIT_NOTE, pdf_storage_key=None):
    invoice = Invoice(
        tenant_id=tenant_id,
        invoice_type=invoice_type.value,
        invoice_number=number,
        invoice_date=date(2025, 1, 15),
        status=InvoiceStatus.SENT.value,
        recipient_type="person",
        recipient_name="Hans Mueller",
        net_amount=Decimal("100.00"),
        tax_rate=Decimal("19"),
        tax_amount=Decimal("19.00"),
        gross_amount=Decimal("119.00"),
        pdf_storage_key=pdf_storage_key,
        created_by_id=actor_id,
    )
    session.add(invoice)
    session.commit()
    return invoice.id


@pytest.fixture
def hook_args(clock, config):
    return {"clock": clock, "config": config}


class TestAutoArchiveInvoice:
    """Tests for auto_archive_invoice."""

    def test_credit_note_archived(self, session, storage, hook_args, seeded_tenant, actor_id):
        storage.put("renders/gs1.pdf", b"%PDF credit note", "application/pdf")
        invoice_id = add_invoice(session, seeded_tenant, actor_id, pdf_storage_key="renders/gs1.pdf")

        archive_id = auto_archive_invoice(session, storage, invoice_id, actor_id, **hook_args)

        archived = session.get(ArchivedDocumentModel, archive_id)
        assert archived.document_type == ArchiveDocumentType.CREDIT_NOTE.value
        assert archived.reference_id == invoice_id
        assert archived.reference_number == "GS-2025-00001"
        assert archived.file_name == "GS-2025-00001.pdf"
        assert archived.content_hash == hash_document(b"%PDF credit note")
        assert archived.metadata_json["invoiceType"] == "CREDIT_NOTE"
        assert archived.metadata_json["recipientName"] == "Hans Mueller"
        assert archived.metadata_json["invoiceDate"] == "2025-01-15"
        assert archived.metadata_json["fundName"] == ""

    def test_invoice_type(self, session, storage, hook_args, seeded_tenant, actor_id):
        storage.put("renders/re1.pdf", b"%PDF invoice", "application/pdf")
        invoice_id = add_invoice(
            session, seeded_tenant, actor_id, number="RE-2025-00001",
            invoice_type=InvoiceType.INVOICE, pdf_storage_key="renders/re1.pdf",
        )

        archive_id = auto_archive_invoice(session, storage, invoice_id, actor_id, **hook_args)
        assert session.get(ArchivedDocumentModel, archive_id).document_type == "INVOICE"

    def test_without_pdf_skipped(self, session, storage, hook_args, captured_logs, seeded_tenant, actor_id):
        invoice_id = add_invoice(session, seeded_tenant, actor_id)

        assert auto_archive_invoice(session, storage, invoice_id, actor_id, **hook_args) is None
        skipped = next(r for r in captured_logs() if r["message"] == "auto_archive_skipped")
        assert skipped["reason"] == "no_pdf"

    def test_unknown_invoice(self, session, storage, hook_args, seeded_tenant, actor_id):
        assert auto_archive_invoice(session, storage, uuid4(), actor_id, **hook_args) is None

    def test_missing_pdf_object_logged(
        self, session, storage, hook_args, captured_logs, seeded_tenant, actor_id,
    ):
        invoice_id = add_invoice(session, seeded_tenant, actor_id, pdf_storage_key="renders/gone.pdf")

        assert auto_archive_invoice(session, storage, invoice_id, actor_id, **hook_args) is None
        failed = next(r for r in captured_logs() if r["message"] == "auto_archive_failed")
        assert failed["level"] == "ERROR"
        assert "renders/gone.pdf" in failed["error"]

    def test_second_run_does_not_raise(self, session, storage, hook_args, seeded_tenant, actor_id):
        storage.put("renders/gs1.pdf", b"%PDF", "application/pdf")
        invoice_id = add_invoice(session, seeded_tenant, actor_id, pdf_storage_key="renders/gs1.pdf")

        assert auto_archive_invoice(session, storage, invoice_id, actor_id, **hook_args) is not None
        assert auto_archive_invoice(session, storage, invoice_id, actor_id, **hook_args) is None
        assert session.query(ArchivedDocumentModel).count() == 1


class TestAutoArchiveSettlement:
    """Tests for auto_archive_settlement."""

    def test_archived(self, session, storage, hook_args, seeded_tenant, actor_id):
        settlement_id = uuid4()
        archive_id = auto_archive_settlement(
            session, storage, settlement_id, seeded_tenant, actor_id,
            b"%PDF settlement", "Abrechnung 2024/WPN", **hook_args,
        )

        archived = session.get(ArchivedDocumentModel, archive_id)
        assert archived.document_type == "SETTLEMENT"
        assert archived.file_name == "Abrechnung_2024_WPN.pdf"
        assert archived.metadata_json == {"settlementId": str(settlement_id)}

    def test_empty_content_skipped(self, session, storage, hook_args, seeded_tenant, actor_id):
        assert auto_archive_settlement(
            session, storage, uuid4(), seeded_tenant, actor_id, b"", "ABR-2024", **hook_args,
        ) is None
        assert len(storage) == 0


class TestAutoArchiveContract:
    """Tests for auto_archive_contract."""

    def add_contract(self, session, tenant_id, actor_id, **overrides):
        fields = {
            "tenant_id": tenant_id,
            "title": "Pachtvertrag Mueller",
            "contract_type": "LEASE",
            "status": "ACTIVE",
            "start_date": date(2020, 1, 1),
            "created_by_id": actor_id,
        }
        fields.update(overrides)
        contract = Contract(**fields)
        session.add(contract)
        session.commit()
        return contract.id

    def test_archived_with_metadata(self, session, storage, hook_args, seeded_tenant, actor_id):
        storage.put("contracts/pv.pdf", b"%PDF signed", "application/pdf")
        contract_id = self.add_contract(
            session, seeded_tenant, actor_id, contract_number="PV-2020-001",
            document_storage_key="contracts/pv.pdf", document_file_name="Pachtvertrag.pdf",
        )

        archive_id = auto_archive_contract(session, storage, contract_id, actor_id, **hook_args)

        archived = session.get(ArchivedDocumentModel, archive_id)
        assert archived.document_type == "CONTRACT"
        assert archived.reference_number == "PV-2020-001"
        assert archived.file_name == "Pachtvertrag.pdf"
        assert archived.metadata_json["contractType"] == "LEASE"
        assert archived.metadata_json["startDate"] == "2020-01-01"
        assert archived.metadata_json["endDate"] == ""

    def test_reference_falls_back_to_id(self, session, storage, hook_args, seeded_tenant, actor_id):
        storage.put("contracts/x.pdf", b"%PDF", "application/pdf")
        contract_id = self.add_contract(
            session, seeded_tenant, actor_id, document_storage_key="contracts/x.pdf",
        )

        archive_id = auto_archive_contract(session, storage, contract_id, actor_id, **hook_args)
        archived = session.get(ArchivedDocumentModel, archive_id)
        assert archived.reference_number == f"V-{str(contract_id)[:8]}"
        assert archived.file_name == f"V-{str(contract_id)[:8]}.pdf"

    def test_without_document_skipped(self, session, storage, hook_args, seeded_tenant, actor_id):
        contract_id = self.add_contract(session, seeded_tenant, actor_id)
        assert auto_archive_contract(session, storage, contract_id, actor_id, **hook_args) is None


class TestAutoArchiveGeneric:
    """Tests for auto_archive_generic_document."""

    def test_archived(self, session, storage, hook_args, seeded_tenant, actor_id):
        storage.put("uploads/beleg.png", b"\x89PNG", "image/png")
        archive_id = auto_archive_generic_document(
            session, storage,
            tenant_id=seeded_tenant,
            document_type=ArchiveDocumentType.RECEIPT,
            reference_id=uuid4(),
            reference_number="BELEG-17",
            storage_key="uploads/beleg.png",
            file_name="beleg.png",
            archived_by_id=actor_id,
            mime_type="image/png",
            **hook_args,
        )

        archived = session.get(ArchivedDocumentModel, archive_id)
        assert archived.mime_type == "image/png"
        assert archived.file_size == 4

    def test_missing_object(self, session, storage, hook_args, seeded_tenant, actor_id):
        assert auto_archive_generic_document(
            session, storage,
            tenant_id=seeded_tenant,
            document_type=ArchiveDocumentType.RECEIPT,
            reference_id=uuid4(),
            reference_number="BELEG-18",
            storage_key="uploads/none.png",
            file_name="none.png",
            archived_by_id=actor_id,
            **hook_args,
        ) is None


class TestCallerTransaction:
    """The hooks write in a savepoint and leave the caller's transaction alone."""

    def test_failed_hook_keeps_pending_change(self, session, storage, hook_args, seeded_tenant, actor_id):
        invoice_id = add_invoice(session, seeded_tenant, actor_id, pdf_storage_key="renders/gone.pdf")
        session.get(Invoice, invoice_id).notes = "Versand per Post"

        assert auto_archive_invoice(session, storage, invoice_id, actor_id, **hook_args) is None

        session.commit()
        session.expire_all()
        assert session.get(Invoice, invoice_id).notes == "Versand per Post"

    def test_rejected_archive_write_keeps_pending_change(
        self, session, storage, hook_args, seeded_tenant, actor_id,
    ):
        storage.put("renders/gs1.pdf", b"%PDF", "application/pdf")
        invoice_id = add_invoice(session, seeded_tenant, actor_id, pdf_storage_key="renders/gs1.pdf")
        assert auto_archive_invoice(session, storage, invoice_id, actor_id, **hook_args) is not None
        session.commit()

        session.get(Invoice, invoice_id).notes = "Zweitversand"
        # Already archived: the duplicate is rejected inside the savepoint
        assert auto_archive_invoice(session, storage, invoice_id, actor_id, **hook_args) is None

        session.commit()
        session.expire_all()
        assert session.get(Invoice, invoice_id).notes == "Zweitversand"
        assert session.query(ArchivedDocumentModel).count() == 1

    def test_successful_hook_does_not_commit_pending_change(
        self, session, storage, hook_args, seeded_tenant, actor_id,
    ):
        storage.put("renders/gs1.pdf", b"%PDF", "application/pdf")
        invoice_id = add_invoice(session, seeded_tenant, actor_id, pdf_storage_key="renders/gs1.pdf")
        session.get(Invoice, invoice_id).notes = "Versand per Post"

        archive_id = auto_archive_invoice(session, storage, invoice_id, actor_id, **hook_args)
        assert archive_id is not None

        session.rollback()
        assert session.get(Invoice, invoice_id).notes is None
        assert session.get(ArchivedDocumentModel, archive_id) is None

    def test_caller_commit_makes_record_durable(
        self, session, storage, hook_args, seeded_tenant, actor_id,
    ):
        storage.put("renders/gs1.pdf", b"%PDF", "application/pdf")
        invoice_id = add_invoice(session, seeded_tenant, actor_id, pdf_storage_key="renders/gs1.pdf")

        archive_id = auto_archive_invoice(session, storage, invoice_id, actor_id, **hook_args)
        session.commit()
        session.rollback()

        assert session.get(ArchivedDocumentModel, archive_id) is not None
