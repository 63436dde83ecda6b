"""
Auto-archive hooks (``windpark_services.auto_archive``).

Responsibility
--------------
Best-effort glue that archives a finalized document into the GoBD chain:
invoices and credit notes when they are sent, settlements when they are
approved, signed contracts, and any other document already in object
storage.

Architecture position
---------------------
**Services layer** -- cross-module glue.  Reads kernel models, fetches
bytes from ``ObjectStorage`` and calls ``GoBDArchiveService``.

Invariants enforced
-------------------
* The archive write runs in a savepoint of the caller's session.  A
  failure rolls back only the savepoint; pending caller changes survive.
  Nothing is committed by a hook: the caller's commit makes the archive
  record durable together with its own work.
* A hook never raises.  It returns the archive id, or None when the
  document was skipped or archiving failed.

Failure modes
-------------
* Missing entity or missing rendered document -> skipped, logged.
* Storage, duplicate or database errors -> logged at ERROR, None.

Audit relevance
---------------
* Every outcome is logged with the reference id; a failed hook is visible
  only through the log and the missing archive record.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from windpark_config import WindparkConfig
from windpark_kernel.domain.clock import Clock
from windpark_kernel.logging_config import get_logger
from windpark_kernel.models import Contract, Invoice, InvoiceType
from windpark_modules.archive.models import ArchiveDocumentType, ArchiveRequest
from windpark_modules.archive.service import GoBDArchiveService
from windpark_modules.archive.storage import ObjectStorage

logger = get_logger("services.auto_archive")

PDF_MIME_TYPE = "application/pdf"


def _archive(
    session: Session,
    storage: ObjectStorage,
    request: ArchiveRequest,
    clock: Clock | None,
    config: WindparkConfig | None,
) -> UUID:
    """Archive inside a savepoint; a failure undoes only the archive write."""
    service = GoBDArchiveService(session, storage, clock=clock, config=config)
    with session.begin_nested():
        return service.archive_document(request).id


def _safe_file_stem(reference_number: str) -> str:
    return "".join(c if c.isalnum() or c in "._-" else "_" for c in reference_number)


# =============================================================================
# Invoices
# =============================================================================

def auto_archive_invoice(
    session: Session,
    storage: ObjectStorage,
    invoice_id: UUID,
    user_id: UUID,
    clock: Clock | None = None,
    config: WindparkConfig | None = None,
) -> UUID | None:
    """Archive the rendered PDF of a sent invoice or credit note."""
    try:
        invoice = session.get(Invoice, invoice_id)
        if invoice is None:
            logger.warning("auto_archive_invoice_not_found", extra={"invoice_id": str(invoice_id)})
            return None

        if not invoice.pdf_storage_key:
            logger.info(
                "auto_archive_skipped",
                extra={"invoice_id": str(invoice_id), "reason": "no_pdf"},
            )
            return None

        document_type = (
            ArchiveDocumentType.CREDIT_NOTE
            if invoice.invoice_type == InvoiceType.CREDIT_NOTE.value
            else ArchiveDocumentType.INVOICE
        )
        content = storage.get(invoice.pdf_storage_key)

        archive_id = _archive(
            session,
            storage,
            ArchiveRequest(
                tenant_id=invoice.tenant_id,
                document_type=document_type,
                reference_id=invoice.id,
                reference_number=invoice.invoice_number,
                content=content,
                file_name=f"{invoice.invoice_number}.pdf",
                archived_by_id=user_id,
                mime_type=PDF_MIME_TYPE,
                metadata={
                    "invoiceType": invoice.invoice_type,
                    "status": invoice.status,
                    "recipientName": invoice.recipient_name or "",
                    "grossAmount": str(invoice.gross_amount),
                    "invoiceDate": invoice.invoice_date.isoformat(),
                    "fundName": invoice.fund.name if invoice.fund else "",
                },
            ),
            clock,
            config,
        )
    except Exception as exc:
        logger.error(
            "auto_archive_failed",
            extra={"invoice_id": str(invoice_id), "error": str(exc)},
        )
        return None

    logger.info(
        "invoice_auto_archived",
        extra={"invoice_id": str(invoice_id), "archive_id": str(archive_id)},
    )
    return archive_id


# =============================================================================
# Settlements
# =============================================================================

def auto_archive_settlement(
    session: Session,
    storage: ObjectStorage,
    settlement_id: UUID,
    tenant_id: UUID,
    user_id: UUID,
    pdf_content: bytes,
    reference_number: str,
    clock: Clock | None = None,
    config: WindparkConfig | None = None,
) -> UUID | None:
    """Archive an already rendered settlement document."""
    try:
        if not pdf_content:
            logger.info(
                "auto_archive_skipped",
                extra={"settlement_id": str(settlement_id), "reason": "no_pdf"},
            )
            return None

        archive_id = _archive(
            session,
            storage,
            ArchiveRequest(
                tenant_id=tenant_id,
                document_type=ArchiveDocumentType.SETTLEMENT,
                reference_id=settlement_id,
                reference_number=reference_number,
                content=pdf_content,
                file_name=f"{_safe_file_stem(reference_number)}.pdf",
                archived_by_id=user_id,
                mime_type=PDF_MIME_TYPE,
                metadata={"settlementId": str(settlement_id)},
            ),
            clock,
            config,
        )
    except Exception as exc:
        logger.error(
            "auto_archive_failed",
            extra={"settlement_id": str(settlement_id), "error": str(exc)},
        )
        return None

    logger.info(
        "settlement_auto_archived",
        extra={"settlement_id": str(settlement_id), "archive_id": str(archive_id)},
    )
    return archive_id


# =============================================================================
# Contracts
# =============================================================================

def auto_archive_contract(
    session: Session,
    storage: ObjectStorage,
    contract_id: UUID,
    user_id: UUID,
    clock: Clock | None = None,
    config: WindparkConfig | None = None,
) -> UUID | None:
    """Archive the signed document of a contract."""
    try:
        contract = session.execute(
            select(Contract).where(Contract.id == contract_id)
        ).scalar_one_or_none()
        if contract is None:
            logger.warning("auto_archive_contract_not_found", extra={"contract_id": str(contract_id)})
            return None

        if not contract.document_storage_key:
            logger.info(
                "auto_archive_skipped",
                extra={"contract_id": str(contract_id), "reason": "no_document"},
            )
            return None

        content = storage.get(contract.document_storage_key)
        reference_number = contract.contract_number or f"V-{str(contract.id)[:8]}"

        archive_id = _archive(
            session,
            storage,
            ArchiveRequest(
                tenant_id=contract.tenant_id,
                document_type=ArchiveDocumentType.CONTRACT,
                reference_id=contract.id,
                reference_number=reference_number,
                content=content,
                file_name=contract.document_file_name or f"{reference_number}.pdf",
                archived_by_id=user_id,
                mime_type=contract.document_mime_type or PDF_MIME_TYPE,
                metadata={
                    "contractType": contract.contract_type,
                    "contractStatus": contract.status,
                    "title": contract.title or "",
                    "startDate": contract.start_date.isoformat() if contract.start_date else "",
                    "endDate": contract.end_date.isoformat() if contract.end_date else "",
                },
            ),
            clock,
            config,
        )
    except Exception as exc:
        logger.error(
            "auto_archive_failed",
            extra={"contract_id": str(contract_id), "error": str(exc)},
        )
        return None

    logger.info(
        "contract_auto_archived",
        extra={"contract_id": str(contract_id), "archive_id": str(archive_id)},
    )
    return archive_id


# =============================================================================
# Generic documents
# =============================================================================

def auto_archive_generic_document(
    session: Session,
    storage: ObjectStorage,
    *,
    tenant_id: UUID,
    document_type: ArchiveDocumentType,
    reference_id: UUID,
    reference_number: str,
    storage_key: str,
    file_name: str,
    archived_by_id: UUID,
    mime_type: str | None = None,
    metadata: dict[str, str] | None = None,
    clock: Clock | None = None,
    config: WindparkConfig | None = None,
) -> UUID | None:
    """Archive any document already held in object storage under ``storage_key``."""
    try:
        content = storage.get(storage_key)
        archive_id = _archive(
            session,
            storage,
            ArchiveRequest(
                tenant_id=tenant_id,
                document_type=document_type,
                reference_id=reference_id,
                reference_number=reference_number,
                content=content,
                file_name=file_name,
                archived_by_id=archived_by_id,
                mime_type=mime_type,
                metadata=metadata,
            ),
            clock,
            config,
        )
    except Exception as exc:
        logger.error(
            "auto_archive_failed",
            extra={"reference_id": str(reference_id), "storage_key": storage_key, "error": str(exc)},
        )
        return None

    logger.info(
        "document_auto_archived",
        extra={"reference_id": str(reference_id), "archive_id": str(archive_id)},
    )
    return archive_id
