"""
Invoice send transition with archiving.

``mark_invoice_sent`` moves a DRAFT invoice or credit note to SENT,
commits, and only then hands the rendered PDF to the auto-archive hook.
The hook writes inside a savepoint, so a second commit makes the archive
record durable.  An archive failure leaves the invoice SENT; the result
simply carries no archive id.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from windpark_config import WindparkConfig
from windpark_kernel.domain.clock import Clock, SystemClock
from windpark_kernel.exceptions import InvoiceNotFoundError, InvoiceStateError
from windpark_kernel.logging_config import get_logger
from windpark_kernel.models import Invoice, InvoiceStatus
from windpark_modules.archive.storage import ObjectStorage
from windpark_services.auto_archive import auto_archive_invoice

logger = get_logger("services.invoice_lifecycle")


@dataclass(frozen=True)
class InvoiceSentResult:
    invoice_id: UUID
    invoice_number: str
    archive_id: UUID | None


def mark_invoice_sent(
    session: Session,
    storage: ObjectStorage,
    tenant_id: UUID,
    invoice_id: UUID,
    actor_id: UUID,
    clock: Clock | None = None,
    config: WindparkConfig | None = None,
) -> InvoiceSentResult:
    """
    DRAFT -> SENT, then archive.

    Raises:
        InvoiceNotFoundError: No invoice with this id for the tenant.
        InvoiceStateError: The invoice is not a DRAFT.
    """
    clock = clock or SystemClock()
    try:
        invoice = session.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id, Invoice.tenant_id == tenant_id)
            .with_for_update(of=Invoice)
        ).unique().scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise InvoiceStateError(str(invoice_id), invoice.status, InvoiceStatus.SENT.value)

        invoice.status = InvoiceStatus.SENT.value
        invoice.sent_at = clock.now_utc()
        invoice.updated_by_id = actor_id
        invoice_number = invoice.invoice_number
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        "invoice_sent",
        extra={"invoice_id": str(invoice_id), "invoice_number": invoice_number},
    )

    archive_id = auto_archive_invoice(
        session, storage, invoice_id, actor_id, clock=clock, config=config,
    )
    try:
        session.commit()
    except Exception as exc:
        session.rollback()
        logger.error(
            "auto_archive_failed",
            extra={"invoice_id": str(invoice_id), "error": str(exc)},
        )
        archive_id = None
    return InvoiceSentResult(
        invoice_id=invoice_id,
        invoice_number=invoice_number,
        archive_id=archive_id,
    )
