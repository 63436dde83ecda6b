"""
Module: windpark_kernel.models.invoice
Responsibility: ORM persistence for invoices and credit notes
    (Rechnungen / Gutschriften) and their line items.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - invoice_number is unique per tenant (uq_invoice_tenant_number).
    - Header net/tax/gross amounts equal the sum of the line amounts
      (enforced by the invoice generators).
    - calculation_details is only populated on settlement-derived credit
      notes (the PDF annex payload).

Failure modes:
    - IntegrityError on a duplicate invoice number.

Audit relevance:
    Invoices are tax documents under UStG section 14 and are archived in
    the GoBD chain once sent.  Numbers are allocated gap-free.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from windpark_kernel.db.base import Base, TrackedBase, UUIDString

if TYPE_CHECKING:
    from windpark_kernel.models.party import Fund


class InvoiceType(str, Enum):
    INVOICE = "INVOICE"
    CREDIT_NOTE = "CREDIT_NOTE"


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class RecipientType(str, Enum):
    PERSON = "person"
    FUND = "fund"


class Invoice(TrackedBase):
    """
    Invoice or credit note header.

    Contract:
        Recipient name and address are copied in at creation time.
        ``pdf_storage_key`` is set by the (external) renderer and is the
        source of the bytes archived on send.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_invoice_tenant_number"),
        Index("idx_invoice_tenant_status", "tenant_id", "status"),
        Index("idx_invoice_lease", "lease_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    invoice_type: Mapped[str] = mapped_column(String(20), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=InvoiceStatus.DRAFT.value)

    # =========================================================================
    # Recipient
    # =========================================================================

    recipient_type: Mapped[str] = mapped_column(String(20), nullable=False)
    recipient_name: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_address: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # =========================================================================
    # Amounts
    # =========================================================================

    net_amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    gross_amount: Mapped[Decimal] = mapped_column(nullable=False)

    # =========================================================================
    # Context
    # =========================================================================

    fund_id: Mapped[UUID | None] = mapped_column(UUIDString(), ForeignKey("funds.id"), nullable=True)
    lease_id: Mapped[UUID | None] = mapped_column(UUIDString(), ForeignKey("leases.id"), nullable=True)
    park_id: Mapped[UUID | None] = mapped_column(UUIDString(), ForeignKey("parks.id"), nullable=True)
    service_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    service_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    internal_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    calculation_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    pdf_storage_key: Mapped[str | None] = mapped_column(String(500), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    fund: Mapped["Fund | None"] = relationship("Fund")
    items: Mapped[list["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
        lazy="selectin",
    )


class InvoiceItem(Base):
    """One line position of an invoice."""

    __tablename__ = "invoice_items"

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="pauschal")
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_type: Mapped[str] = mapped_column(String(20), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    gross_amount: Mapped[Decimal] = mapped_column(nullable=False)
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")
