"""
Module: windpark_kernel.models.party
Responsibility: ORM persistence for the two kinds of counterparties the
    settlement engine bills: funds (operator companies and billing
    entities) and persons (lessors / landowners).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A Person is either a natural person (first/last name) or a company
      (company_name).  company_name wins when both are set.
    - country defaults to "Deutschland"; addresses in Germany omit the
      country line on invoices.

Audit relevance:
    Recipient name and address are copied onto every invoice at creation
    time.  Later edits to the party do not alter issued invoices.
"""

from uuid import UUID

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from windpark_kernel.db.base import TrackedBase, UUIDString


class Fund(TrackedBase):
    """
    A company in the park structure (operator, grid company, billing entity).

    Contract:
        ``address`` is a preformatted multi-line string used verbatim as the
        invoice recipient address.
    """

    __tablename__ = "funds"

    __table_args__ = (
        Index("idx_fund_tenant", "tenant_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    legal_form: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)


class Person(TrackedBase):
    """A lessor: landowner as natural person or company."""

    __tablename__ = "persons"

    __table_args__ = (
        Index("idx_person_tenant", "tenant_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    street: Mapped[str | None] = mapped_column(String(255), nullable=True)
    house_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str] = mapped_column(String(100), nullable=False, default="Deutschland")
