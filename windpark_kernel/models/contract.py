"""
Module: windpark_kernel.models.contract
Responsibility: ORM persistence for contracts (lease agreements, service
    and maintenance contracts) with a pointer to the signed document in
    object storage.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - contract_number is optional; archived contracts without a number are
      referenced as ``V-<first 8 chars of id>``.

Audit relevance:
    Signed contracts are archived in the GoBD chain with the contract
    retention period.
"""

from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from windpark_kernel.db.base import TrackedBase, UUIDString


class ContractType(str, Enum):
    LEASE = "LEASE"
    SERVICE = "SERVICE"
    INSURANCE = "INSURANCE"
    GRID_CONNECTION = "GRID_CONNECTION"
    MARKETING = "MARKETING"
    OTHER = "OTHER"


class ContractStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    EXPIRING = "EXPIRING"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"


class Contract(TrackedBase):
    """A contract and its signed document."""

    __tablename__ = "contracts"

    __table_args__ = (
        Index("idx_contract_tenant", "tenant_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    contract_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    contract_type: Mapped[str] = mapped_column(String(30), nullable=False, default=ContractType.OTHER.value)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ContractStatus.DRAFT.value)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Signed document in object storage
    document_storage_key: Mapped[str | None] = mapped_column(String(500), nullable=True)
    document_file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    document_mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
