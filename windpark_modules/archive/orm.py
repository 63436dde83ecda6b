"""
Archive ORM Persistence Models (``windpark_modules.archive.orm``).

Responsibility:
    SQLAlchemy ORM models for the GoBD archive: one row per archived
    document and one row per stored chain verification run.

Architecture position:
    **Modules layer** -- persistence companions to ``archive.models``.
    Inherits from ``Base`` (kernel DB base); archive rows are never
    updated except for the access counters, so they carry explicit
    ``archived_at`` / ``archived_by_id`` columns instead of TrackedBase.

Invariants enforced:
    - One archived document per (tenant, reference, document type).
    - ``chain_position`` is unique per tenant and strictly increases in
      archive order; it comes from the per-tenant chain counter.
    - Hashes are 64-character hex SHA-256 strings.

Audit relevance:
    ``previous_archive_id`` and ``chain_hash`` link every document to its
    predecessor; the verification log records every integrity check.
"""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from windpark_kernel.db.base import Base, UUIDString
from windpark_modules.archive.models import ArchivedDocumentRecord


# ---------------------------------------------------------------------------
# ArchivedDocumentModel
# ---------------------------------------------------------------------------

class ArchivedDocumentModel(Base):
    """
    An immutable archived document.

    Contract:
        Content lives in object storage under ``storage_key``; the row
        holds its hash, its chain link and its retention date.
    """

    __tablename__ = "archived_documents"

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    document_type: Mapped[str] = mapped_column(String(50), nullable=False)
    reference_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    reference_number: Mapped[str] = mapped_column(String(255), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(500), nullable=False)

    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    chain_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    chain_position: Mapped[int] = mapped_column(BigInteger, nullable=False)
    previous_archive_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("archived_documents.id"), nullable=True,
    )

    metadata_json: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    archived_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    archived_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    retention_until: Mapped[date] = mapped_column(Date, nullable=False)

    last_accessed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    access_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "reference_id", "document_type",
            name="uq_archived_document_reference",
        ),
        UniqueConstraint(
            "tenant_id", "chain_position",
            name="uq_archived_document_chain_position",
        ),
        Index("idx_archived_document_tenant_archived_at", "tenant_id", "archived_at"),
        Index("idx_archived_document_tenant_type", "tenant_id", "document_type"),
    )

    def to_record(self) -> ArchivedDocumentRecord:
        return ArchivedDocumentRecord(
            id=self.id,
            tenant_id=self.tenant_id,
            document_type=self.document_type,
            reference_id=self.reference_id,
            reference_number=self.reference_number,
            file_name=self.file_name,
            file_size=self.file_size,
            mime_type=self.mime_type,
            content_hash=self.content_hash,
            chain_hash=self.chain_hash,
            archived_at=self.archived_at,
            retention_until=self.retention_until,
            access_count=self.access_count,
            last_accessed_at=self.last_accessed_at,
            metadata=self.metadata_json,
        )

    def __repr__(self) -> str:
        return f"<ArchivedDocumentModel {self.document_type} {self.reference_number}>"


# ---------------------------------------------------------------------------
# ArchiveVerificationLogModel
# ---------------------------------------------------------------------------

class ArchiveVerificationLogModel(Base):
    """One stored chain verification run."""

    __tablename__ = "archive_verification_logs"

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    verified_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    verified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    scope: Mapped[str] = mapped_column(String(100), nullable=False)
    result: Mapped[str] = mapped_column(String(20), nullable=False)
    total_docs: Mapped[int] = mapped_column(Integer, nullable=False)
    valid_docs: Mapped[int] = mapped_column(Integer, nullable=False)
    invalid_docs: Mapped[int] = mapped_column(Integer, nullable=False)
    details: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_archive_verification_tenant", "tenant_id", "verified_at"),
    )
