"""
Archive Domain Models.

Enums and frozen dataclass value objects for the GoBD archive: archive
requests, archived document records (never carrying content), chain
verification results, search pages, audit exports and statistics.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID


class ArchiveDocumentType(str, Enum):
    """Document types kept in the archive (all tax-relevant under §147 AO)."""
    INVOICE = "INVOICE"
    CREDIT_NOTE = "CREDIT_NOTE"
    RECEIPT = "RECEIPT"
    CONTRACT = "CONTRACT"
    SETTLEMENT = "SETTLEMENT"


class VerificationOutcome(str, Enum):
    """Stored outcome of a chain verification run."""
    PASSED = "PASSED"
    FAILED = "FAILED"
    PARTIAL = "PARTIAL"


@dataclass(frozen=True)
class ArchiveRequest:
    """Everything needed to archive one document."""
    tenant_id: UUID
    document_type: ArchiveDocumentType
    reference_id: UUID
    reference_number: str
    content: bytes
    file_name: str
    archived_by_id: UUID
    mime_type: str | None = None
    metadata: dict[str, str] | None = None


@dataclass(frozen=True)
class ArchivedDocumentRecord:
    """An archived document as stored, without its content."""
    id: UUID
    tenant_id: UUID
    document_type: str
    reference_id: UUID
    reference_number: str
    file_name: str
    file_size: int
    mime_type: str
    content_hash: str
    chain_hash: str
    archived_at: datetime
    retention_until: date
    access_count: int = 0
    last_accessed_at: datetime | None = None
    metadata: dict[str, str] | None = None


@dataclass(frozen=True)
class RetrievedDocument:
    """Verified content together with its record."""
    document: ArchivedDocumentRecord
    content: bytes


@dataclass(frozen=True)
class ChainVerificationError:
    document_id: UUID
    reference_number: str
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "documentId": str(self.document_id),
            "referenceNumber": self.reference_number,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ChainVerificationResult:
    """Outcome of walking a tenant's chain (or a date window of it)."""
    passed: bool
    total_documents: int
    valid_documents: int
    invalid_documents: int
    errors: tuple[ChainVerificationError, ...] = ()

    @property
    def outcome(self) -> VerificationOutcome:
        if self.passed:
            return VerificationOutcome.PASSED
        if self.invalid_documents == self.total_documents:
            return VerificationOutcome.FAILED
        return VerificationOutcome.PARTIAL


@dataclass(frozen=True)
class ArchiveSearchResult:
    items: tuple[ArchivedDocumentRecord, ...]
    total: int


@dataclass(frozen=True)
class ExportedDocument:
    """One document reference in an audit export."""
    id: UUID
    document_type: str
    reference_number: str
    file_name: str
    file_size: int
    mime_type: str
    content_hash: str
    chain_hash: str
    archived_at: datetime
    retention_until: date
    storage_key: str
    metadata: dict[str, str] | None = None


@dataclass(frozen=True)
class ArchiveExport:
    """Documents of one calendar year plus their CSV index."""
    documents: tuple[ExportedDocument, ...]
    index_csv: str
    total_size: int


@dataclass(frozen=True)
class RetentionExpiry:
    date: date
    reference_number: str


@dataclass(frozen=True)
class VerificationSummary:
    verified_at: datetime
    result: str
    total_docs: int
    valid_docs: int
    invalid_docs: int


@dataclass(frozen=True)
class ArchiveStats:
    total_documents: int
    total_size_bytes: int
    documents_by_type: dict[str, int] = field(default_factory=dict)
    next_retention_expiry: RetentionExpiry | None = None
    last_verification: VerificationSummary | None = None
