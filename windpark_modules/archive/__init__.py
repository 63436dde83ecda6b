"""
GoBD Archive Module.

Responsibility:
    Revision-safe archive of tax-relevant documents (invoices, credit
    notes, receipts, contracts, settlements): SHA-256 content hashes, a
    per-tenant hash chain, retention dates, verified retrieval, chain
    verification and the export for a tax audit.

Architecture:
    windpark_modules -- business modules (this layer).
    Bytes live behind the ``ObjectStorage`` port in ``storage.py``; rows
    in ``orm.py``; the CSV index in ``export.py``; orchestration in
    ``service.py``.

Invariants:
    - Archived documents are never updated except for access counters.
    - Retrieval re-verifies the content hash before returning bytes.
"""

from windpark_modules.archive.export import build_index_csv, sanitize_csv_value
from windpark_modules.archive.models import (
    ArchivedDocumentRecord,
    ArchiveDocumentType,
    ArchiveExport,
    ArchiveRequest,
    ArchiveSearchResult,
    ArchiveStats,
    ChainVerificationError,
    ChainVerificationResult,
    RetrievedDocument,
    VerificationOutcome,
)
from windpark_modules.archive.service import GoBDArchiveService
from windpark_modules.archive.storage import (
    FileSystemObjectStorage,
    InMemoryObjectStorage,
    ObjectStorage,
)

__all__ = [
    "ArchiveDocumentType",
    "VerificationOutcome",
    "ArchiveRequest",
    "ArchivedDocumentRecord",
    "RetrievedDocument",
    "ChainVerificationError",
    "ChainVerificationResult",
    "ArchiveSearchResult",
    "ArchiveExport",
    "ArchiveStats",
    "ObjectStorage",
    "InMemoryObjectStorage",
    "FileSystemObjectStorage",
    "GoBDArchiveService",
    "build_index_csv",
    "sanitize_csv_value",
]
