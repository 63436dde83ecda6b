"""
GoBD Archive Service (``windpark_modules.archive.service``).

Responsibility
--------------
Immutable, tamper-evident archiving of tax-relevant documents under
GoBD / §147 AO: content hashing, a per-tenant hash chain, retention
dates, verified retrieval, chain verification, search, statistics and
the export index for a tax audit.

Architecture position
---------------------
**Modules layer**.  Bytes go to an injected ``ObjectStorage``; rows go to
``archived_documents``.  Retention years come from the tenant settings of
the tax module.  ``archive_document`` and ``get_archived_document`` own
their transaction boundary, except that ``archive_document`` called inside
a caller savepoint leaves commit and rollback to the caller.

Invariants enforced
-------------------
* One archived document per (tenant, reference id, document type).
* Chain appends are serialized per tenant through the locked counter row
  ``archive_chain:<tenant>``; ``chain_position`` orders the chain.
* chain_hash(n) = SHA-256("{chain_hash(n-1)}:{content_hash(n)}"), with
  GENESIS_HASH before the first document of a tenant.
* Content is re-hashed on every read; a mismatch is never returned.

Failure modes
-------------
* ``DuplicateArchiveError`` -- reference already archived.
* ``ArchiveIntegrityError`` -- stored bytes no longer match their hash.
* ``ArchiveChainBrokenError`` -- verification asked to raise on failure.
* ``StorageObjectNotFoundError`` -- bytes missing from object storage.

Audit relevance
---------------
* Integrity violations and broken chains are logged at CRITICAL / ERROR.
* Every read increments the access counter of the document.
* Verification runs can be stored in ``archive_verification_logs``.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from windpark_config import WindparkConfig, get_active_config
from windpark_kernel.domain.clock import Clock, SystemClock
from windpark_kernel.exceptions import (
    ArchiveChainBrokenError,
    ArchiveIntegrityError,
    DuplicateArchiveError,
)
from windpark_kernel.logging_config import LogContext, get_logger
from windpark_kernel.services.sequence_service import SequenceService
from windpark_kernel.utils.hashing import (
    GENESIS_HASH,
    create_chain_hash,
    hash_document,
    verify_document_integrity,
)
from windpark_modules.archive.export import build_index_csv
from windpark_modules.archive.models import (
    ArchivedDocumentRecord,
    ArchiveDocumentType,
    ArchiveExport,
    ArchiveRequest,
    ArchiveSearchResult,
    ArchiveStats,
    ChainVerificationError,
    ChainVerificationResult,
    ExportedDocument,
    RetentionExpiry,
    RetrievedDocument,
    VerificationSummary,
)
from windpark_modules.archive.orm import ArchivedDocumentModel, ArchiveVerificationLogModel
from windpark_modules.archive.storage import ObjectStorage
from windpark_modules.tax.service import TaxConfigurationService

logger = get_logger("modules.archive.service")

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9._-]")

# Hash prefix length shown in verification messages
_HASH_PREFIX = 16


def chain_sequence_name(tenant_id: UUID) -> str:
    return f"archive_chain:{tenant_id}"


def add_years(start: date, years: int) -> date:
    """``start`` shifted by whole years; 29 February falls back to the 28th."""
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        return start.replace(year=start.year + years, day=28)


def _window_start(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _window_end(value: date | datetime) -> datetime:
    """End of the day containing ``value``."""
    day = value.date() if isinstance(value, datetime) else value
    tzinfo = value.tzinfo if isinstance(value, datetime) and value.tzinfo else timezone.utc
    return datetime.combine(day, time.max, tzinfo=tzinfo)


class GoBDArchiveService:
    """
    Hash-chained document archive.

    Contract
    --------
    * ``archive_document`` returns the stored record (never the content).
    * ``get_archived_document`` returns verified content or raises; an
      unknown id returns None.
    * ``verify_chain_integrity`` reports every mismatch in scope instead
      of stopping at the first.

    Non-goals
    ---------
    * Does NOT delete documents; expiry of the retention period is only
      reported (``is_within_retention``, ``get_archive_stats``).
    """

    def __init__(
        self,
        session: Session,
        storage: ObjectStorage,
        clock: Clock | None = None,
        config: WindparkConfig | None = None,
    ):
        self._session = session
        self._storage = storage
        self._clock = clock or SystemClock()
        self._config = config
        self._tax = TaxConfigurationService(session, config=config)

    @property
    def config(self) -> WindparkConfig:
        if self._config is None:
            self._config = get_active_config()
        return self._config

    # =========================================================================
    # Archiving
    # =========================================================================

    def retention_years(self, tenant_id: UUID, document_type: ArchiveDocumentType | str) -> int:
        """Retention period from tenant settings, by document type."""
        settings = self._tax.get_tenant_settings(tenant_id)
        by_type = {
            ArchiveDocumentType.INVOICE: settings.invoice_retention_years,
            ArchiveDocumentType.CREDIT_NOTE: settings.invoice_retention_years,
            ArchiveDocumentType.RECEIPT: settings.invoice_retention_years,
            ArchiveDocumentType.SETTLEMENT: settings.invoice_retention_years,
            ArchiveDocumentType.CONTRACT: settings.contract_retention_years,
        }
        years = by_type.get(ArchiveDocumentType(document_type))
        return years or self.config.archive.default_retention_years

    def _storage_key(self, request: ArchiveRequest, archived_at: datetime) -> str:
        safe_reference = _UNSAFE_KEY_CHARS.sub("_", request.reference_number)
        epoch_ms = int(archived_at.timestamp() * 1000)
        return (
            f"{self.config.archive.storage_prefix}/{request.tenant_id}/"
            f"{ArchiveDocumentType(request.document_type).value}/{safe_reference}_{epoch_ms}.pdf"
        )

    def _find_existing(self, request: ArchiveRequest, document_type: str) -> ArchivedDocumentModel | None:
        return self._session.execute(
            select(ArchivedDocumentModel).where(
                ArchivedDocumentModel.tenant_id == request.tenant_id,
                ArchivedDocumentModel.reference_id == request.reference_id,
                ArchivedDocumentModel.document_type == document_type,
            )
        ).scalar_one_or_none()

    def _last_in_chain(self, tenant_id: UUID) -> ArchivedDocumentModel | None:
        return self._session.execute(
            select(ArchivedDocumentModel)
            .where(ArchivedDocumentModel.tenant_id == tenant_id)
            .order_by(ArchivedDocumentModel.chain_position.desc())
            .limit(1)
        ).scalar_one_or_none()

    def archive_document(self, request: ArchiveRequest) -> ArchivedDocumentRecord:
        """
        Append a document to the tenant's chain.

        Commits its own transaction.  Called inside ``begin_nested()`` it
        only flushes, and the enclosing transaction decides.

        Raises:
            DuplicateArchiveError: The reference is already archived with
                this document type.
        """
        document_type = ArchiveDocumentType(request.document_type).value
        mime_type = request.mime_type or self.config.archive.default_mime_type
        # Inside a caller savepoint the caller commits or rolls back
        owns_transaction = not self._session.in_nested_transaction()

        with LogContext.bind(tenant_id=str(request.tenant_id)):
            logger.info(
                "document_archive_started",
                extra={
                    "document_type": document_type,
                    "reference_id": str(request.reference_id),
                    "reference_number": request.reference_number,
                },
            )
            try:
                # Holds the chain lock until commit
                position = SequenceService(self._session).next_value(
                    chain_sequence_name(request.tenant_id)
                )

                existing = self._find_existing(request, document_type)
                if existing is not None:
                    raise DuplicateArchiveError(
                        document_type, request.reference_number, str(existing.id),
                    )

                content_hash = hash_document(request.content)
                previous = self._last_in_chain(request.tenant_id)
                previous_chain_hash = previous.chain_hash if previous else GENESIS_HASH
                chain_hash = create_chain_hash(content_hash, previous_chain_hash)

                archived_at = self._clock.now_utc()
                retention_until = add_years(
                    archived_at.date(), self.retention_years(request.tenant_id, document_type),
                )
                storage_key = self._storage_key(request, archived_at)

                self._storage.put(
                    storage_key,
                    request.content,
                    mime_type,
                    {
                        "archive-type": document_type,
                        "reference-id": str(request.reference_id),
                        "reference-number": request.reference_number,
                        "content-hash": content_hash,
                        "chain-hash": chain_hash,
                        "tenant-id": str(request.tenant_id),
                        "archived-at": archived_at.isoformat(),
                    },
                )

                archived = ArchivedDocumentModel(
                    tenant_id=request.tenant_id,
                    document_type=document_type,
                    reference_id=request.reference_id,
                    reference_number=request.reference_number,
                    file_name=request.file_name,
                    file_size=len(request.content),
                    mime_type=mime_type,
                    storage_key=storage_key,
                    content_hash=content_hash,
                    chain_hash=chain_hash,
                    chain_position=position,
                    previous_archive_id=previous.id if previous else None,
                    metadata_json=dict(request.metadata) if request.metadata else None,
                    archived_by_id=request.archived_by_id,
                    archived_at=archived_at,
                    retention_until=retention_until,
                    access_count=0,
                )
                self._session.add(archived)
                self._session.flush()
                record = archived.to_record()
                if owns_transaction:
                    self._session.commit()
            except Exception:
                if owns_transaction:
                    self._session.rollback()
                raise

            logger.info(
                "document_archived",
                extra={
                    "archive_id": str(record.id),
                    "chain_position": position,
                    "content_hash": content_hash,
                    "chain_hash": chain_hash,
                },
            )
        return record

    # =========================================================================
    # Retrieval
    # =========================================================================

    def get_archived_document(self, archive_id: UUID, tenant_id: UUID) -> RetrievedDocument | None:
        """
        Verified content and record of an archived document.

        Raises:
            ArchiveIntegrityError: Stored bytes do not match the content hash.
            StorageObjectNotFoundError: Bytes missing from object storage.
        """
        with LogContext.bind(tenant_id=tenant_id, archive_id=archive_id):
            try:
                doc = self._session.execute(
                    select(ArchivedDocumentModel).where(
                        ArchivedDocumentModel.id == archive_id,
                        ArchivedDocumentModel.tenant_id == tenant_id,
                    )
                ).scalar_one_or_none()
                if doc is None:
                    self._session.rollback()
                    return None

                content = self._storage.get(doc.storage_key)
                if not verify_document_integrity(content, doc.content_hash):
                    actual = hash_document(content)
                    logger.critical(
                        "archive_integrity_violation",
                        extra={
                            "storage_key": doc.storage_key,
                            "expected_hash": doc.content_hash,
                            "actual_hash": actual,
                        },
                    )
                    raise ArchiveIntegrityError(str(doc.id), doc.content_hash, actual)

                doc.access_count = (doc.access_count or 0) + 1
                doc.last_accessed_at = self._clock.now_utc()
                self._session.flush()
                record = doc.to_record()
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("archived_document_accessed", extra={"access_count": record.access_count})
        return RetrievedDocument(document=record, content=content)

    # =========================================================================
    # Chain verification
    # =========================================================================

    def verify_chain_integrity(
        self,
        tenant_id: UUID,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
        raise_on_failure: bool = False,
    ) -> ChainVerificationResult:
        """
        Walk the tenant's chain oldest to newest and recompute every link.

        With ``start`` the walk is seeded with the chain hash of the last
        document archived before it, so a window verifies the same way as
        the full chain.  ``end`` includes the whole day.  The expected
        hash is carried forward: a tampered chain hash flags only its own
        document, a tampered content hash flags every later one too.

        Raises:
            ArchiveChainBrokenError: Only with ``raise_on_failure`` and at
                least one mismatch.
        """
        stmt = select(ArchivedDocumentModel).where(ArchivedDocumentModel.tenant_id == tenant_id)
        if start is not None:
            stmt = stmt.where(ArchivedDocumentModel.archived_at >= _window_start(start))
        if end is not None:
            stmt = stmt.where(ArchivedDocumentModel.archived_at <= _window_end(end))
        documents = self._session.execute(
            stmt.order_by(ArchivedDocumentModel.chain_position)
        ).scalars().all()

        expected_previous = GENESIS_HASH
        if start is not None and documents:
            predecessor = self._session.execute(
                select(ArchivedDocumentModel.chain_hash)
                .where(
                    ArchivedDocumentModel.tenant_id == tenant_id,
                    ArchivedDocumentModel.chain_position < documents[0].chain_position,
                )
                .order_by(ArchivedDocumentModel.chain_position.desc())
                .limit(1)
            ).scalar_one_or_none()
            if predecessor is not None:
                expected_previous = predecessor

        errors = []
        for doc in documents:
            # Links continue from the recomputed hash, not the stored one:
            # one overwritten chain_hash flags that document alone and
            # every earlier one stays valid.
            expected = create_chain_hash(doc.content_hash, expected_previous)
            if expected != doc.chain_hash:
                errors.append(ChainVerificationError(
                    document_id=doc.id,
                    reference_number=doc.reference_number,
                    reason=(
                        f"Chain hash mismatch. Expected: {expected[:_HASH_PREFIX]}..., "
                        f"stored: {doc.chain_hash[:_HASH_PREFIX]}..."
                    ),
                ))
            expected_previous = expected

        result = ChainVerificationResult(
            passed=not errors,
            total_documents=len(documents),
            valid_documents=len(documents) - len(errors),
            invalid_documents=len(errors),
            errors=tuple(errors),
        )

        log_extra = {
            "tenant_id": str(tenant_id),
            "total": result.total_documents,
            "valid": result.valid_documents,
            "invalid": result.invalid_documents,
        }
        if result.passed:
            logger.info("chain_verification_completed", extra=log_extra)
        else:
            logger.error("archive_chain_broken", extra=log_extra)
            if raise_on_failure:
                raise ArchiveChainBrokenError(str(tenant_id), result.invalid_documents)
        return result

    def save_verification_result(
        self,
        tenant_id: UUID,
        verified_by_id: UUID,
        scope: str,
        result: ChainVerificationResult,
    ) -> ArchiveVerificationLogModel:
        """Store a verification run as PASSED, FAILED (all invalid) or PARTIAL."""
        try:
            entry = ArchiveVerificationLogModel(
                tenant_id=tenant_id,
                verified_by_id=verified_by_id,
                verified_at=self._clock.now_utc(),
                scope=scope,
                result=result.outcome.value,
                total_docs=result.total_documents,
                valid_docs=result.valid_documents,
                invalid_docs=result.invalid_documents,
                details=[e.to_dict() for e in result.errors] or None,
            )
            self._session.add(entry)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return entry

    # =========================================================================
    # Search and reporting
    # =========================================================================

    def search_archive(
        self,
        tenant_id: UUID,
        document_type: ArchiveDocumentType | str | None = None,
        date_from: date | datetime | None = None,
        date_to: date | datetime | None = None,
        search_term: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> ArchiveSearchResult:
        """
        Page of archived documents, newest first, plus the total count.

        ``search_term`` matches reference number or file name, ignoring
        case.  ``limit`` is capped by the archive policy.
        """
        policy = self.config.archive
        conditions = [ArchivedDocumentModel.tenant_id == tenant_id]
        if document_type:
            conditions.append(
                ArchivedDocumentModel.document_type == ArchiveDocumentType(document_type).value
            )
        if date_from is not None:
            conditions.append(ArchivedDocumentModel.archived_at >= _window_start(date_from))
        if date_to is not None:
            conditions.append(ArchivedDocumentModel.archived_at <= _window_end(date_to))
        if search_term:
            conditions.append(
                ArchivedDocumentModel.reference_number.icontains(search_term, autoescape=True)
                | ArchivedDocumentModel.file_name.icontains(search_term, autoescape=True)
            )

        page_size = min(limit or policy.search_default_limit, policy.search_max_limit)
        rows = self._session.execute(
            select(ArchivedDocumentModel)
            .where(*conditions)
            .order_by(
                ArchivedDocumentModel.archived_at.desc(),
                ArchivedDocumentModel.chain_position.desc(),
            )
            .limit(page_size)
            .offset(max(offset, 0))
        ).scalars().all()
        total = self._session.execute(
            select(func.count(ArchivedDocumentModel.id)).where(*conditions)
        ).scalar_one()

        return ArchiveSearchResult(items=tuple(r.to_record() for r in rows), total=total)

    def export_for_audit(self, tenant_id: UUID, year: int) -> ArchiveExport:
        """Documents archived in ``year`` with their CSV index."""
        documents = self._session.execute(
            select(ArchivedDocumentModel)
            .where(
                ArchivedDocumentModel.tenant_id == tenant_id,
                ArchivedDocumentModel.archived_at >= _window_start(date(year, 1, 1)),
                ArchivedDocumentModel.archived_at <= _window_end(date(year, 12, 31)),
            )
            .order_by(ArchivedDocumentModel.chain_position)
        ).scalars().all()

        exported = tuple(
            ExportedDocument(
                id=doc.id,
                document_type=doc.document_type,
                reference_number=doc.reference_number,
                file_name=doc.file_name,
                file_size=doc.file_size,
                mime_type=doc.mime_type,
                content_hash=doc.content_hash,
                chain_hash=doc.chain_hash,
                archived_at=doc.archived_at,
                retention_until=doc.retention_until,
                storage_key=doc.storage_key,
                metadata=doc.metadata_json,
            )
            for doc in documents
        )

        logger.info(
            "archive_export_built",
            extra={"tenant_id": str(tenant_id), "year": year, "document_count": len(exported)},
        )
        return ArchiveExport(
            documents=exported,
            index_csv=build_index_csv(exported),
            total_size=sum(doc.file_size for doc in exported),
        )

    def is_within_retention(self, retention_until: date) -> bool:
        """True while the document must still be kept (cannot be deleted)."""
        return self._clock.today() < retention_until

    def get_archive_stats(self, tenant_id: UUID) -> ArchiveStats:
        tenant_filter = ArchivedDocumentModel.tenant_id == tenant_id

        total_documents, total_size = self._session.execute(
            select(
                func.count(ArchivedDocumentModel.id),
                func.coalesce(func.sum(ArchivedDocumentModel.file_size), 0),
            ).where(tenant_filter)
        ).one()

        by_type = {
            document_type: count
            for document_type, count in self._session.execute(
                select(ArchivedDocumentModel.document_type, func.count(ArchivedDocumentModel.id))
                .where(tenant_filter)
                .group_by(ArchivedDocumentModel.document_type)
            )
        }

        next_expiry = self._session.execute(
            select(ArchivedDocumentModel.retention_until, ArchivedDocumentModel.reference_number)
            .where(tenant_filter, ArchivedDocumentModel.retention_until > self._clock.today())
            .order_by(ArchivedDocumentModel.retention_until)
            .limit(1)
        ).first()

        last_run = self._session.execute(
            select(ArchiveVerificationLogModel)
            .where(ArchiveVerificationLogModel.tenant_id == tenant_id)
            .order_by(ArchiveVerificationLogModel.verified_at.desc())
            .limit(1)
        ).scalar_one_or_none()

        return ArchiveStats(
            total_documents=total_documents,
            total_size_bytes=int(total_size),
            documents_by_type=by_type,
            next_retention_expiry=(
                RetentionExpiry(date=next_expiry[0], reference_number=next_expiry[1])
                if next_expiry else None
            ),
            last_verification=(
                VerificationSummary(
                    verified_at=last_run.verified_at,
                    result=last_run.result,
                    total_docs=last_run.total_docs,
                    valid_docs=last_run.valid_docs,
                    invalid_docs=last_run.invalid_docs,
                )
                if last_run else None
            ),
        )
