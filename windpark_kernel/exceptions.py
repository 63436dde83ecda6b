"""
Typed Exception Hierarchy for the Wind-Park Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from WindparkKernelError:

    WindparkKernelError (base)
    |
    +-- SettlementError
    |   +-- SettlementNotFoundError
    |   +-- SettlementStateError
    |   +-- DuplicateSettlementError
    |
    +-- ConfigurationError
    |   +-- MissingParkConfigurationError
    |   +-- RevenuePhaseNotFoundError
    |   +-- TaxRateNotFoundError
    |
    +-- AllocationError
    |   +-- AllocationNotFoundError
    |   +-- AllocationStateError
    |   +-- NoOperatorsError
    |
    +-- InvoiceError
    |   +-- InvoiceNotFoundError
    |   +-- InvoiceStateError
    |
    +-- ArchiveError
    |   +-- DuplicateArchiveError
    |   +-- ArchiveIntegrityError
    |   +-- ArchiveChainBrokenError
    |   +-- ArchiveContentMissingError
    |
    +-- StorageError
    |   +-- StorageObjectNotFoundError
    |
    +-- ConcurrencyError
    |   +-- SequenceAllocationError
    |
    +-- DistributionError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
Settlement      | SETTLEMENT_NOT_FOUND          | Settlement ID unknown for tenant
                | SETTLEMENT_STATE_CONFLICT     | Wrong status for requested operation
                | DUPLICATE_SETTLEMENT          | Finalized settlement for same period
----------------|-------------------------------|---------------------------------------
Configuration   | MISSING_PARK_CONFIGURATION    | Park lacks commissioning date, rent...
                | REVENUE_PHASE_NOT_FOUND       | No phase covers the settlement year
                | TAX_RATE_NOT_FOUND            | No tax rate valid on the given date
----------------|-------------------------------|---------------------------------------
Allocation      | ALLOCATION_NOT_FOUND          | Cost allocation ID unknown
                | ALLOCATION_STATE_CONFLICT     | Allocation not in DRAFT
                | NO_OPERATORS                  | Park has no active operator funds
----------------|-------------------------------|---------------------------------------
Invoice         | INVOICE_NOT_FOUND             | Invoice ID unknown
                | INVOICE_STATE_CONFLICT        | Illegal invoice status transition
----------------|-------------------------------|---------------------------------------
Archive         | DUPLICATE_ARCHIVE             | Same tenant/reference/type archived
                | ARCHIVE_INTEGRITY_VIOLATION   | Stored content hash mismatch
                | ARCHIVE_CHAIN_BROKEN          | Chain hash mismatch during walk
                | ARCHIVE_CONTENT_MISSING       | No document bytes to archive
----------------|-------------------------------|---------------------------------------
Storage         | STORAGE_OBJECT_NOT_FOUND      | Object key missing in storage
----------------|-------------------------------|---------------------------------------
Concurrency     | SEQUENCE_ALLOCATION_FAILED    | Counter row could not be allocated
----------------|-------------------------------|---------------------------------------
Distribution    | DISTRIBUTION_ERROR            | Remainder target index out of range

===============================================================================
HANDLING PATTERNS
===============================================================================

1. STATE CONFLICTS are surfaced to the caller, never retried:

    try:
        service.execute_settlement_calculation(...)
    except SettlementStateError as e:
        return {"error": e.code, "status": e.current_status}

2. INTEGRITY VIOLATIONS are never downgraded to "not found":

    except ArchiveIntegrityError as e:
        alert_compliance_officer(e.archive_id)
        raise

3. Auto-archive hooks are the only place where kernel errors are logged
   and swallowed.
===============================================================================
"""


class WindparkKernelError(Exception):
    """
    Base exception for all wind-park kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "WINDPARK_KERNEL_ERROR"


# Settlement-related exceptions


class SettlementError(WindparkKernelError):
    """Base exception for lease-revenue settlement errors."""

    code: str = "SETTLEMENT_ERROR"


class SettlementNotFoundError(SettlementError):
    """Settlement does not exist for the tenant."""

    code: str = "SETTLEMENT_NOT_FOUND"

    def __init__(self, settlement_id: str):
        self.settlement_id = settlement_id
        super().__init__(f"Settlement not found: {settlement_id}")


class SettlementStateError(SettlementError):
    """Settlement is in the wrong status for the requested operation."""

    code: str = "SETTLEMENT_STATE_CONFLICT"

    def __init__(self, settlement_id: str, current_status: str, allowed: tuple[str, ...]):
        self.settlement_id = settlement_id
        self.current_status = current_status
        self.allowed = allowed
        super().__init__(
            f"Settlement {settlement_id} must have status {' or '.join(allowed)} "
            f"(current: {current_status})"
        )


class DuplicateSettlementError(SettlementError):
    """A finalized settlement already exists for the same park and period."""

    code: str = "DUPLICATE_SETTLEMENT"

    def __init__(self, existing_id: str, existing_status: str):
        self.existing_id = existing_id
        self.existing_status = existing_status
        super().__init__(
            f"Settlement for this period already exists with status "
            f"{existing_status} (ID: {existing_id})"
        )


# Configuration-related exceptions


class ConfigurationError(WindparkKernelError):
    """Base exception for missing or invalid master data configuration."""

    code: str = "CONFIGURATION_ERROR"


class MissingParkConfigurationError(ConfigurationError):
    """A park field required for settlement calculation is missing."""

    code: str = "MISSING_PARK_CONFIGURATION"

    def __init__(self, park_id: str, field: str):
        self.park_id = park_id
        self.field = field
        super().__init__(f"Park {park_id} is missing required field: {field}")


class RevenuePhaseNotFoundError(ConfigurationError):
    """No revenue phase covers the settlement year."""

    code: str = "REVENUE_PHASE_NOT_FOUND"

    def __init__(self, park_id: str, year: int):
        self.park_id = park_id
        self.year = year
        super().__init__(f"No revenue phase configured for year {year} (park {park_id})")


class TaxRateNotFoundError(ConfigurationError):
    """No tax rate is valid for the tax type on the given date."""

    code: str = "TAX_RATE_NOT_FOUND"

    def __init__(self, tenant_id: str, tax_type: str, effective_date: str):
        self.tenant_id = tenant_id
        self.tax_type = tax_type
        self.effective_date = effective_date
        super().__init__(
            f"No {tax_type} tax rate configured for tenant {tenant_id} "
            f"on {effective_date}"
        )


# Cost allocation exceptions


class AllocationError(WindparkKernelError):
    """Base exception for park cost allocation errors."""

    code: str = "ALLOCATION_ERROR"


class AllocationNotFoundError(AllocationError):
    """Cost allocation does not exist for the tenant."""

    code: str = "ALLOCATION_NOT_FOUND"

    def __init__(self, allocation_id: str):
        self.allocation_id = allocation_id
        super().__init__(f"Cost allocation not found: {allocation_id}")


class AllocationStateError(AllocationError):
    """Cost allocation is in the wrong status."""

    code: str = "ALLOCATION_STATE_CONFLICT"

    def __init__(self, allocation_id: str, current_status: str, allowed: tuple[str, ...]):
        self.allocation_id = allocation_id
        self.current_status = current_status
        self.allowed = allowed
        super().__init__(
            f"Cost allocation {allocation_id} must have status {' or '.join(allowed)} "
            f"(current: {current_status})"
        )


class NoOperatorsError(AllocationError):
    """No operator funds found for the park and year."""

    code: str = "NO_OPERATORS"

    def __init__(self, park_id: str, year: int):
        self.park_id = park_id
        self.year = year
        super().__init__(f"No operator funds found for park {park_id} in {year}")


# Invoice exceptions


class InvoiceError(WindparkKernelError):
    """Base exception for invoice errors."""

    code: str = "INVOICE_ERROR"


class InvoiceNotFoundError(InvoiceError):
    """Invoice does not exist."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class InvoiceStateError(InvoiceError):
    """Invoice status transition is not allowed."""

    code: str = "INVOICE_STATE_CONFLICT"

    def __init__(self, invoice_id: str, current_status: str, target_status: str):
        self.invoice_id = invoice_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Invoice {invoice_id} cannot move from {current_status} to {target_status}"
        )


# Archive exceptions


class ArchiveError(WindparkKernelError):
    """Base exception for GoBD archive errors."""

    code: str = "ARCHIVE_ERROR"


class DuplicateArchiveError(ArchiveError):
    """The (tenant, reference, document type) triple is already archived."""

    code: str = "DUPLICATE_ARCHIVE"

    def __init__(self, document_type: str, reference_number: str, existing_id: str):
        self.document_type = document_type
        self.reference_number = reference_number
        self.existing_id = existing_id
        super().__init__(
            f"Document already archived: {document_type} / {reference_number} "
            f"(ID: {existing_id})"
        )


class ArchiveIntegrityError(ArchiveError):
    """
    Retrieved archive content does not match its stored content hash.

    Never downgrade this error: the content may have been tampered with.
    """

    code: str = "ARCHIVE_INTEGRITY_VIOLATION"

    def __init__(self, archive_id: str, expected_hash: str, actual_hash: str):
        self.archive_id = archive_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Integrity violation for archived document {archive_id}: "
            f"content hash {actual_hash[:16]}... does not match stored {expected_hash[:16]}..."
        )


class ArchiveChainBrokenError(ArchiveError):
    """Archive hash chain validation failed."""

    code: str = "ARCHIVE_CHAIN_BROKEN"

    def __init__(self, tenant_id: str, invalid_documents: int):
        self.tenant_id = tenant_id
        self.invalid_documents = invalid_documents
        super().__init__(
            f"Archive chain broken for tenant {tenant_id}: "
            f"{invalid_documents} invalid document(s)"
        )


class ArchiveContentMissingError(ArchiveError):
    """No document bytes were available to archive."""

    code: str = "ARCHIVE_CONTENT_MISSING"

    def __init__(self, reference_id: str):
        self.reference_id = reference_id
        super().__init__(f"No document content available for {reference_id}")


# Storage exceptions


class StorageError(WindparkKernelError):
    """Base exception for object storage errors."""

    code: str = "STORAGE_ERROR"


class StorageObjectNotFoundError(StorageError):
    """The requested key does not exist in object storage."""

    code: str = "STORAGE_OBJECT_NOT_FOUND"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Object not found in storage: {key}")


# Concurrency exceptions


class ConcurrencyError(WindparkKernelError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class SequenceAllocationError(ConcurrencyError):
    """A sequence counter could not be allocated."""

    code: str = "SEQUENCE_ALLOCATION_FAILED"

    def __init__(self, sequence_name: str, count: int):
        self.sequence_name = sequence_name
        self.count = count
        super().__init__(f"Cannot allocate {count} value(s) from sequence {sequence_name}")


# Distribution exceptions


class DistributionError(WindparkKernelError):
    """Remainder distribution received inconsistent arguments."""

    code: str = "DISTRIBUTION_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
