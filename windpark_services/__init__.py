"""
windpark_services -- Package init and public API.

Responsibility:
    Cross-module glue that runs after a module's own transaction has
    committed: auto-archive hooks and the invoice send transition.

Architecture position:
    Services -- orchestration over modules + kernel.

    Dependency direction:
        windpark_services/ -> windpark_modules/ (allowed)
        windpark_services/ -> windpark_kernel/  (allowed)
        windpark_modules/  -> windpark_services/ (FORBIDDEN)
        windpark_kernel/   -> windpark_services/ (FORBIDDEN)

Failure modes:
    - Hooks never raise; failures surface as a None archive id and an
      ERROR log line.
"""

from windpark_services.auto_archive import (
    auto_archive_contract,
    auto_archive_generic_document,
    auto_archive_invoice,
    auto_archive_settlement,
)
from windpark_services.invoice_lifecycle import InvoiceSentResult, mark_invoice_sent

__all__ = [
    "auto_archive_invoice",
    "auto_archive_settlement",
    "auto_archive_contract",
    "auto_archive_generic_document",
    "InvoiceSentResult",
    "mark_invoice_sent",
]
