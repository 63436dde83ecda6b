"""
Invoice number allocation (``windpark_modules.tax.numbering``).

Responsibility:
    Hands out gap-free, per-tenant, per-invoice-type document numbers in
    the format ``{prefix}-{year}-{number:05d}`` (RE for invoices, GS for
    credit notes).

Architecture position:
    Modules layer.  Thin wrapper over the kernel ``SequenceService``.
    Never commits: numbers become permanent with the caller's transaction
    and are returned to the counter when it rolls back.

Invariants enforced:
    - A batch of N numbers is contiguous and ascending.
    - Concurrent generators for the same (tenant, type) serialize on the
      counter row lock, so two runs can never receive the same number.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from windpark_config import WindparkConfig, get_active_config
from windpark_kernel.domain.clock import Clock, SystemClock
from windpark_kernel.logging_config import get_logger
from windpark_kernel.models.invoice import InvoiceType
from windpark_kernel.services.sequence_service import SequenceService

logger = get_logger("modules.tax.numbering")


def invoice_sequence_name(tenant_id: UUID, invoice_type: InvoiceType | str) -> str:
    """Counter row name for a tenant and invoice type."""
    return f"invoice_number:{tenant_id}:{InvoiceType(invoice_type).value}"


class InvoiceNumberService:
    """
    Allocates invoice numbers from a locked counter row.

    Contract:
        ``get_next_invoice_numbers`` returns ``count`` formatted numbers.
    Non-goals:
        Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: WindparkConfig | None = None,
    ):
        self._sequences = SequenceService(session)
        self._clock = clock or SystemClock()
        self._config = config

    @property
    def config(self) -> WindparkConfig:
        if self._config is None:
            self._config = get_active_config()
        return self._config

    def format_number(self, invoice_type: InvoiceType | str, year: int, number: int) -> str:
        numbering = self.config.invoice_numbering
        prefix = numbering.prefix_for(InvoiceType(invoice_type).value)
        return f"{prefix}-{year}-{number:0{numbering.number_width}d}"

    def get_next_invoice_numbers(
        self,
        tenant_id: UUID,
        invoice_type: InvoiceType | str,
        count: int,
        year: int | None = None,
    ) -> list[str]:
        """
        Allocate ``count`` consecutive invoice numbers.

        Args:
            tenant_id: Tenant whose counter is used.
            invoice_type: INVOICE or CREDIT_NOTE.
            count: Number of numbers to allocate (>= 1).
            year: Year printed in the number; defaults to the clock's year.

        Raises:
            SequenceAllocationError: If count < 1.
        """
        invoice_type = InvoiceType(invoice_type)
        year = year or self._clock.today().year
        values = self._sequences.next_values(
            invoice_sequence_name(tenant_id, invoice_type), count
        )
        numbers = [self.format_number(invoice_type, year, v) for v in values]

        logger.info(
            "invoice_numbers_allocated",
            extra={
                "tenant_id": str(tenant_id),
                "invoice_type": invoice_type.value,
                "count": count,
                "first_number": numbers[0],
                "last_number": numbers[-1],
            },
        )
        return numbers
