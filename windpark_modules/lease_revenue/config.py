"""
Lease Revenue Configuration Schema.

Defaults for settlement documents: the initial status of generated
invoices, the revenue table grouping on final credit notes, line units
and the default cost allocation label.
"""

from dataclasses import dataclass
from typing import Self

from windpark_kernel.logging_config import get_logger
from windpark_kernel.models.invoice import InvoiceStatus
from windpark_modules.lease_revenue.models import RevenueDisplayMode

logger = get_logger("modules.lease_revenue.config")


@dataclass
class LeaseRevenueConfig:
    """Configuration schema for the lease revenue module."""

    # Status of generated invoices unless the caller overrides it
    default_invoice_status: str = InvoiceStatus.DRAFT.value

    # Revenue table grouping on the final credit note annex
    default_revenue_display_mode: str = RevenueDisplayMode.YEARLY.value

    # Unit printed on every generated invoice line
    line_unit: str = "pauschal"

    # Cost allocation label; {year} is the settlement year
    allocation_period_label: str = "Nutzungsentgelt {year}"

    def __post_init__(self):
        if self.default_invoice_status not in (InvoiceStatus.DRAFT.value, InvoiceStatus.SENT.value):
            raise ValueError("default_invoice_status must be DRAFT or SENT")
        RevenueDisplayMode(self.default_revenue_display_mode)
        if not self.line_unit:
            raise ValueError("line_unit cannot be empty")
        if "{year}" not in self.allocation_period_label:
            raise ValueError("allocation_period_label must contain {year}")

        logger.info(
            "lease_revenue_config_initialized",
            extra={
                "default_invoice_status": self.default_invoice_status,
                "default_revenue_display_mode": self.default_revenue_display_mode,
                "line_unit": self.line_unit,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()
