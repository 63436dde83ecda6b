"""
Wind-park configuration schema.

Defines the reviewable source artifact for system defaults: tax rates,
the settlement position tax map, tenant settings, invoice numbering and
archive policy.  YAML is parsed into these types by the loader and handed
out through ``windpark_config.get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

# ---------------------------------------------------------------------------
# Tax
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxRateDef:
    """A default tax rate seeded for every new tenant."""

    tax_type: str  # STANDARD, REDUCED, EXEMPT
    rate: Decimal
    valid_from: date
    valid_to: date | None = None
    label: str = ""


@dataclass(frozen=True)
class TenantSettingsDef:
    """Default tenant settings."""

    tax_exempt_note: str
    payment_term_days: int = 30
    invoice_retention_years: int = 10
    contract_retention_years: int = 10


# ---------------------------------------------------------------------------
# Numbering and archive policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvoiceNumberingDef:
    """Invoice number format: ``{prefix}-{year}-{number:0{width}d}``."""

    prefixes: dict[str, str] = field(default_factory=dict)
    number_width: int = 5

    def prefix_for(self, invoice_type: str) -> str:
        return self.prefixes[invoice_type]


@dataclass(frozen=True)
class ArchivePolicyDef:
    """Storage layout and retention fallback for the GoBD archive."""

    storage_prefix: str = "gobd-archive"
    default_retention_years: int = 10
    default_mime_type: str = "application/pdf"
    search_default_limit: int = 50
    search_max_limit: int = 100


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WindparkConfig:
    """
    The complete, validated configuration.

    ``checksum`` is the SHA-256 of the canonical JSON form of the source
    document and identifies the exact defaults a tenant was seeded with.
    """

    config_id: str
    version: int
    tax_rates: tuple[TaxRateDef, ...]
    position_tax_map: dict[str, str]
    tenant_settings: TenantSettingsDef
    invoice_numbering: InvoiceNumberingDef
    archive: ArchivePolicyDef
    checksum: str = ""
