"""
Tax ORM Persistence Models (``windpark_modules.tax.orm``).

Responsibility:
    SQLAlchemy ORM models for per-tenant tax configuration: dated tax
    rates, the settlement position tax map and tenant settings.

Architecture position:
    **Modules layer** -- persistence companions to ``tax.models``.
    Inherits from ``TrackedBase`` (kernel DB base).

Invariants enforced:
    - Rates are Decimal percentages (19.00 means 19 %) -- NEVER float.
    - Enum fields stored as String(50) containing the enum .value string.
    - One mapping per (tenant, position) and one settings row per tenant.

Audit relevance:
    Rates are dated (valid_from / valid_to) so that a document can always
    be re-taxed with the rate valid on its service date.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from windpark_kernel.db.base import TrackedBase, UUIDString


# ---------------------------------------------------------------------------
# TaxRateConfigModel
# ---------------------------------------------------------------------------

class TaxRateConfigModel(TrackedBase):
    """
    A tax rate for a tax type, valid over a date range.

    Contract:
        valid_to is nullable (open-ended).  When ranges overlap, the rate
        with the latest valid_from wins.
    """

    __tablename__ = "tax_rate_configs"

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    tax_type: Mapped[str] = mapped_column(String(50), nullable=False)
    rate: Mapped[Decimal] = mapped_column(nullable=False)
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    label: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "tax_type", "valid_from",
            name="uq_tax_rate_config_tenant_type_from",
        ),
        Index("idx_tax_rate_config_lookup", "tenant_id", "tax_type", "valid_from"),
    )

    def __repr__(self) -> str:
        return f"<TaxRateConfigModel {self.tax_type} {self.rate}% from {self.valid_from}>"


# ---------------------------------------------------------------------------
# PositionTaxMappingModel
# ---------------------------------------------------------------------------

class PositionTaxMappingModel(TrackedBase):
    """Tax type of one settlement fee component for a tenant."""

    __tablename__ = "position_tax_mappings"

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    position_type: Mapped[str] = mapped_column(String(50), nullable=False)
    tax_type: Mapped[str] = mapped_column(String(50), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "position_type",
            name="uq_position_tax_mapping_tenant_position",
        ),
    )

    def __repr__(self) -> str:
        return f"<PositionTaxMappingModel {self.position_type} -> {self.tax_type}>"


# ---------------------------------------------------------------------------
# TenantSettingsModel
# ---------------------------------------------------------------------------

class TenantSettingsModel(TrackedBase):
    """
    Document settings of a tenant.

    Guarantees:
        - ``tenant_id`` is unique (uq_tenant_settings_tenant).
    """

    __tablename__ = "tenant_settings"

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    tax_exempt_note: Mapped[str] = mapped_column(Text, nullable=False)
    payment_term_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    invoice_retention_years: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    contract_retention_years: Mapped[int] = mapped_column(Integer, nullable=False, default=10)

    __table_args__ = (
        UniqueConstraint("tenant_id", name="uq_tenant_settings_tenant"),
    )

    def to_dto(self):
        from windpark_modules.tax.models import TenantSettings
        return TenantSettings(
            tenant_id=self.tenant_id,
            tax_exempt_note=self.tax_exempt_note,
            payment_term_days=self.payment_term_days,
            invoice_retention_years=self.invoice_retention_years,
            contract_retention_years=self.contract_retention_years,
        )

    def __repr__(self) -> str:
        return f"<TenantSettingsModel tenant={self.tenant_id}>"
