"""
Tax Configuration Service (``windpark_modules.tax.service``).

Responsibility
--------------
Read side of the tenant tax configuration (rate lookup by date, position
tax map, tenant settings) plus seeding of system defaults for a new
tenant.

Architecture position
---------------------
**Modules layer**.  Read methods never commit and may be called inside a
caller's transaction (invoice generators do).  ``seed_tenant_defaults``
owns its transaction boundary.

Invariants enforced
-------------------
* A missing tax rate is an error, never a silent 0 %.
* The position tax map always contains all five fee positions; tenant
  rows override the defaults from configuration.
* Seeding is idempotent: existing tenant rows are left untouched.

Failure modes
-------------
* ``TaxRateNotFoundError`` -- no rate valid on the requested date.
* Database errors during seeding -> rollback, exception re-raised.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from windpark_config import WindparkConfig, get_active_config
from windpark_kernel.exceptions import TaxRateNotFoundError
from windpark_kernel.logging_config import get_logger
from windpark_modules.tax.models import (
    DEFAULT_POSITION_TAX_MAP,
    PositionType,
    TaxType,
    TenantSettings,
)
from windpark_modules.tax.orm import (
    PositionTaxMappingModel,
    TaxRateConfigModel,
    TenantSettingsModel,
)

logger = get_logger("modules.tax.service")


class TaxConfigurationService:
    """
    Tenant tax configuration.

    Contract
    --------
    * ``get_tax_rate`` returns the percentage valid on the given date.
    * ``get_position_tax_map`` returns one TaxType per PositionType.
    * ``get_tenant_settings`` falls back to configured defaults when the
      tenant has no settings row yet.

    Non-goals
    ---------
    * Does NOT edit rates; administration happens outside this kernel.
    """

    def __init__(
        self,
        session: Session,
        config: WindparkConfig | None = None,
    ):
        self._session = session
        self._config = config

    @property
    def config(self) -> WindparkConfig:
        if self._config is None:
            self._config = get_active_config()
        return self._config

    # =========================================================================
    # Queries
    # =========================================================================

    def get_tax_rate(
        self,
        tenant_id: UUID,
        tax_type: TaxType | str,
        effective_date: date,
    ) -> Decimal:
        """
        Tax rate percentage for ``tax_type`` valid on ``effective_date``.

        Picks the row with the latest valid_from <= date whose valid_to is
        open or >= date.

        Raises:
            TaxRateNotFoundError: If no such row exists.
        """
        tax_type = TaxType(tax_type)
        row = self._session.execute(
            select(TaxRateConfigModel)
            .where(
                TaxRateConfigModel.tenant_id == tenant_id,
                TaxRateConfigModel.tax_type == tax_type.value,
                TaxRateConfigModel.valid_from <= effective_date,
                or_(
                    TaxRateConfigModel.valid_to.is_(None),
                    TaxRateConfigModel.valid_to >= effective_date,
                ),
            )
            .order_by(TaxRateConfigModel.valid_from.desc())
            .limit(1)
        ).scalar_one_or_none()

        if row is None:
            logger.warning(
                "tax_rate_not_found",
                extra={
                    "tenant_id": str(tenant_id),
                    "tax_type": tax_type.value,
                    "effective_date": effective_date.isoformat(),
                },
            )
            raise TaxRateNotFoundError(
                str(tenant_id), tax_type.value, effective_date.isoformat()
            )
        return row.rate

    def get_position_tax_map(self, tenant_id: UUID) -> dict[PositionType, TaxType]:
        """Tax type per settlement fee position, defaults filled in."""
        tax_map = dict(DEFAULT_POSITION_TAX_MAP)
        for position, tax_type in self.config.position_tax_map.items():
            tax_map[PositionType(position)] = TaxType(tax_type)

        rows = self._session.execute(
            select(PositionTaxMappingModel).where(
                PositionTaxMappingModel.tenant_id == tenant_id
            )
        ).scalars()
        for row in rows:
            tax_map[PositionType(row.position_type)] = TaxType(row.tax_type)
        return tax_map

    def get_tenant_settings(self, tenant_id: UUID) -> TenantSettings:
        """Tenant settings, or configured defaults when none are stored."""
        row = self._session.execute(
            select(TenantSettingsModel).where(TenantSettingsModel.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if row is not None:
            return row.to_dto()

        defaults = self.config.tenant_settings
        return TenantSettings(
            tenant_id=tenant_id,
            tax_exempt_note=defaults.tax_exempt_note,
            payment_term_days=defaults.payment_term_days,
            invoice_retention_years=defaults.invoice_retention_years,
            contract_retention_years=defaults.contract_retention_years,
        )

    # =========================================================================
    # Seeding
    # =========================================================================

    def seed_tenant_defaults(self, tenant_id: UUID, actor_id: UUID) -> dict[str, int]:
        """
        Write default tax rates, position mappings and settings for a tenant.

        Returns:
            Number of rows created per table.
        """
        created = {"tax_rates": 0, "position_mappings": 0, "tenant_settings": 0}
        try:
            existing_rates = {
                (r.tax_type, r.valid_from)
                for r in self._session.execute(
                    select(TaxRateConfigModel).where(
                        TaxRateConfigModel.tenant_id == tenant_id
                    )
                ).scalars()
            }
            for rate in self.config.tax_rates:
                if (rate.tax_type, rate.valid_from) in existing_rates:
                    continue
                self._session.add(TaxRateConfigModel(
                    tenant_id=tenant_id,
                    tax_type=rate.tax_type,
                    rate=rate.rate,
                    valid_from=rate.valid_from,
                    valid_to=rate.valid_to,
                    label=rate.label or None,
                    created_by_id=actor_id,
                ))
                created["tax_rates"] += 1

            existing_positions = {
                m.position_type
                for m in self._session.execute(
                    select(PositionTaxMappingModel).where(
                        PositionTaxMappingModel.tenant_id == tenant_id
                    )
                ).scalars()
            }
            for position, tax_type in self.config.position_tax_map.items():
                if position in existing_positions:
                    continue
                self._session.add(PositionTaxMappingModel(
                    tenant_id=tenant_id,
                    position_type=position,
                    tax_type=tax_type,
                    created_by_id=actor_id,
                ))
                created["position_mappings"] += 1

            has_settings = self._session.execute(
                select(TenantSettingsModel.id).where(
                    TenantSettingsModel.tenant_id == tenant_id
                )
            ).first() is not None
            if not has_settings:
                defaults = self.config.tenant_settings
                self._session.add(TenantSettingsModel(
                    tenant_id=tenant_id,
                    tax_exempt_note=defaults.tax_exempt_note,
                    payment_term_days=defaults.payment_term_days,
                    invoice_retention_years=defaults.invoice_retention_years,
                    contract_retention_years=defaults.contract_retention_years,
                    created_by_id=actor_id,
                ))
                created["tenant_settings"] = 1

            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "tenant_tax_defaults_seeded",
            extra={
                "tenant_id": str(tenant_id),
                "config_checksum": self.config.checksum,
                **created,
            },
        )
        return created
