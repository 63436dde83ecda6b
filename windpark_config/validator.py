"""
Configuration Validator (``windpark_config.validator``).

Responsibility
--------------
Validates a parsed ``WindparkConfig`` before it is handed out, so that
seeding a tenant or numbering an invoice never discovers a hole in the
defaults halfway through a transaction.

Invariants enforced
-------------------
* Every settlement fee component has a position tax mapping, and each
  mapped tax type has a default rate.
* Every invoice type has a number prefix; prefixes are distinct.
* Retention periods and the payment term are positive.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from windpark_config.schema import WindparkConfig

REQUIRED_POSITIONS = (
    "POOL_AREA",
    "TURBINE_SITE",
    "SEALED_AREA",
    "ROAD_USAGE",
    "CABLE_ROUTE",
)
REQUIRED_INVOICE_TYPES = ("INVOICE", "CREDIT_NOTE")
VALID_TAX_TYPES = frozenset({"STANDARD", "REDUCED", "EXEMPT"})


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: WindparkConfig) -> ConfigValidationResult:
    """Validate a configuration and collect every problem found."""
    result = ConfigValidationResult()

    rate_types = {r.tax_type for r in config.tax_rates}
    for rate in config.tax_rates:
        if rate.tax_type not in VALID_TAX_TYPES:
            result.add_error(f"Unknown tax type in tax_rates: {rate.tax_type}")
        if rate.rate < 0:
            result.add_error(f"Tax rate for {rate.tax_type} cannot be negative")
        if rate.valid_to is not None and rate.valid_to < rate.valid_from:
            result.add_error(f"Tax rate for {rate.tax_type} ends before it starts")

    for position in REQUIRED_POSITIONS:
        tax_type = config.position_tax_map.get(position)
        if tax_type is None:
            result.add_error(f"position_tax_map is missing {position}")
        elif tax_type not in rate_types:
            result.add_error(f"{position} maps to {tax_type}, which has no default rate")

    for position in config.position_tax_map:
        if position not in REQUIRED_POSITIONS:
            result.add_warning(f"position_tax_map has unused entry {position}")

    prefixes = config.invoice_numbering.prefixes
    for invoice_type in REQUIRED_INVOICE_TYPES:
        if not prefixes.get(invoice_type):
            result.add_error(f"invoice_numbering has no prefix for {invoice_type}")
    if len(set(prefixes.values())) != len(prefixes):
        result.add_error("invoice_numbering prefixes must be distinct")
    if config.invoice_numbering.number_width < 1:
        result.add_error("invoice_numbering.number_width must be positive")

    settings = config.tenant_settings
    if settings.payment_term_days < 0:
        result.add_error("payment_term_days cannot be negative")
    if settings.invoice_retention_years < 1 or settings.contract_retention_years < 1:
        result.add_error("retention years must be positive")
    if config.archive.default_retention_years < 1:
        result.add_error("archive.default_retention_years must be positive")
    if config.archive.search_default_limit > config.archive.search_max_limit:
        result.add_error("archive.search_default_limit exceeds search_max_limit")

    return result
