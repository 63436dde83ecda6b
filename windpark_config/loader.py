"""
Configuration Loader (``windpark_config.loader``).

Responsibility
--------------
Loads the defaults YAML file and parses it into typed
``windpark_config.schema`` dataclass instances.  Runtime callers use
``windpark_config.get_active_config()`` instead of calling this module.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on kernel,
modules, or engines.

Invariants enforced
-------------------
* Money and percentage values are parsed to ``Decimal`` from strings,
  never through float.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
* Invalid date format  -> ``ValueError`` from ``date.fromisoformat``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from windpark_config.schema import (
    ArchivePolicyDef,
    InvoiceNumberingDef,
    TaxRateDef,
    TenantSettingsDef,
    WindparkConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any) -> Decimal:
    """Parse a Decimal from YAML.  Floats go through ``str()``."""
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def parse_tax_rate(data: dict[str, Any]) -> TaxRateDef:
    """Parse a TaxRateDef from a dict."""
    return TaxRateDef(
        tax_type=data["tax_type"],
        rate=parse_decimal(data["rate"]),
        valid_from=parse_date(data["valid_from"]),
        valid_to=parse_date(data["valid_to"]) if data.get("valid_to") else None,
        label=data.get("label", ""),
    )


def parse_tenant_settings(data: dict[str, Any]) -> TenantSettingsDef:
    """Parse a TenantSettingsDef from a dict."""
    return TenantSettingsDef(
        tax_exempt_note=data["tax_exempt_note"],
        payment_term_days=int(data.get("payment_term_days", 30)),
        invoice_retention_years=int(data.get("invoice_retention_years", 10)),
        contract_retention_years=int(data.get("contract_retention_years", 10)),
    )


def parse_invoice_numbering(data: dict[str, Any]) -> InvoiceNumberingDef:
    """Parse an InvoiceNumberingDef from a dict."""
    return InvoiceNumberingDef(
        prefixes=dict(data["prefixes"]),
        number_width=int(data.get("number_width", 5)),
    )


def parse_archive_policy(data: dict[str, Any]) -> ArchivePolicyDef:
    """Parse an ArchivePolicyDef from a dict.  Every key is optional."""
    defaults = ArchivePolicyDef()
    return ArchivePolicyDef(
        storage_prefix=data.get("storage_prefix", defaults.storage_prefix),
        default_retention_years=int(
            data.get("default_retention_years", defaults.default_retention_years)
        ),
        default_mime_type=data.get("default_mime_type", defaults.default_mime_type),
        search_default_limit=int(
            data.get("search_default_limit", defaults.search_default_limit)
        ),
        search_max_limit=int(data.get("search_max_limit", defaults.search_max_limit)),
    )


def parse_config(data: dict[str, Any]) -> WindparkConfig:
    """
    Parse a complete WindparkConfig from the root YAML dict.

    Postconditions:
        - ``checksum`` is set from ``compute_checksum(data)``.
    Raises:
        KeyError: if required sections are missing.
    """
    return WindparkConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        tax_rates=tuple(parse_tax_rate(r) for r in data["tax_rates"]),
        position_tax_map=dict(data["position_tax_map"]),
        tenant_settings=parse_tenant_settings(data["tenant_settings"]),
        invoice_numbering=parse_invoice_numbering(data["invoice_numbering"]),
        archive=parse_archive_policy(data.get("archive") or {}),
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> WindparkConfig:
    """Load and parse a configuration file."""
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
