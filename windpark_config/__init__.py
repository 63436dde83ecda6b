"""
windpark_config -- single public entrypoint for system defaults.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads the defaults file
    directly.

Architecture position:
    Configuration -- YAML-driven defaults, validated on load.
    This package sits beside ``windpark_kernel``; the kernel MUST NEVER
    import from ``windpark_config``.  Modules and services read it.

Failure modes:
    - ``FileNotFoundError`` -- configuration file does not exist.
    - ``ValueError`` -- validation failures.

Audit relevance:
    Every call emits a ``WINDPARK_CONFIG_TRACE`` log entry with the
    config_id, version and checksum, which ties seeded tenant tax
    settings back to the exact defaults file.
"""

from __future__ import annotations

import logging
from pathlib import Path

from windpark_config.loader import load_config_file
from windpark_config.schema import (
    ArchivePolicyDef,
    InvoiceNumberingDef,
    TaxRateDef,
    TenantSettingsDef,
    WindparkConfig,
)
from windpark_config.validator import validate_configuration

_logger = logging.getLogger("windpark.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "windpark.yaml"


def get_active_config(config_path: Path | None = None) -> WindparkConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to the defaults file.  Defaults to
            windpark_config/defaults/windpark.yaml.

    Returns:
        A validated, frozen ``WindparkConfig``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If configuration validation fails.
    """
    config = load_config_file(config_path or DEFAULT_CONFIG_PATH)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("windpark_config_warning", extra={"warning": warning})

    _logger.info(
        "WINDPARK_CONFIG_TRACE",
        extra={
            "trace_type": "WINDPARK_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "tax_rate_count": len(config.tax_rates),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "WindparkConfig",
    "TaxRateDef",
    "TenantSettingsDef",
    "InvoiceNumberingDef",
    "ArchivePolicyDef",
]
