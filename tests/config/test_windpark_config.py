"""
Tests for the configuration layer.

Covers:
- Shipped defaults load and validate
- Parsing helpers
- Checksum stability
- Validation errors and warnings
- Custom config files
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest
import yaml

from windpark_config import DEFAULT_CONFIG_PATH, get_active_config
from windpark_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_config,
    parse_date,
    parse_decimal,
)
from windpark_config.schema import ArchivePolicyDef, InvoiceNumberingDef, TaxRateDef
from windpark_config.validator import validate_configuration


def load_yaml_file_default() -> dict:
    return load_yaml_file(DEFAULT_CONFIG_PATH)


class TestDefaults:
    """Tests for the shipped windpark.yaml."""

    def test_identity(self):
        config = get_active_config()
        assert config.config_id == "windpark-defaults"
        assert config.version == 1
        assert len(config.checksum) == 64

    def test_tax_rates(self):
        rates = {r.tax_type: r for r in get_active_config().tax_rates}
        assert rates["STANDARD"].rate == Decimal("19.00")
        assert rates["REDUCED"].rate == Decimal("7.00")
        assert rates["EXEMPT"].rate == Decimal("0.00")
        assert rates["STANDARD"].valid_from == date(1970, 1, 1)
        assert rates["STANDARD"].valid_to is None

    def test_position_tax_map(self):
        tax_map = get_active_config().position_tax_map
        assert tax_map["POOL_AREA"] == "STANDARD"
        for position in ("TURBINE_SITE", "SEALED_AREA", "ROAD_USAGE", "CABLE_ROUTE"):
            assert tax_map[position] == "EXEMPT"

    def test_tenant_settings(self):
        settings = get_active_config().tenant_settings
        assert settings.tax_exempt_note == "Steuerfrei gem. §4 Nr.12 UStG"
        assert settings.payment_term_days == 30
        assert settings.invoice_retention_years == 10
        assert settings.contract_retention_years == 10

    def test_numbering_and_archive(self):
        config = get_active_config()
        assert config.invoice_numbering.prefix_for("CREDIT_NOTE") == "GS"
        assert config.invoice_numbering.prefix_for("INVOICE") == "RE"
        assert config.invoice_numbering.number_width == 5
        assert config.archive.storage_prefix == "gobd-archive"
        assert config.archive.search_default_limit == 50
        assert config.archive.search_max_limit == 100

    def test_defaults_are_valid(self):
        result = validate_configuration(get_active_config())
        assert result.is_valid
        assert result.warnings == []

    def test_trace_logged(self, captured_logs):
        get_active_config()
        traces = [r for r in captured_logs() if r["message"] == "WINDPARK_CONFIG_TRACE"]
        assert traces and traces[0]["config_id"] == "windpark-defaults"


class TestParsing:
    """Tests for loader helpers."""

    def test_parse_date(self):
        assert parse_date("2024-02-29") == date(2024, 2, 29)
        assert parse_date(date(2024, 1, 1)) == date(2024, 1, 1)
        with pytest.raises(ValueError):
            parse_date(20240101)

    def test_parse_decimal_from_float(self):
        assert parse_decimal(19.1) == Decimal("19.1")
        assert parse_decimal("7.00") == Decimal("7.00")

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_checksum_changes_with_content(self):
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})

    def test_archive_section_optional(self):
        raw = load_yaml_file_default()
        raw.pop("archive")
        assert parse_config(raw).archive == ArchivePolicyDef()


class TestValidation:
    """Tests for validate_configuration."""

    def test_unknown_tax_type(self):
        config = get_active_config()
        bad = replace(
            config,
            tax_rates=config.tax_rates + (
                TaxRateDef(tax_type="LUXURY", rate=Decimal("25"), valid_from=date(2020, 1, 1)),
            ),
        )
        result = validate_configuration(bad)
        assert not result.is_valid
        assert any("LUXURY" in e for e in result.errors)

    def test_negative_rate(self):
        config = get_active_config()
        bad = replace(
            config,
            tax_rates=(TaxRateDef(tax_type="STANDARD", rate=Decimal("-1"), valid_from=date(2020, 1, 1)),)
            + config.tax_rates[1:],
        )
        assert any("negative" in e for e in validate_configuration(bad).errors)

    def test_missing_position(self):
        config = get_active_config()
        tax_map = dict(config.position_tax_map)
        del tax_map["CABLE_ROUTE"]
        result = validate_configuration(replace(config, position_tax_map=tax_map))
        assert "position_tax_map is missing CABLE_ROUTE" in result.errors

    def test_unused_position_is_warning(self):
        config = get_active_config()
        tax_map = {**config.position_tax_map, "SOLAR_ROOF": "STANDARD"}
        result = validate_configuration(replace(config, position_tax_map=tax_map))
        assert result.is_valid
        assert any("SOLAR_ROOF" in w for w in result.warnings)

    def test_duplicate_prefixes(self):
        config = get_active_config()
        numbering = InvoiceNumberingDef(prefixes={"INVOICE": "GS", "CREDIT_NOTE": "GS"})
        result = validate_configuration(replace(config, invoice_numbering=numbering))
        assert "invoice_numbering prefixes must be distinct" in result.errors


class TestCustomFile:
    """Tests for loading a config from another path."""

    def test_override_path(self, tmp_path):
        raw = load_yaml_file_default()
        raw["invoice_numbering"]["prefixes"]["CREDIT_NOTE"] = "GU"
        path = tmp_path / "custom.yaml"
        path.write_text(yaml.safe_dump(raw), encoding="utf-8")

        config = get_active_config(path)

        assert config.invoice_numbering.prefix_for("CREDIT_NOTE") == "GU"
        assert config.checksum != get_active_config().checksum

    def test_invalid_file_rejected(self, tmp_path):
        raw = load_yaml_file_default()
        raw["position_tax_map"].pop("POOL_AREA")
        path = tmp_path / "broken.yaml"
        path.write_text(yaml.safe_dump(raw), encoding="utf-8")

        with pytest.raises(ValueError, match="Configuration validation failed"):
            get_active_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")
