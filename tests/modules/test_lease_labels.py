"""
Tests for document text helpers.
"""

from datetime import date

import pytest

from windpark_kernel.models.party import Fund, Person
from windpark_modules.lease_revenue.labels import (
    build_fund_name,
    build_plot_description,
    build_recipient_address,
    build_recipient_name,
    get_service_period_dates,
    get_service_period_label,
    quarter_of_month,
)


class TestServicePeriod:
    """Tests for period dates and labels."""

    @pytest.mark.parametrize("month, quarter", [(1, 1), (3, 1), (4, 2), (9, 3), (12, 4)])
    def test_quarter_of_month(self, month, quarter):
        assert quarter_of_month(month) == quarter

    def test_quarterly_dates(self):
        assert get_service_period_dates(2024, "ADVANCE", "QUARTERLY", 5) == (
            date(2024, 4, 1), date(2024, 6, 30),
        )

    def test_monthly_dates_leap_year(self):
        assert get_service_period_dates(2024, "ADVANCE", "MONTHLY", 2) == (
            date(2024, 2, 1), date(2024, 2, 29),
        )

    def test_final_covers_year(self):
        assert get_service_period_dates(2024, "FINAL", "QUARTERLY", 5) == (
            date(2024, 1, 1), date(2024, 12, 31),
        )

    def test_yearly_advance_covers_year(self):
        assert get_service_period_dates(2024, "ADVANCE", "YEARLY", None) == (
            date(2024, 1, 1), date(2024, 12, 31),
        )

    def test_labels(self):
        assert get_service_period_label(2024, "ADVANCE", "QUARTERLY", 11) == "Quartal 4 - 2024"
        assert get_service_period_label(2024, "ADVANCE", "MONTHLY", 3) == "Maerz 2024"
        assert get_service_period_label(2024, "FINAL") == "Jahr 2024"


class TestPlotDescription:
    """Tests for build_plot_description."""

    def test_full(self):
        summary = [{"plotNumber": "12", "fieldNumber": "3", "cadastralDistrict": "Nordheim"}]
        assert build_plot_description(summary) == "Flst. 12, Flur 3, Gem. Nordheim"

    def test_field_zero_omitted(self):
        summary = [{"plotNumber": "7", "fieldNumber": "0", "cadastralDistrict": "Nordheim"}]
        assert build_plot_description(summary) == "Flst. 7, Gem. Nordheim"

    def test_several_plots(self):
        summary = [
            {"plotNumber": "12", "fieldNumber": "3"},
            {"plotNumber": None},
            {"plotNumber": "13"},
        ]
        assert build_plot_description(summary) == "Flst. 12, Flur 3 / Flst. 13"

    def test_empty(self):
        assert build_plot_description(None) == ""


class TestRecipients:
    """Tests for recipient name and address blocks."""

    def test_person_name(self):
        assert build_recipient_name(Person(first_name="Hans", last_name="Mueller")) == "Hans Mueller"

    def test_company_name_wins(self):
        person = Person(first_name="Hans", company_name="Agrar Nordfeld GmbH")
        assert build_recipient_name(person) == "Agrar Nordfeld GmbH"

    def test_unknown(self):
        assert build_recipient_name(None) == "Unbekannt"
        assert build_recipient_name(Person()) == "Unbekannt"

    def test_address(self):
        person = Person(street="Dorfstrasse", house_number="5", postal_code="25813", city="Husum")
        assert build_recipient_address(person) == "Dorfstrasse 5\n25813 Husum"

    def test_foreign_country(self):
        person = Person(street="Dorpsstraat", postal_code="1012", city="Amsterdam", country="Niederlande")
        assert build_recipient_address(person) == "Dorpsstraat\n1012 Amsterdam\nNiederlande"

    def test_fund_name(self):
        assert build_fund_name(Fund(name="Betreiber Nord", legal_form="GmbH & Co. KG")) == (
            "Betreiber Nord GmbH & Co. KG"
        )
        assert build_fund_name(Fund(name="Betreiber Sued")) == "Betreiber Sued"
        assert build_fund_name(None) == ""
