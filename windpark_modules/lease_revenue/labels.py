"""
Document text helpers for lease revenue invoices.

Service period dates and labels, plot descriptions for line texts and
recipient name/address blocks.  Pure functions over ORM rows or plain
values; no session access.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable
from datetime import date
from typing import Any

from windpark_kernel.models.party import Fund, Person
from windpark_modules.lease_revenue.models import AdvanceInterval, PeriodType

GERMAN_MONTHS = (
    "Januar", "Februar", "Maerz", "April", "Mai", "Juni",
    "Juli", "August", "September", "Oktober", "November", "Dezember",
)


def quarter_of_month(month: int) -> int:
    return (month - 1) // 3 + 1


def get_service_period_dates(
    year: int,
    period_type: PeriodType | str,
    advance_interval: AdvanceInterval | str | None = None,
    month: int | None = None,
) -> tuple[date, date]:
    """
    First and last day of the period a settlement covers.

    A QUARTERLY advance covers the quarter containing ``month``; a
    MONTHLY advance covers ``month``.  Everything else covers the year.
    """
    if PeriodType(period_type) == PeriodType.ADVANCE and advance_interval and month:
        interval = AdvanceInterval(advance_interval)
        if interval == AdvanceInterval.QUARTERLY:
            quarter = quarter_of_month(month)
            first_month = (quarter - 1) * 3 + 1
            last_month = first_month + 2
            return (
                date(year, first_month, 1),
                date(year, last_month, calendar.monthrange(year, last_month)[1]),
            )
        if interval == AdvanceInterval.MONTHLY:
            return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])
    return date(year, 1, 1), date(year, 12, 31)


def get_service_period_label(
    year: int,
    period_type: PeriodType | str,
    advance_interval: AdvanceInterval | str | None = None,
    month: int | None = None,
) -> str:
    """Period label: "Quartal N - Y", "<Monat> Y" or "Jahr Y"."""
    if PeriodType(period_type) == PeriodType.ADVANCE and advance_interval and month:
        interval = AdvanceInterval(advance_interval)
        if interval == AdvanceInterval.QUARTERLY:
            return f"Quartal {quarter_of_month(month)} - {year}"
        if interval == AdvanceInterval.MONTHLY:
            return f"{GERMAN_MONTHS[month - 1]} {year}"
    return f"Jahr {year}"


def build_plot_description(plot_summary: Iterable[dict[str, Any]] | None) -> str:
    """
    "Flst. X, Flur Y, Gem. Z" per plot of a frozen ``plot_summary``,
    joined by " / ".

    Plots without a plot number are left out.  A field number of "0" is
    treated as missing.
    """
    parts = []
    for plot in plot_summary or ():
        plot_number = plot.get("plotNumber")
        if not plot_number:
            continue
        text = f"Flst. {plot_number}"
        field_number = plot.get("fieldNumber")
        if field_number and field_number != "0":
            text += f", Flur {field_number}"
        if plot.get("cadastralDistrict"):
            text += f", Gem. {plot['cadastralDistrict']}"
        parts.append(text)
    return " / ".join(parts)


def build_recipient_name(person: Person | None) -> str:
    if person is None:
        return "Unbekannt"
    if person.company_name:
        return person.company_name
    name = " ".join(p for p in (person.first_name, person.last_name) if p)
    return name or "Unbekannt"


def build_recipient_address(person: Person | None) -> str:
    """Multi-line postal address; the country is omitted for Germany."""
    if person is None:
        return ""
    lines = []
    street = " ".join(p for p in (person.street, person.house_number) if p)
    if street:
        lines.append(street)
    if person.postal_code and person.city:
        lines.append(f"{person.postal_code} {person.city}")
    elif person.city:
        lines.append(person.city)
    if person.country and person.country != "Deutschland":
        lines.append(person.country)
    return "\n".join(lines)


def build_fund_name(fund: Fund | None) -> str:
    """Fund name with its legal form, e.g. "Windpark Nord GmbH & Co. KG"."""
    if fund is None:
        return ""
    if fund.legal_form:
        return f"{fund.name} {fund.legal_form}"
    return fund.name
