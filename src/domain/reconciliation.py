from __future__ import annotations

from calendar import monthrange
from datetime import date
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel

from .units import round_gallons

# Absorbs unit-conversion rounding between liters and wine gallons.
BALANCE_TOLERANCE = Decimal("0.1")

_MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


class Reconciliation(BaseModel):
    total_available: Decimal
    total_accounted_for: Decimal
    variance: Decimal
    balanced: bool


def reconcile(
    *,
    beginning: Decimal,
    produced: Decimal,
    received: Decimal,
    tax_paid_removals: Decimal,
    other_removals: Decimal,
    ending: Decimal,
) -> Reconciliation:
    """Check beginning + produced + received == tax-paid + other removals + ending."""
    total_available = beginning + produced + received
    total_accounted_for = tax_paid_removals + other_removals + ending
    variance = round_gallons(total_available - total_accounted_for)
    return Reconciliation(
        total_available=round_gallons(total_available),
        total_accounted_for=round_gallons(total_accounted_for),
        variance=variance,
        balanced=abs(variance) < BALANCE_TOLERANCE,
    )


class PeriodType(StrEnum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


def period_date_range(period_type: PeriodType, year: int, period_number: int | None = None) -> tuple[date, date]:
    """First and last day of a reporting period; month/quarter default to the first one."""
    if period_type == PeriodType.MONTHLY:
        month = period_number or 1
        return date(year, month, 1), date(year, month, monthrange(year, month)[1])
    if period_type == PeriodType.QUARTERLY:
        start_month = ((period_number or 1) - 1) * 3 + 1
        end_month = start_month + 2
        return date(year, start_month, 1), date(year, end_month, monthrange(year, end_month)[1])
    return date(year, 1, 1), date(year, 12, 31)


def format_period_label(period_type: PeriodType, year: int, period_number: int | None = None) -> str:
    if period_type == PeriodType.MONTHLY:
        return f"{_MONTH_NAMES[(period_number or 1) - 1]} {year}"
    if period_type == PeriodType.QUARTERLY:
        return f"Q{period_number or 1} {year}"
    return str(year)
