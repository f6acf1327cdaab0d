from __future__ import annotations

from decimal import Decimal

from domain.units import round_gallons, round_money


def format_decimal(value: Decimal) -> str:
    normalized = value.normalize()
    # normalize() turns 100 into 1E+2.
    if normalized == normalized.to_integral():
        return f"{normalized:.0f}"
    return format(normalized, "f")


def format_currency(value: Decimal) -> str:
    return f"${round_money(value):,.2f}"


def format_gallons(value: Decimal) -> str:
    return f"{round_gallons(value):,.3f}"
