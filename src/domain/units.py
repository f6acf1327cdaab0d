from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from .events import VolumeUnit

LITERS_PER_WINE_GALLON = Decimal("3.78541")
WINE_GALLONS_PER_LITER = Decimal("0.264172")

# Physical constant: grams of dissolved CO2 per 100 mL for one volume of CO2.
CO2_GRAMS_PER_100ML_PER_VOLUME = Decimal("0.1977")

_CENTS = Decimal("0.01")
_RATE = Decimal("0.0001")
_MILLI = Decimal("0.001")


def liters_to_wine_gallons(liters: Decimal) -> Decimal:
    if liters < 0:
        return Decimal(0)
    return liters * WINE_GALLONS_PER_LITER


def wine_gallons_to_liters(gallons: Decimal) -> Decimal:
    if gallons < 0:
        return Decimal(0)
    return gallons * LITERS_PER_WINE_GALLON


def ml_to_wine_gallons(ml: Decimal) -> Decimal:
    return liters_to_wine_gallons(ml / 1000)


def to_liters(value: Decimal, unit: VolumeUnit) -> Decimal:
    if unit == VolumeUnit.LITERS:
        return value
    if unit == VolumeUnit.GALLONS:
        return value * LITERS_PER_WINE_GALLON
    if unit == VolumeUnit.MILLILITERS:
        return value / 1000
    raise ValueError(f"Unsupported volume unit {unit!r}")


def co2_volumes_to_grams_per_100ml(volumes: Decimal) -> Decimal:
    return volumes * CO2_GRAMS_PER_100ML_PER_VOLUME


def round_money(value: Decimal) -> Decimal:
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def round_rate(value: Decimal) -> Decimal:
    return value.quantize(_RATE, rounding=ROUND_HALF_UP)


def round_gallons(value: Decimal) -> Decimal:
    return value.quantize(_MILLI, rounding=ROUND_HALF_UP)
