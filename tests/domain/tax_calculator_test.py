from __future__ import annotations

from decimal import Decimal

import pytest

from domain.events import VolumeUnit
from domain.tax_calculator import UnknownTaxClassError, compute_period_tax, compute_tax, tax_rate
from domain.tax_config import SmallProducerCredit, TaxClass, TaxClassificationConfig
from domain.units import (
    liters_to_wine_gallons,
    ml_to_wine_gallons,
    round_gallons,
    to_liters,
    wine_gallons_to_liters,
)


def test_hard_cider_with_full_credit(tax_config: TaxClassificationConfig) -> None:
    result = compute_tax(Decimal(1000), Decimal(0), tax_config)

    assert result.tax_class == TaxClass.HARD_CIDER
    assert result.gross_tax == Decimal("226.00")
    assert result.credit == Decimal("56.00")
    assert result.credit_eligible_units == Decimal(1000)
    assert result.net_tax == Decimal("170.00")
    assert result.effective_rate == Decimal("0.17")


def test_credit_is_capped_by_units_used_earlier_in_year(tax_config: TaxClassificationConfig) -> None:
    result = compute_tax(Decimal(40000), Decimal(25000), tax_config)

    assert result.credit_eligible_units == Decimal(5000)
    assert result.gross_tax == Decimal("9040.00")
    assert result.credit == Decimal("280.00")
    assert result.net_tax == Decimal("8760.00")


def test_no_credit_once_cap_is_exhausted(tax_config: TaxClassificationConfig) -> None:
    result = compute_tax(Decimal(100), Decimal(35000), tax_config)

    assert result.credit == Decimal(0)
    assert result.credit_eligible_units == Decimal(0)
    assert result.net_tax == result.gross_tax == Decimal("22.60")


def test_rate_follows_tax_class(tax_config: TaxClassificationConfig) -> None:
    result = compute_tax(Decimal(100), config=tax_config, tax_class=TaxClass.WINE_UNDER_16)

    assert result.gross_tax == Decimal("107.00")
    assert result.credit == Decimal("5.60")
    assert result.net_tax == Decimal("101.40")


def test_accepts_plain_numbers() -> None:
    assert compute_tax("1000").net_tax == Decimal("170.00")
    assert compute_tax(1000, 0, tax_class="hardCider").net_tax == Decimal("170.00")


@pytest.mark.parametrize("units", [Decimal(0), Decimal("-5")])
def test_non_positive_volume_is_all_zero(units: Decimal) -> None:
    result = compute_tax(units)

    assert result.taxable_units == Decimal(0)
    assert result.gross_tax == Decimal(0)
    assert result.credit == Decimal(0)
    assert result.net_tax == Decimal(0)
    assert result.effective_rate == Decimal(0)


def test_unknown_tax_class_is_rejected_even_at_zero_volume() -> None:
    with pytest.raises(UnknownTaxClassError) as exc_info:
        compute_tax(Decimal(0), tax_class="mead")

    assert exc_info.value.tax_class == "mead"


def test_custom_rates_and_credit_terms() -> None:
    config = TaxClassificationConfig(
        tax_rates={TaxClass.HARD_CIDER: Decimal("0.30")},
        small_producer_credit=SmallProducerCredit(credit_per_unit=Decimal("0.10"), annual_unit_cap=Decimal(500)),
    )

    result = compute_tax(Decimal(1000), Decimal(0), config)

    assert tax_rate(TaxClass.WINE_UNDER_16, config) == Decimal("1.07")
    assert result.gross_tax == Decimal("300.00")
    assert result.credit == Decimal("50.00")
    assert result.net_tax == Decimal("250.00")


def test_period_tax_uses_year_to_date_units(tax_config: TaxClassificationConfig) -> None:
    result = compute_period_tax(Decimal(1000), Decimal(29500), tax_config)

    assert result.credit_eligible_units == Decimal(500)
    assert result.credit == Decimal("28.00")


def test_volume_conversions() -> None:
    assert round_gallons(liters_to_wine_gallons(Decimal("3.78541"))) == Decimal("1.000")
    assert wine_gallons_to_liters(Decimal(10)) == Decimal("37.8541")
    assert wine_gallons_to_liters(Decimal(-1)) == Decimal(0)
    assert liters_to_wine_gallons(Decimal(-1)) == Decimal(0)
    assert ml_to_wine_gallons(Decimal(750)) == Decimal("0.198129")
    assert to_liters(Decimal(10), VolumeUnit.GALLONS) == Decimal("37.8541")
    assert to_liters(Decimal(500), VolumeUnit.MILLILITERS) == Decimal("0.5")
    assert to_liters(Decimal(12), VolumeUnit.LITERS) == Decimal(12)
