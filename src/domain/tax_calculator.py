from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel

from .tax_config import DEFAULT_TAX_CONFIG, TaxClass, TaxClassificationConfig
from .units import round_gallons, round_money, round_rate

Number = Decimal | int | str


class UnknownTaxClassError(LookupError):
    def __init__(self, tax_class: object) -> None:
        self.tax_class = tax_class
        super().__init__(f"No tax rate configured for tax class {tax_class!r}")


class TaxComputation(BaseModel):
    tax_class: TaxClass
    taxable_units: Decimal
    gross_tax: Decimal
    credit: Decimal
    credit_eligible_units: Decimal
    net_tax: Decimal
    effective_rate: Decimal


def _as_decimal(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def tax_rate(tax_class: TaxClass | str, config: TaxClassificationConfig | None = None) -> Decimal:
    config = config or DEFAULT_TAX_CONFIG
    try:
        resolved = TaxClass(tax_class)
    except ValueError as err:
        raise UnknownTaxClassError(tax_class) from err
    rate = config.tax_rates.get(resolved)
    if rate is None:
        raise UnknownTaxClassError(tax_class)
    return rate


def compute_tax(
    taxable_units: Number,
    prior_year_units_used: Number = Decimal(0),
    config: TaxClassificationConfig | None = None,
    *,
    tax_class: TaxClass | str = TaxClass.HARD_CIDER,
) -> TaxComputation:
    """Compute gross tax, small producer credit and net tax owed.

    The credit covers at most ``annual_unit_cap`` units per calendar year;
    ``prior_year_units_used`` is what earlier removals in the same year already
    consumed. Non-positive volumes produce an all-zero result.
    """
    config = config or DEFAULT_TAX_CONFIG
    rate = tax_rate(tax_class, config)
    resolved_class = TaxClass(tax_class)
    units = _as_decimal(taxable_units)
    prior_used = _as_decimal(prior_year_units_used)

    if units <= 0:
        zero = Decimal(0)
        return TaxComputation(
            tax_class=resolved_class,
            taxable_units=round_gallons(zero),
            gross_tax=round_money(zero),
            credit=round_money(zero),
            credit_eligible_units=round_gallons(zero),
            net_tax=round_money(zero),
            effective_rate=round_rate(zero),
        )

    credit_terms = config.small_producer_credit
    gross_tax = units * rate
    remaining_credit_units = max(Decimal(0), credit_terms.annual_unit_cap - prior_used)
    credit_eligible_units = min(units, remaining_credit_units)
    credit = credit_eligible_units * credit_terms.credit_per_unit
    net_tax = gross_tax - credit

    return TaxComputation(
        tax_class=resolved_class,
        taxable_units=round_gallons(units),
        gross_tax=round_money(gross_tax),
        credit=round_money(credit),
        credit_eligible_units=round_gallons(credit_eligible_units),
        net_tax=round_money(net_tax),
        effective_rate=round_rate(net_tax / units),
    )


def compute_period_tax(
    tax_paid_removals: Number,
    ytd_taxable_units: Number = Decimal(0),
    config: TaxClassificationConfig | None = None,
    *,
    tax_class: TaxClass | str = TaxClass.HARD_CIDER,
) -> TaxComputation:
    """Tax for one reporting period, given the units already removed earlier in the year."""
    return compute_tax(tax_paid_removals, ytd_taxable_units, config, tax_class=tax_class)
