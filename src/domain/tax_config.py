"""Tax classification settings.

A :class:`TaxClassificationConfig` is supplied per organization and passed
explicitly to the classifier and the calculator. :data:`DEFAULT_TAX_CONFIG`
holds the federal defaults used when an organization has not configured its own.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from enum import StrEnum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


class TaxClass(StrEnum):
    HARD_CIDER = "hardCider"
    WINE_UNDER_16 = "wineUnder16"
    WINE_16_TO_21 = "wine16To21"
    WINE_21_TO_24 = "wine21To24"
    SPARKLING_WINE = "sparklingWine"
    CARBONATED_WINE = "carbonatedWine"
    APPLE_BRANDY = "appleBrandy"
    GRAPE_SPIRITS = "grapeSpirits"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class HardCiderThresholds(_Frozen):
    min_abv: Decimal = Decimal("0.5")
    max_abv: Decimal = Decimal("8.5")
    max_co2_grams_per_100ml: Decimal = Decimal("0.64")
    allowed_fruit_sources: tuple[str, ...] = ("apple", "pear")

    @model_validator(mode="after")
    def _validate_bounds(self) -> HardCiderThresholds:
        if self.min_abv > self.max_abv:
            raise ValueError("hard cider min_abv must not exceed max_abv")
        return self


class AbvBrackets(_Frozen):
    under16_max_abv: Decimal = Decimal(16)
    mid_range_max_abv: Decimal = Decimal(21)
    upper_max_abv: Decimal = Decimal(24)

    @model_validator(mode="after")
    def _validate_order(self) -> AbvBrackets:
        if not self.under16_max_abv <= self.mid_range_max_abv <= self.upper_max_abv:
            raise ValueError("ABV bracket ceilings must be ascending")
        return self


class ClassificationThresholds(_Frozen):
    hard_cider: HardCiderThresholds = Field(default_factory=HardCiderThresholds)
    still_wine_max_co2_grams_per_100ml: Decimal = Decimal("0.392")
    abv_brackets: AbvBrackets = Field(default_factory=AbvBrackets)


class SmallProducerCredit(_Frozen):
    credit_per_unit: Decimal = Decimal("0.056")
    annual_unit_cap: Decimal = Decimal(30000)


def _default_tax_rates() -> Mapping[TaxClass, Decimal]:
    return {
        TaxClass.HARD_CIDER: Decimal("0.226"),
        TaxClass.WINE_UNDER_16: Decimal("1.07"),
        TaxClass.WINE_16_TO_21: Decimal("1.57"),
        TaxClass.WINE_21_TO_24: Decimal("3.15"),
        TaxClass.SPARKLING_WINE: Decimal("3.40"),
        TaxClass.CARBONATED_WINE: Decimal("3.30"),
        TaxClass.APPLE_BRANDY: Decimal("13.50"),
        TaxClass.GRAPE_SPIRITS: Decimal("13.50"),
    }


class TaxClassificationConfig(_Frozen):
    thresholds: ClassificationThresholds = Field(default_factory=ClassificationThresholds)
    tax_rates: Mapping[TaxClass, Decimal] = Field(default_factory=_default_tax_rates, validate_default=True)
    small_producer_credit: SmallProducerCredit = Field(default_factory=SmallProducerCredit)

    @field_validator("tax_rates", mode="after")
    @classmethod
    def _merge_default_rates(cls, value: Mapping[TaxClass, Decimal]) -> Mapping[TaxClass, Decimal]:
        # A partial rate table only overrides the classes it names.
        return MappingProxyType({**_default_tax_rates(), **value})

    @model_validator(mode="after")
    def _validate_rates(self) -> TaxClassificationConfig:
        for tax_class, rate in self.tax_rates.items():
            if rate < 0:
                raise ValueError(f"tax rate for {tax_class} must be >= 0")
        return self


DEFAULT_TAX_CONFIG = TaxClassificationConfig()


def load_tax_config(path: Path | None) -> TaxClassificationConfig:
    """Read an organization's config from JSON, or fall back to the defaults."""
    if path is None:
        return DEFAULT_TAX_CONFIG
    logger.info("Loading tax classification config from %s", path)
    return TaxClassificationConfig.model_validate_json(path.read_text(encoding="utf-8"))
