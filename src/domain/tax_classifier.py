"""Regulatory tax class resolution.

Rules are evaluated top to bottom and the first one that applies wins. The
order follows the regulation: spirits and non-taxable juice first, then the
low-tax hard cider category, then effervescent wine, then still wine by ABV.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Sequence

from pydantic import BaseModel, ConfigDict

from .batch import Batch, BatchId, ProductType
from .event_index import EventSource
from .events import Carbonation, CarbonationProcess
from .tax_config import DEFAULT_TAX_CONFIG, TaxClass, TaxClassificationConfig
from .units import co2_volumes_to_grams_per_100ml

logger = logging.getLogger(__name__)

_FRUIT_BY_PRODUCT_TYPE = {
    ProductType.CIDER: "apple",
    ProductType.PERRY: "pear",
}

_TAX_CLASS_BY_PRODUCT_TYPE: dict[ProductType, TaxClass | None] = {
    ProductType.CIDER: TaxClass.HARD_CIDER,
    ProductType.PERRY: TaxClass.HARD_CIDER,
    ProductType.POMMEAU: TaxClass.WINE_16_TO_21,
    ProductType.BRANDY: TaxClass.APPLE_BRANDY,
    ProductType.JUICE: None,
    ProductType.OTHER: TaxClass.HARD_CIDER,
}


def product_type_to_tax_class(product_type: ProductType | str | None) -> TaxClass | None:
    """Map a product type straight to a tax class; unknown types are taxed as hard cider."""
    if product_type is None:
        return TaxClass.HARD_CIDER
    try:
        resolved = ProductType(product_type)
    except ValueError:
        return TaxClass.HARD_CIDER
    return _TAX_CLASS_BY_PRODUCT_TYPE[resolved]


class ClassificationInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_type: ProductType | None = None
    abv: Decimal | None = None
    co2_volumes: Decimal | None = None
    carbonation_process: CarbonationProcess | None = None
    fruit_source: str | None = None

    @property
    def resolved_fruit_source(self) -> str | None:
        if self.fruit_source is not None:
            return self.fruit_source.lower()
        if self.product_type is None:
            return None
        return _FRUIT_BY_PRODUCT_TYPE.get(self.product_type)

    @property
    def co2_grams_per_100ml(self) -> Decimal:
        # Unmeasured CO2 is treated as still product.
        if self.co2_volumes is None:
            return Decimal(0)
        return co2_volumes_to_grams_per_100ml(self.co2_volumes)


def _fruit_eligible(data: ClassificationInput, config: TaxClassificationConfig) -> bool:
    if data.product_type not in _FRUIT_BY_PRODUCT_TYPE:
        return False
    allowed = {fruit.lower() for fruit in config.thresholds.hard_cider.allowed_fruit_sources}
    return data.resolved_fruit_source in allowed


def _within_hard_cider_co2(data: ClassificationInput, config: TaxClassificationConfig) -> bool:
    return data.co2_grams_per_100ml <= config.thresholds.hard_cider.max_co2_grams_per_100ml


def _effervescent(data: ClassificationInput, config: TaxClassificationConfig) -> bool:
    return data.co2_grams_per_100ml > config.thresholds.still_wine_max_co2_grams_per_100ml


def _abv(data: ClassificationInput) -> Decimal:
    return data.abv if data.abv is not None else Decimal(0)


def _hard_cider_abv(data: ClassificationInput, config: TaxClassificationConfig) -> bool:
    thresholds = config.thresholds.hard_cider
    return thresholds.min_abv <= _abv(data) <= thresholds.max_abv


Predicate = Callable[[ClassificationInput, TaxClassificationConfig], bool]
Resolver = Callable[[ClassificationInput, TaxClassificationConfig], TaxClass | None]


@dataclass(frozen=True)
class TaxRule:
    name: str
    applies: Predicate
    resolve: Resolver


def _always(tax_class: TaxClass | None) -> Resolver:
    return lambda data, config: tax_class


TAX_RULES: Sequence[TaxRule] = (
    TaxRule(
        name="brandy_is_spirits",
        applies=lambda data, config: data.product_type == ProductType.BRANDY,
        resolve=_always(TaxClass.APPLE_BRANDY),
    ),
    TaxRule(
        name="juice_is_not_taxable",
        applies=lambda data, config: data.product_type == ProductType.JUICE,
        resolve=_always(None),
    ),
    TaxRule(
        name="unmeasured_abv_hard_cider",
        applies=lambda data, config: (
            data.abv is None and _fruit_eligible(data, config) and _within_hard_cider_co2(data, config)
        ),
        resolve=_always(TaxClass.HARD_CIDER),
    ),
    TaxRule(
        name="unmeasured_abv_fortified",
        applies=lambda data, config: data.abv is None and data.product_type == ProductType.POMMEAU,
        resolve=_always(TaxClass.WINE_16_TO_21),
    ),
    TaxRule(
        name="hard_cider",
        applies=lambda data, config: (
            _fruit_eligible(data, config) and _hard_cider_abv(data, config) and _within_hard_cider_co2(data, config)
        ),
        resolve=_always(TaxClass.HARD_CIDER),
    ),
    TaxRule(
        name="naturally_sparkling",
        applies=lambda data, config: (
            _effervescent(data, config) and data.carbonation_process == CarbonationProcess.BOTTLE_CONDITIONING
        ),
        resolve=_always(TaxClass.SPARKLING_WINE),
    ),
    TaxRule(
        name="artificially_carbonated",
        applies=_effervescent,
        resolve=_always(TaxClass.CARBONATED_WINE),
    ),
    TaxRule(
        name="still_wine_under_16",
        applies=lambda data, config: _abv(data) <= config.thresholds.abv_brackets.under16_max_abv,
        resolve=_always(TaxClass.WINE_UNDER_16),
    ),
    TaxRule(
        name="still_wine_16_to_21",
        applies=lambda data, config: _abv(data) <= config.thresholds.abv_brackets.mid_range_max_abv,
        resolve=_always(TaxClass.WINE_16_TO_21),
    ),
    TaxRule(
        name="still_wine_21_to_24",
        applies=lambda data, config: _abv(data) <= config.thresholds.abv_brackets.upper_max_abv,
        resolve=_always(TaxClass.WINE_21_TO_24),
    ),
    TaxRule(
        name="product_type_fallback",
        applies=lambda data, config: True,
        resolve=lambda data, config: product_type_to_tax_class(data.product_type),
    ),
)


def matching_rule(data: ClassificationInput, config: TaxClassificationConfig | None = None) -> TaxRule:
    config = config or DEFAULT_TAX_CONFIG
    for rule in TAX_RULES:
        if rule.applies(data, config):
            return rule
    raise AssertionError("product_type_fallback always applies")


def classify(data: ClassificationInput, config: TaxClassificationConfig | None = None) -> TaxClass | None:
    """Return the tax class for ``data``; ``None`` means not taxable (juice)."""
    config = config or DEFAULT_TAX_CONFIG
    return matching_rule(data, config).resolve(data, config)


def classification_input_for(
    batch: Batch, carbonations: Sequence[Carbonation] = (), *, fruit_source: str | None = None
) -> ClassificationInput:
    measured = [c for c in carbonations if c.final_co2_volumes is not None]
    latest = measured[-1] if measured else (carbonations[-1] if carbonations else None)
    return ClassificationInput(
        product_type=batch.product_type,
        abv=batch.abv,
        co2_volumes=latest.final_co2_volumes if latest is not None else None,
        carbonation_process=latest.carbonation_process if latest is not None else None,
        fruit_source=fruit_source,
    )


class BatchClassification(BaseModel):
    batch_id: BatchId
    classification_input: ClassificationInput
    rule: str
    tax_class: TaxClass | None


class BatchClassifier:
    """Classify stored batches using their carbonation records from one bulk load."""

    def __init__(self, *, event_source: EventSource, config: TaxClassificationConfig | None = None) -> None:
        self._event_source = event_source
        self._config = config or DEFAULT_TAX_CONFIG

    def classify(self, batches: Sequence[Batch]) -> dict[BatchId, BatchClassification]:
        index = self._event_source.load([batch.id for batch in batches])

        results: dict[BatchId, BatchClassification] = {}
        for batch in batches:
            data = classification_input_for(batch, index.for_batch(batch.id).carbonations)
            rule = matching_rule(data, self._config)
            results[batch.id] = BatchClassification(
                batch_id=batch.id,
                classification_input=data,
                rule=rule.name,
                tax_class=rule.resolve(data, self._config),
            )
            logger.debug("Batch %s matched rule %s", batch.id, rule.name)

        logger.info("Classified %d batches", len(results))
        return results
