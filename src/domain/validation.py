from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import Iterable, Sequence

from pydantic import BaseModel

from .batch import Batch, BatchId
from .event_index import BatchEvents, EventSource
from .events import BottleRun, Carbonation
from .units import to_liters

logger = logging.getLogger(__name__)

# Operators record bottling loss both inside and outside "volume taken". When the
# taken volume is within this many liters of product + loss, the loss is treated
# as already included.
BOTTLING_LOSS_INCLUSION_TOLERANCE_LITERS = Decimal(2)

VOLUME_TOLERANCE_FRACTION = Decimal("0.05")
MIN_VOLUME_TOLERANCE_LITERS = Decimal("2.0")


class VolumeContractError(ValueError):
    """A negative or NaN volume reached the balance arithmetic."""


class ValidationStatus(StrEnum):
    PASS = "pass"
    WARNING = "warning"
    FAIL = "fail"


class ValidationCheck(BaseModel):
    id: str
    status: ValidationStatus
    message: str
    details: str | None = None
    link: str | None = None


class BatchValidation(BaseModel):
    status: ValidationStatus
    checks: list[ValidationCheck]


def _volume(value: Decimal | None, *, label: str) -> Decimal:
    if value is None:
        return Decimal(0)
    if value.is_nan() or value < 0:
        raise VolumeContractError(f"{label} must be a non-negative volume, got {value}")
    return value


def _signed(value: Decimal | None, *, label: str) -> Decimal:
    if value is None:
        return Decimal(0)
    if value.is_nan():
        raise VolumeContractError(f"{label} must be a number, got {value}")
    return value


def _total(values: Iterable[Decimal]) -> Decimal:
    return sum(values, start=Decimal(0))


def bottling_loss_included(run: BottleRun) -> bool:
    """Return True when the run's loss is already part of its volume taken."""
    volume_taken = _volume(run.volume_taken_liters, label="bottle run volume taken")
    loss = _volume(run.loss, label="bottle run loss")
    product_volume = Decimal((run.units_produced or 0) * (run.package_size_ml or 0)) / 1000
    return abs(volume_taken - (product_volume + loss)) < BOTTLING_LOSS_INCLUSION_TOLERANCE_LITERS


@dataclass(frozen=True)
class VolumeBalance:
    effective_initial: Decimal
    transfers_in: Decimal
    transfers_out: Decimal
    transfer_losses: Decimal
    merge_volume: Decimal
    bottled_volume: Decimal
    bottled_loss: Decimal
    kegged_volume: Decimal
    kegged_loss: Decimal
    distilled_volume: Decimal
    adjustments: Decimal
    racking_losses: Decimal
    filter_losses: Decimal
    actual: Decimal

    @property
    def expected(self) -> Decimal:
        return (
            self.effective_initial
            + self.transfers_in
            + self.merge_volume
            - self.transfers_out
            - self.transfer_losses
            - self.bottled_volume
            - self.bottled_loss
            - self.kegged_volume
            - self.kegged_loss
            - self.distilled_volume
            + self.adjustments
            - self.racking_losses
            - self.filter_losses
        )

    @property
    def discrepancy(self) -> Decimal:
        return self.actual - self.expected

    @property
    def base_volume(self) -> Decimal:
        return max(self.effective_initial + self.merge_volume, self.transfers_in)

    @property
    def tolerance(self) -> Decimal:
        return max(self.base_volume * VOLUME_TOLERANCE_FRACTION, MIN_VOLUME_TOLERANCE_LITERS)

    @property
    def status(self) -> ValidationStatus:
        deviation = abs(self.discrepancy)
        if deviation <= self.tolerance:
            return ValidationStatus.PASS
        if deviation > self.tolerance * 2:
            return ValidationStatus.FAIL
        return ValidationStatus.WARNING

    def describe(self) -> str:
        discrepancy = self.discrepancy
        sign = "+" if discrepancy > 0 else ""
        percent = ""
        if self.base_volume > 0:
            percent = f" / {abs(discrepancy) / self.base_volume * 100:.1f}%"
        return (
            f"expected {self.expected:.1f}L, actual {self.actual:.1f}L "
            f"({sign}{discrepancy:.1f}L{percent})"
        )


def compute_volume_balance(batch: Batch, events: BatchEvents) -> VolumeBalance:
    transfers_out = [t for t in events.transfers_out if not t.is_self_transfer]
    transfers_in = [t for t in events.transfers_in if not t.is_self_transfer]

    transfers_in_volume = _total(_volume(t.volume_transferred, label="transfer volume") for t in transfers_in)

    bottled_loss = Decimal(0)
    for run in events.bottle_runs:
        if not bottling_loss_included(run):
            bottled_loss += _volume(run.loss, label="bottle run loss")

    # Parent-linked batches that received a transfer got all their starting liquid from it.
    if batch.parent_batch_id is not None and transfers_in_volume > 0:
        effective_initial = Decimal(0)
    else:
        effective_initial = _volume(batch.initial_volume_liters, label="initial volume")

    return VolumeBalance(
        effective_initial=effective_initial,
        transfers_in=transfers_in_volume,
        transfers_out=_total(_volume(t.volume_transferred, label="transfer volume") for t in transfers_out),
        transfer_losses=_total(_volume(t.loss, label="transfer loss") for t in transfers_out),
        merge_volume=_total(
            to_liters(_volume(m.volume_added, label="merge volume"), m.volume_added_unit) for m in events.merges
        ),
        bottled_volume=_total(_volume(b.volume_taken_liters, label="bottle run volume taken") for b in events.bottle_runs),
        bottled_loss=bottled_loss,
        kegged_volume=_total(_volume(k.volume_taken, label="keg fill volume taken") for k in events.keg_fills),
        kegged_loss=_total(_volume(k.loss, label="keg fill loss") for k in events.keg_fills),
        distilled_volume=_total(
            _volume(d.source_volume_liters, label="distillation volume") for d in events.distillations if d.has_departed
        ),
        adjustments=_total(_signed(a.adjustment_amount, label="adjustment amount") for a in events.adjustments),
        racking_losses=_total(
            _volume(r.volume_loss, label="racking loss") for r in events.rackings if not r.is_historical
        ),
        filter_losses=_total(
            _volume(f.volume_loss, label="filter loss") for f in events.filters if not f.is_historical
        ),
        actual=_volume(batch.current_volume_liters, label="current volume"),
    )


def check_required_fields(batch: Batch) -> ValidationCheck:
    issues: list[str] = []
    if batch.product_type is None:
        issues.append("Product type not set")
    if batch.start_date is None:
        issues.append("Start date not set")
    if batch.is_root and _volume(batch.initial_volume_liters, label="initial volume") <= 0:
        issues.append("Initial volume is 0 for a root batch")

    if issues:
        return ValidationCheck(
            id="required_fields",
            status=ValidationStatus.FAIL,
            message="Missing required fields",
            details="; ".join(issues),
            link=f"/batch/{batch.id}",
        )
    return ValidationCheck(id="required_fields", status=ValidationStatus.PASS, message="All required fields set")


def check_volume_balance(batch: Batch, events: BatchEvents) -> ValidationCheck:
    balance = compute_volume_balance(batch, events)
    status = balance.status
    tolerance = f"Tolerance {balance.tolerance:.1f}L"

    if status == ValidationStatus.PASS:
        return ValidationCheck(
            id="volume_balance",
            status=status,
            message="Volume balanced within tolerance",
            details=f"{balance.describe()}; {tolerance}",
        )
    return ValidationCheck(
        id="volume_balance",
        status=status,
        message=f"Volume discrepancy detected: {balance.describe()}",
        details=f"{tolerance}, fail above {balance.tolerance * 2:.1f}L",
        link=f"/batch/{batch.id}?tab=volume-trace",
    )


def check_classification_data(batch: Batch, carbonations: Sequence[Carbonation]) -> ValidationCheck:
    issues: list[str] = []
    if batch.abv is None:
        issues.append("No ABV recorded (needed for tax class)")

    if carbonations and not any(c.final_co2_volumes is not None for c in carbonations):
        issues.append("Carbonation operations exist but no final CO2 volumes recorded")

    if issues:
        tab = "carbonations" if carbonations else "measurements"
        return ValidationCheck(
            id="classification_data",
            status=ValidationStatus.WARNING,
            message="Missing classification data",
            details="; ".join(issues),
            link=f"/batch/{batch.id}?tab={tab}",
        )
    return ValidationCheck(
        id="classification_data", status=ValidationStatus.PASS, message="Classification data complete"
    )


def check_active_volume(batch: Batch, events: BatchEvents) -> ValidationCheck:
    current = _volume(batch.current_volume_liters, label="current volume")

    if current > 0 and batch.vessel_id is None:
        return ValidationCheck(
            id="active_volume",
            status=ValidationStatus.WARNING,
            message="Volume exists but no vessel assigned",
            details=f"{current:.1f}L remaining with no vessel",
            link=f"/batch/{batch.id}",
        )

    if current == 0 and _volume(batch.initial_volume_liters, label="initial volume") > 0:
        consumed = (
            _total(
                _volume(t.volume_transferred, label="transfer volume")
                for t in events.transfers_out
                if not t.is_self_transfer
            )
            + _total(_volume(b.volume_taken_liters, label="bottle run volume taken") for b in events.bottle_runs)
            + _total(_volume(k.volume_taken, label="keg fill volume taken") for k in events.keg_fills)
            + _total(
                _volume(d.source_volume_liters, label="distillation volume")
                for d in events.distillations
                if d.has_departed
            )
        )
        if consumed == 0:
            return ValidationCheck(
                id="active_volume",
                status=ValidationStatus.WARNING,
                message="Volume zeroed without tracked consumption",
                details="Batch has 0L but no packaging, transfers, or distillation recorded",
                link=f"/batch/{batch.id}?tab=volume-trace",
            )

    return ValidationCheck(id="active_volume", status=ValidationStatus.PASS, message="Volume state valid")


def check_date_sanity(batch: Batch, reference_year: int) -> ValidationCheck:
    if batch.start_date is None:
        # Reported by required_fields.
        return ValidationCheck(
            id="date_sanity", status=ValidationStatus.PASS, message="Date check deferred to required fields"
        )

    batch_year = batch.start_date.year
    if batch_year > reference_year:
        return ValidationCheck(
            id="date_sanity",
            status=ValidationStatus.WARNING,
            message="Start date is in a future year",
            details=f"Batch started in {batch_year}, viewing year {reference_year}",
            link=f"/batch/{batch.id}",
        )
    if batch_year < reference_year:
        return ValidationCheck(
            id="date_sanity", status=ValidationStatus.PASS, message="Carried forward from prior year"
        )
    return ValidationCheck(id="date_sanity", status=ValidationStatus.PASS, message="Date within year")


def overall_status(checks: Sequence[ValidationCheck]) -> ValidationStatus:
    if any(check.status == ValidationStatus.FAIL for check in checks):
        return ValidationStatus.FAIL
    if any(check.status == ValidationStatus.WARNING for check in checks):
        return ValidationStatus.WARNING
    return ValidationStatus.PASS


def validate_batch(batch: Batch, events: BatchEvents, reference_year: int) -> BatchValidation:
    checks = [
        check_required_fields(batch),
        check_volume_balance(batch, events),
        check_classification_data(batch, events.carbonations),
        check_active_volume(batch, events),
        check_date_sanity(batch, reference_year),
    ]
    return BatchValidation(status=overall_status(checks), checks=checks)


class BatchValidator:
    """Run every batch check against events fetched in a single bulk load."""

    def __init__(self, *, event_source: EventSource) -> None:
        self._event_source = event_source

    def validate(self, batches: Sequence[Batch], reference_year: int) -> dict[BatchId, BatchValidation]:
        index = self._event_source.load([batch.id for batch in batches])

        results: dict[BatchId, BatchValidation] = {}
        for batch in batches:
            validation = validate_batch(batch, index.for_batch(batch.id), reference_year)
            if validation.status != ValidationStatus.PASS:
                logger.debug("Batch %s validated with status %s", batch.id, validation.status)
            results[batch.id] = validation

        failed = sum(1 for v in results.values() if v.status == ValidationStatus.FAIL)
        warned = sum(1 for v in results.values() if v.status == ValidationStatus.WARNING)
        logger.info(
            "Validated %d batches for %d: %d failed, %d with warnings", len(results), reference_year, failed, warned
        )
        return results
