"""Volume-affecting events recorded against batches.

Every event is a frozen pydantic model tagged by ``kind``; :data:`VolumeEvent`
is the closed union of all of them. Consumers that dispatch on the union must
handle every member (see :meth:`domain.event_index.BatchEventIndex.from_events`).
"""

from __future__ import annotations

from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .batch import BatchId

HISTORICAL_RECORD_MARKER = "Historical Record"


class VolumeUnit(StrEnum):
    LITERS = "L"
    GALLONS = "gal"
    MILLILITERS = "mL"


class CarbonationProcess(StrEnum):
    HEADSPACE = "headspace"
    INLINE = "inline"
    STONE = "stone"
    BOTTLE_CONDITIONING = "bottle_conditioning"


class DistillationStatus(StrEnum):
    PENDING = "pending"
    SENT = "sent"
    RECEIVED = "received"
    CANCELLED = "cancelled"


# Statuses that mean the liquid has left the cidery for good.
DEPARTED_DISTILLATION_STATUSES = frozenset({DistillationStatus.SENT, DistillationStatus.RECEIVED})


def _check_non_negative(model: BaseModel, *field_names: str) -> None:
    for name in field_names:
        value: Decimal | None = getattr(model, name)
        if value is None:
            continue
        if value.is_nan() or value < 0:
            raise ValueError(f"{type(model).__name__}.{name} must be a non-negative number, got {value}")


class _EventBase(BaseModel):
    model_config = ConfigDict(frozen=True)


class Transfer(_EventBase):
    kind: Literal["transfer"] = "transfer"
    source_batch_id: BatchId
    destination_batch_id: BatchId
    volume_transferred: Decimal | None = None
    loss: Decimal | None = None

    @model_validator(mode="after")
    def _validate_volumes(self) -> Transfer:
        _check_non_negative(self, "volume_transferred", "loss")
        return self

    @property
    def is_self_transfer(self) -> bool:
        return self.source_batch_id == self.destination_batch_id


class Merge(_EventBase):
    """Liquid blended into an existing batch after it was created (press run, juice purchase)."""

    kind: Literal["merge"] = "merge"
    target_batch_id: BatchId
    volume_added: Decimal | None = None
    volume_added_unit: VolumeUnit = VolumeUnit.LITERS

    @model_validator(mode="after")
    def _validate_volumes(self) -> Merge:
        _check_non_negative(self, "volume_added")
        return self


class BottleRun(_EventBase):
    kind: Literal["bottle_run"] = "bottle_run"
    batch_id: BatchId
    volume_taken_liters: Decimal | None = None
    loss: Decimal | None = None
    units_produced: int | None = None
    package_size_ml: int | None = None

    @model_validator(mode="after")
    def _validate_volumes(self) -> BottleRun:
        _check_non_negative(self, "volume_taken_liters", "loss")
        if self.units_produced is not None and self.units_produced < 0:
            raise ValueError("BottleRun.units_produced must be >= 0")
        if self.package_size_ml is not None and self.package_size_ml < 0:
            raise ValueError("BottleRun.package_size_ml must be >= 0")
        return self


class KegFill(_EventBase):
    kind: Literal["keg_fill"] = "keg_fill"
    batch_id: BatchId
    volume_taken: Decimal | None = None
    loss: Decimal | None = None

    @model_validator(mode="after")
    def _validate_volumes(self) -> KegFill:
        _check_non_negative(self, "volume_taken", "loss")
        return self


class VolumeAdjustment(_EventBase):
    """Manual correction; positive amounts add volume, negative amounts remove it."""

    kind: Literal["volume_adjustment"] = "volume_adjustment"
    batch_id: BatchId
    adjustment_amount: Decimal | None = None

    @model_validator(mode="after")
    def _validate_amount(self) -> VolumeAdjustment:
        if self.adjustment_amount is not None and self.adjustment_amount.is_nan():
            raise ValueError("VolumeAdjustment.adjustment_amount must be a number")
        return self


class Racking(_EventBase):
    kind: Literal["racking"] = "racking"
    batch_id: BatchId
    volume_loss: Decimal | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def _validate_volumes(self) -> Racking:
        _check_non_negative(self, "volume_loss")
        return self

    @property
    def is_historical(self) -> bool:
        return self.notes is not None and HISTORICAL_RECORD_MARKER in self.notes


class Filtering(_EventBase):
    kind: Literal["filter"] = "filter"
    batch_id: BatchId
    volume_loss: Decimal | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def _validate_volumes(self) -> Filtering:
        _check_non_negative(self, "volume_loss")
        return self

    @property
    def is_historical(self) -> bool:
        return self.notes is not None and HISTORICAL_RECORD_MARKER in self.notes


class Carbonation(_EventBase):
    kind: Literal["carbonation"] = "carbonation"
    batch_id: BatchId
    final_co2_volumes: Decimal | None = None
    carbonation_process: CarbonationProcess | None = None

    @model_validator(mode="after")
    def _validate_volumes(self) -> Carbonation:
        _check_non_negative(self, "final_co2_volumes")
        return self


class Distillation(_EventBase):
    kind: Literal["distillation"] = "distillation"
    source_batch_id: BatchId
    source_volume_liters: Decimal | None = None
    status: DistillationStatus = DistillationStatus.PENDING

    @model_validator(mode="after")
    def _validate_volumes(self) -> Distillation:
        _check_non_negative(self, "source_volume_liters")
        return self

    @property
    def has_departed(self) -> bool:
        return self.status in DEPARTED_DISTILLATION_STATUSES


VolumeEvent = Annotated[
    Union[Transfer, Merge, BottleRun, KegFill, VolumeAdjustment, Racking, Filtering, Carbonation, Distillation],
    Field(discriminator="kind"),
]
