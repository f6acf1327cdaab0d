from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import StrEnum
from typing import NewType

from pydantic import BaseModel, ConfigDict

BatchId = NewType("BatchId", str)
VesselId = NewType("VesselId", str)


class ProductType(StrEnum):
    CIDER = "cider"
    PERRY = "perry"
    POMMEAU = "pommeau"
    BRANDY = "brandy"
    JUICE = "juice"
    OTHER = "other"


class Batch(BaseModel):
    """Snapshot of a production batch as recorded by the storage layer.

    Volumes are liters. ``parent_batch_id`` is set when the batch was created by a
    transfer out of another batch rather than from raw material.
    """

    model_config = ConfigDict(frozen=True)

    id: BatchId
    product_type: ProductType | None = None
    start_date: date | None = None
    initial_volume_liters: Decimal | None = None
    current_volume_liters: Decimal | None = None
    parent_batch_id: BatchId | None = None
    vessel_id: VesselId | None = None
    actual_abv: Decimal | None = None
    estimated_abv: Decimal | None = None

    @property
    def is_root(self) -> bool:
        return self.parent_batch_id is None

    @property
    def abv(self) -> Decimal | None:
        if self.actual_abv is not None:
            return self.actual_abv
        return self.estimated_abv
