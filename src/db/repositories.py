from __future__ import annotations

from typing import Iterable, Sequence, assert_never

from sqlalchemy import select
from sqlalchemy.orm import Session

from db import models
from domain.batch import Batch, BatchId, ProductType, VesselId
from domain.events import (
    BottleRun,
    Carbonation,
    Distillation,
    Filtering,
    KegFill,
    Merge,
    Racking,
    Transfer,
    VolumeAdjustment,
    VolumeEvent,
)


class BatchRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_many(self, batches: Sequence[Batch]) -> list[Batch]:
        orm_batches = [
            models.BatchOrm(
                id=batch.id,
                product_type=batch.product_type.value if batch.product_type is not None else None,
                start_date=batch.start_date,
                initial_volume_liters=batch.initial_volume_liters,
                current_volume_liters=batch.current_volume_liters,
                parent_batch_id=batch.parent_batch_id,
                vessel_id=batch.vessel_id,
                actual_abv=batch.actual_abv,
                estimated_abv=batch.estimated_abv,
            )
            for batch in batches
        ]
        self._session.add_all(orm_batches)
        self._session.commit()
        return list(batches)

    def get(self, batch_id: BatchId) -> Batch | None:
        orm_batch = self._session.get(models.BatchOrm, batch_id)
        if orm_batch is None or orm_batch.deleted_at is not None:
            return None
        return self._to_domain(orm_batch)

    def list(self, batch_ids: Iterable[BatchId] | None = None) -> list[Batch]:
        query = select(models.BatchOrm).where(models.BatchOrm.deleted_at.is_(None)).order_by(models.BatchOrm.id)
        if batch_ids is not None:
            query = query.where(models.BatchOrm.id.in_(list(batch_ids)))
        return [self._to_domain(orm_batch) for orm_batch in self._session.scalars(query)]

    @staticmethod
    def _to_domain(orm_batch: models.BatchOrm) -> Batch:
        return Batch(
            id=BatchId(orm_batch.id),
            product_type=ProductType(orm_batch.product_type) if orm_batch.product_type else None,
            start_date=orm_batch.start_date,
            initial_volume_liters=orm_batch.initial_volume_liters,
            current_volume_liters=orm_batch.current_volume_liters,
            parent_batch_id=BatchId(orm_batch.parent_batch_id) if orm_batch.parent_batch_id else None,
            vessel_id=VesselId(orm_batch.vessel_id) if orm_batch.vessel_id else None,
            actual_abv=orm_batch.actual_abv,
            estimated_abv=orm_batch.estimated_abv,
        )


class VolumeEventRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_many(self, events: Iterable[VolumeEvent]) -> list[VolumeEvent]:
        stored = list(events)
        self._session.add_all([self._to_orm(event) for event in stored])
        self._session.commit()
        return stored

    @staticmethod
    def _to_orm(event: VolumeEvent) -> models.Base:
        if isinstance(event, Transfer):
            return models.BatchTransferOrm(
                source_batch_id=event.source_batch_id,
                destination_batch_id=event.destination_batch_id,
                volume_transferred=event.volume_transferred,
                loss=event.loss,
            )
        if isinstance(event, Merge):
            return models.BatchMergeHistoryOrm(
                target_batch_id=event.target_batch_id,
                volume_added=event.volume_added,
                volume_added_unit=event.volume_added_unit.value,
            )
        if isinstance(event, BottleRun):
            return models.BottleRunOrm(
                batch_id=event.batch_id,
                volume_taken_liters=event.volume_taken_liters,
                loss=event.loss,
                units_produced=event.units_produced,
                package_size_ml=event.package_size_ml,
            )
        if isinstance(event, KegFill):
            return models.KegFillOrm(batch_id=event.batch_id, volume_taken=event.volume_taken, loss=event.loss)
        if isinstance(event, VolumeAdjustment):
            return models.VolumeAdjustmentOrm(batch_id=event.batch_id, adjustment_amount=event.adjustment_amount)
        if isinstance(event, Racking):
            return models.RackingOperationOrm(batch_id=event.batch_id, volume_loss=event.volume_loss, notes=event.notes)
        if isinstance(event, Filtering):
            return models.FilterOperationOrm(batch_id=event.batch_id, volume_loss=event.volume_loss, notes=event.notes)
        if isinstance(event, Carbonation):
            return models.CarbonationOperationOrm(
                batch_id=event.batch_id,
                final_co2_volumes=event.final_co2_volumes,
                carbonation_process=event.carbonation_process.value if event.carbonation_process else None,
            )
        if isinstance(event, Distillation):
            return models.DistillationRecordOrm(
                source_batch_id=event.source_batch_id,
                source_volume_liters=event.source_volume_liters,
                status=event.status.value,
            )
        assert_never(event)
