from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from db import models
from db.repositories import BatchRepository, VolumeEventRepository
from domain.batch import BatchId, ProductType
from domain.events import (
    BottleRun,
    Carbonation,
    CarbonationProcess,
    Distillation,
    DistillationStatus,
    Merge,
    Transfer,
    VolumeUnit,
)
from tests.helpers.builders import make_batch


@pytest.fixture()
def batch_repo(test_session: Session) -> BatchRepository:
    return BatchRepository(test_session)


@pytest.fixture()
def event_repo(test_session: Session) -> VolumeEventRepository:
    return VolumeEventRepository(test_session)


def test_create_and_get_batch(batch_repo: BatchRepository) -> None:
    batch = make_batch(
        batch_id="b-1",
        product_type=ProductType.PERRY,
        start_date=date(2024, 10, 2),
        initial="812.5",
        current="790.25",
        actual_abv=None,
        estimated_abv="5.8",
    )

    batch_repo.create_many([batch])
    loaded = batch_repo.get(BatchId("b-1"))

    assert loaded == batch
    assert loaded is not None and loaded.abv == Decimal("5.8")


def test_get_missing_batch_returns_none(batch_repo: BatchRepository) -> None:
    assert batch_repo.get(BatchId("nope")) is None


def test_soft_deleted_batches_are_hidden(batch_repo: BatchRepository, test_session: Session) -> None:
    batch_repo.create_many([make_batch(batch_id="b-1"), make_batch(batch_id="b-2")])
    orm_batch = test_session.get(models.BatchOrm, "b-2")
    assert orm_batch is not None
    orm_batch.deleted_at = datetime(2024, 11, 1, tzinfo=timezone.utc)
    test_session.commit()

    assert batch_repo.get(BatchId("b-2")) is None
    assert [batch.id for batch in batch_repo.list()] == ["b-1"]


def test_list_filters_by_ids_in_id_order(batch_repo: BatchRepository) -> None:
    batch_repo.create_many([make_batch(batch_id=batch_id) for batch_id in ("b-3", "b-1", "b-2")])

    assert [batch.id for batch in batch_repo.list()] == ["b-1", "b-2", "b-3"]
    assert [batch.id for batch in batch_repo.list([BatchId("b-3"), BatchId("b-1")])] == ["b-1", "b-3"]


def test_batch_without_optional_fields_round_trips(batch_repo: BatchRepository) -> None:
    batch = make_batch(
        batch_id="bare",
        product_type=None,
        start_date=None,
        initial=None,
        current=None,
        vessel_id=None,
        actual_abv=None,
    )

    batch_repo.create_many([batch])

    assert batch_repo.get(BatchId("bare")) == batch


def test_events_are_stored_in_their_tables(
    batch_repo: BatchRepository, event_repo: VolumeEventRepository, test_session: Session
) -> None:
    batch_repo.create_many([make_batch(batch_id="a"), make_batch(batch_id="b")])
    event_repo.create_many(
        [
            Transfer(
                source_batch_id=BatchId("a"),
                destination_batch_id=BatchId("b"),
                volume_transferred=Decimal("100.5"),
                loss=Decimal("0.5"),
            ),
            Merge(target_batch_id=BatchId("a"), volume_added=Decimal(10), volume_added_unit=VolumeUnit.GALLONS),
            BottleRun(batch_id=BatchId("b"), volume_taken_liters=Decimal(75), units_produced=100, package_size_ml=750),
            Carbonation(
                batch_id=BatchId("b"),
                final_co2_volumes=Decimal("2.6"),
                carbonation_process=CarbonationProcess.STONE,
            ),
            Distillation(
                source_batch_id=BatchId("a"),
                source_volume_liters=Decimal(40),
                status=DistillationStatus.SENT,
            ),
        ]
    )

    transfer = test_session.scalars(select(models.BatchTransferOrm)).one()
    merge = test_session.scalars(select(models.BatchMergeHistoryOrm)).one()
    run = test_session.scalars(select(models.BottleRunOrm)).one()
    carbonation = test_session.scalars(select(models.CarbonationOperationOrm)).one()
    distillation = test_session.scalars(select(models.DistillationRecordOrm)).one()

    assert transfer.volume_transferred == Decimal("100.5")
    assert merge.volume_added_unit == "gal"
    assert run.units_produced == 100
    assert carbonation.carbonation_process == "stone"
    assert distillation.status == "sent"
