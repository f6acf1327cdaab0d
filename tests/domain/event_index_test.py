from __future__ import annotations

from decimal import Decimal

from domain.batch import BatchId
from domain.event_index import BatchEventIndex, BatchEvents, InMemoryEventSource
from domain.events import BottleRun, Carbonation, Distillation, KegFill, Merge, Racking, Transfer

A = BatchId("batch-a")
B = BatchId("batch-b")
C = BatchId("batch-c")

EVENTS = [
    Transfer(source_batch_id=A, destination_batch_id=B, volume_transferred=Decimal(100), loss=Decimal(1)),
    Merge(target_batch_id=A, volume_added=Decimal(20)),
    BottleRun(batch_id=B, volume_taken_liters=Decimal(50)),
    KegFill(batch_id=B, volume_taken=Decimal(19)),
    Racking(batch_id=A, volume_loss=Decimal(3)),
    Carbonation(batch_id=B, final_co2_volumes=Decimal("2.4")),
    Distillation(source_batch_id=C, source_volume_liters=Decimal(200)),
]


def test_from_events_groups_each_kind_by_batch() -> None:
    index = BatchEventIndex.from_events(EVENTS)

    assert [t.destination_batch_id for t in index.transfers_out[A]] == [B]
    assert [t.source_batch_id for t in index.transfers_in[B]] == [A]
    assert A not in index.transfers_in
    assert len(index.merges[A]) == 1
    assert len(index.bottle_runs[B]) == 1
    assert len(index.keg_fills[B]) == 1
    assert len(index.rackings[A]) == 1
    assert len(index.carbonations[B]) == 1
    assert len(index.distillations[C]) == 1


def test_for_batch_returns_empty_lists_for_unknown_batch() -> None:
    index = BatchEventIndex.from_events(EVENTS)

    assert index.for_batch(BatchId("missing")) == BatchEvents()


def test_for_batch_collects_events_of_one_batch() -> None:
    events = BatchEventIndex.from_events(EVENTS).for_batch(B)

    assert len(events.transfers_in) == 1
    assert events.transfers_out == []
    assert len(events.bottle_runs) == 1
    assert len(events.keg_fills) == 1
    assert events.merges == []


def test_in_memory_source_returns_only_requested_batches() -> None:
    source = InMemoryEventSource(EVENTS)

    index = source.load([B])

    assert set(index.transfers_in) == {B}
    assert index.transfers_out == {}
    assert index.merges == {}
    assert index.distillations == {}
    assert len(index.bottle_runs[B]) == 1


def test_in_memory_source_empty_request_returns_empty_index() -> None:
    assert InMemoryEventSource(EVENTS).load([]) == BatchEventIndex()
