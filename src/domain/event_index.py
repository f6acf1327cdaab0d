from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Iterable, Protocol, Sequence, TypeVar, assert_never

from .batch import BatchId
from .events import (
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

T = TypeVar("T")


def group_by(rows: Iterable[T], key: Callable[[T], BatchId]) -> dict[BatchId, list[T]]:
    grouped: dict[BatchId, list[T]] = defaultdict(list)
    for row in rows:
        grouped[key(row)].append(row)
    return dict(grouped)


@dataclass(frozen=True)
class BatchEvents:
    """All events touching a single batch, split per kind."""

    transfers_out: list[Transfer] = field(default_factory=list)
    transfers_in: list[Transfer] = field(default_factory=list)
    merges: list[Merge] = field(default_factory=list)
    bottle_runs: list[BottleRun] = field(default_factory=list)
    keg_fills: list[KegFill] = field(default_factory=list)
    adjustments: list[VolumeAdjustment] = field(default_factory=list)
    rackings: list[Racking] = field(default_factory=list)
    filters: list[Filtering] = field(default_factory=list)
    carbonations: list[Carbonation] = field(default_factory=list)
    distillations: list[Distillation] = field(default_factory=list)


@dataclass
class BatchEventIndex:
    """Events for a set of batches, grouped by batch id once per kind.

    Transfers appear twice: under their source in ``transfers_out`` and under their
    destination in ``transfers_in``.
    """

    transfers_out: dict[BatchId, list[Transfer]] = field(default_factory=dict)
    transfers_in: dict[BatchId, list[Transfer]] = field(default_factory=dict)
    merges: dict[BatchId, list[Merge]] = field(default_factory=dict)
    bottle_runs: dict[BatchId, list[BottleRun]] = field(default_factory=dict)
    keg_fills: dict[BatchId, list[KegFill]] = field(default_factory=dict)
    adjustments: dict[BatchId, list[VolumeAdjustment]] = field(default_factory=dict)
    rackings: dict[BatchId, list[Racking]] = field(default_factory=dict)
    filters: dict[BatchId, list[Filtering]] = field(default_factory=dict)
    carbonations: dict[BatchId, list[Carbonation]] = field(default_factory=dict)
    distillations: dict[BatchId, list[Distillation]] = field(default_factory=dict)

    def for_batch(self, batch_id: BatchId) -> BatchEvents:
        return BatchEvents(
            transfers_out=self.transfers_out.get(batch_id, []),
            transfers_in=self.transfers_in.get(batch_id, []),
            merges=self.merges.get(batch_id, []),
            bottle_runs=self.bottle_runs.get(batch_id, []),
            keg_fills=self.keg_fills.get(batch_id, []),
            adjustments=self.adjustments.get(batch_id, []),
            rackings=self.rackings.get(batch_id, []),
            filters=self.filters.get(batch_id, []),
            carbonations=self.carbonations.get(batch_id, []),
            distillations=self.distillations.get(batch_id, []),
        )

    @classmethod
    def from_events(cls, events: Iterable[VolumeEvent]) -> BatchEventIndex:
        transfers: list[Transfer] = []
        merges: list[Merge] = []
        bottle_runs: list[BottleRun] = []
        keg_fills: list[KegFill] = []
        adjustments: list[VolumeAdjustment] = []
        rackings: list[Racking] = []
        filters: list[Filtering] = []
        carbonations: list[Carbonation] = []
        distillations: list[Distillation] = []

        for event in events:
            if isinstance(event, Transfer):
                transfers.append(event)
            elif isinstance(event, Merge):
                merges.append(event)
            elif isinstance(event, BottleRun):
                bottle_runs.append(event)
            elif isinstance(event, KegFill):
                keg_fills.append(event)
            elif isinstance(event, VolumeAdjustment):
                adjustments.append(event)
            elif isinstance(event, Racking):
                rackings.append(event)
            elif isinstance(event, Filtering):
                filters.append(event)
            elif isinstance(event, Carbonation):
                carbonations.append(event)
            elif isinstance(event, Distillation):
                distillations.append(event)
            else:
                assert_never(event)

        return cls(
            transfers_out=group_by(transfers, lambda t: t.source_batch_id),
            transfers_in=group_by(transfers, lambda t: t.destination_batch_id),
            merges=group_by(merges, lambda m: m.target_batch_id),
            bottle_runs=group_by(bottle_runs, lambda b: b.batch_id),
            keg_fills=group_by(keg_fills, lambda k: k.batch_id),
            adjustments=group_by(adjustments, lambda a: a.batch_id),
            rackings=group_by(rackings, lambda r: r.batch_id),
            filters=group_by(filters, lambda f: f.batch_id),
            carbonations=group_by(carbonations, lambda c: c.batch_id),
            distillations=group_by(distillations, lambda d: d.source_batch_id),
        )


class EventSource(Protocol):
    """Bulk loader returning every event for the given batches in one call."""

    def load(self, batch_ids: Sequence[BatchId]) -> BatchEventIndex: ...


class InMemoryEventSource(EventSource):
    def __init__(self, events: Iterable[VolumeEvent]) -> None:
        self._index = BatchEventIndex.from_events(events)

    def load(self, batch_ids: Sequence[BatchId]) -> BatchEventIndex:
        if not batch_ids:
            return BatchEventIndex()
        wanted = set(batch_ids)

        def _subset(grouped: dict[BatchId, list[T]]) -> dict[BatchId, list[T]]:
            return {batch_id: rows for batch_id, rows in grouped.items() if batch_id in wanted}

        index = self._index
        return BatchEventIndex(
            transfers_out=_subset(index.transfers_out),
            transfers_in=_subset(index.transfers_in),
            merges=_subset(index.merges),
            bottle_runs=_subset(index.bottle_runs),
            keg_fills=_subset(index.keg_fills),
            adjustments=_subset(index.adjustments),
            rackings=_subset(index.rackings),
            filters=_subset(index.filters),
            carbonations=_subset(index.carbonations),
            distillations=_subset(index.distillations),
        )
