from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from enum import StrEnum
from typing import Any, Callable, Mapping, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from db import models
from domain.batch import BatchId
from domain.event_index import BatchEventIndex, EventSource, group_by
from domain.events import (
    BottleRun,
    Carbonation,
    CarbonationProcess,
    Distillation,
    DistillationStatus,
    Filtering,
    KegFill,
    Merge,
    Racking,
    Transfer,
    VolumeAdjustment,
    VolumeUnit,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=StrEnum)

_VOLUME_UNIT_ALIASES: Mapping[str, VolumeUnit] = {
    "l": VolumeUnit.LITERS,
    "liter": VolumeUnit.LITERS,
    "liters": VolumeUnit.LITERS,
    "litre": VolumeUnit.LITERS,
    "litres": VolumeUnit.LITERS,
    "gallon": VolumeUnit.GALLONS,
    "gallons": VolumeUnit.GALLONS,
    "ml": VolumeUnit.MILLILITERS,
    "milliliter": VolumeUnit.MILLILITERS,
    "milliliters": VolumeUnit.MILLILITERS,
    "millilitre": VolumeUnit.MILLILITERS,
    "millilitres": VolumeUnit.MILLILITERS,
}


class EventLoadTimeout(TimeoutError):
    def __init__(self, *, timeout: float, pending: Sequence[str]) -> None:
        self.timeout = timeout
        self.pending = list(pending)
        super().__init__(f"Event load exceeded {timeout}s; still waiting on: {', '.join(self.pending)}")


def _decode(
    enum_type: type[E],
    raw: str | None,
    *,
    column: str,
    default: E | None,
    aliases: Mapping[str, E] | None = None,
) -> E | None:
    """Map a free-form storage value onto ``enum_type``; unknown values log a warning and use ``default``."""
    if raw is None or not raw.strip():
        return default
    value = raw.strip()
    for candidate in (value, value.lower()):
        try:
            return enum_type(candidate)
        except ValueError:
            continue
    if aliases and value.lower() in aliases:
        return aliases[value.lower()]
    logger.warning("Unrecognized %s value %r; treating it as %s", column, raw, default)
    return default


def _transfer(row: models.BatchTransferOrm) -> Transfer:
    return Transfer(
        source_batch_id=BatchId(row.source_batch_id),
        destination_batch_id=BatchId(row.destination_batch_id),
        volume_transferred=row.volume_transferred,
        loss=row.loss,
    )


def _fetch_transfers_out(session: Session, batch_ids: list[BatchId]) -> dict[BatchId, list[Transfer]]:
    orm = models.BatchTransferOrm
    rows = session.scalars(
        select(orm).where(
            orm.source_batch_id.in_(batch_ids),
            orm.source_batch_id != orm.destination_batch_id,
            orm.deleted_at.is_(None),
        )
    )
    return group_by((_transfer(row) for row in rows), lambda t: t.source_batch_id)


def _fetch_transfers_in(session: Session, batch_ids: list[BatchId]) -> dict[BatchId, list[Transfer]]:
    orm = models.BatchTransferOrm
    rows = session.scalars(
        select(orm).where(
            orm.destination_batch_id.in_(batch_ids),
            orm.source_batch_id != orm.destination_batch_id,
            orm.deleted_at.is_(None),
        )
    )
    return group_by((_transfer(row) for row in rows), lambda t: t.destination_batch_id)


def _fetch_merges(session: Session, batch_ids: list[BatchId]) -> dict[BatchId, list[Merge]]:
    orm = models.BatchMergeHistoryOrm
    rows = session.scalars(select(orm).where(orm.target_batch_id.in_(batch_ids), orm.deleted_at.is_(None)))
    merges = (
        Merge(
            target_batch_id=BatchId(row.target_batch_id),
            volume_added=row.volume_added,
            volume_added_unit=_decode(
                VolumeUnit,
                row.volume_added_unit,
                column="batch_merge_history.volume_added_unit",
                default=VolumeUnit.LITERS,
                aliases=_VOLUME_UNIT_ALIASES,
            ),
        )
        for row in rows
    )
    return group_by(merges, lambda m: m.target_batch_id)


def _fetch_bottle_runs(session: Session, batch_ids: list[BatchId]) -> dict[BatchId, list[BottleRun]]:
    orm = models.BottleRunOrm
    rows = session.scalars(select(orm).where(orm.batch_id.in_(batch_ids), orm.voided_at.is_(None)))
    runs = (
        BottleRun(
            batch_id=BatchId(row.batch_id),
            volume_taken_liters=row.volume_taken_liters,
            loss=row.loss,
            units_produced=row.units_produced,
            package_size_ml=row.package_size_ml,
        )
        for row in rows
    )
    return group_by(runs, lambda b: b.batch_id)


def _fetch_keg_fills(session: Session, batch_ids: list[BatchId]) -> dict[BatchId, list[KegFill]]:
    orm = models.KegFillOrm
    rows = session.scalars(
        select(orm).where(orm.batch_id.in_(batch_ids), orm.voided_at.is_(None), orm.deleted_at.is_(None))
    )
    fills = (KegFill(batch_id=BatchId(row.batch_id), volume_taken=row.volume_taken, loss=row.loss) for row in rows)
    return group_by(fills, lambda k: k.batch_id)


def _fetch_adjustments(session: Session, batch_ids: list[BatchId]) -> dict[BatchId, list[VolumeAdjustment]]:
    orm = models.VolumeAdjustmentOrm
    rows = session.scalars(select(orm).where(orm.batch_id.in_(batch_ids), orm.deleted_at.is_(None)))
    adjustments = (
        VolumeAdjustment(batch_id=BatchId(row.batch_id), adjustment_amount=row.adjustment_amount) for row in rows
    )
    return group_by(adjustments, lambda a: a.batch_id)


def _fetch_rackings(session: Session, batch_ids: list[BatchId]) -> dict[BatchId, list[Racking]]:
    orm = models.RackingOperationOrm
    rows = session.scalars(select(orm).where(orm.batch_id.in_(batch_ids), orm.deleted_at.is_(None)))
    rackings = (Racking(batch_id=BatchId(row.batch_id), volume_loss=row.volume_loss, notes=row.notes) for row in rows)
    return group_by(rackings, lambda r: r.batch_id)


def _fetch_filters(session: Session, batch_ids: list[BatchId]) -> dict[BatchId, list[Filtering]]:
    orm = models.FilterOperationOrm
    rows = session.scalars(select(orm).where(orm.batch_id.in_(batch_ids), orm.deleted_at.is_(None)))
    filters = (Filtering(batch_id=BatchId(row.batch_id), volume_loss=row.volume_loss, notes=row.notes) for row in rows)
    return group_by(filters, lambda f: f.batch_id)


def _fetch_carbonations(session: Session, batch_ids: list[BatchId]) -> dict[BatchId, list[Carbonation]]:
    orm = models.CarbonationOperationOrm
    rows = session.scalars(
        select(orm).where(orm.batch_id.in_(batch_ids), orm.deleted_at.is_(None)).order_by(orm.id)
    )
    carbonations = (
        Carbonation(
            batch_id=BatchId(row.batch_id),
            final_co2_volumes=row.final_co2_volumes,
            carbonation_process=_decode(
                CarbonationProcess,
                row.carbonation_process,
                column="batch_carbonation_operations.carbonation_process",
                default=None,
            ),
        )
        for row in rows
    )
    return group_by(carbonations, lambda c: c.batch_id)


def _fetch_distillations(session: Session, batch_ids: list[BatchId]) -> dict[BatchId, list[Distillation]]:
    orm = models.DistillationRecordOrm
    rows = session.scalars(select(orm).where(orm.source_batch_id.in_(batch_ids), orm.deleted_at.is_(None)))
    distillations = (
        Distillation(
            source_batch_id=BatchId(row.source_batch_id),
            source_volume_liters=row.source_volume_liters,
            status=_decode(
                DistillationStatus,
                row.status,
                column="distillation_records.status",
                default=DistillationStatus.PENDING,
            ),
        )
        for row in rows
    )
    return group_by(distillations, lambda d: d.source_batch_id)


# Keys match the BatchEventIndex fields they populate.
_FETCHERS: dict[str, Callable[[Session, list[BatchId]], dict[BatchId, list[Any]]]] = {
    "transfers_out": _fetch_transfers_out,
    "transfers_in": _fetch_transfers_in,
    "merges": _fetch_merges,
    "bottle_runs": _fetch_bottle_runs,
    "keg_fills": _fetch_keg_fills,
    "adjustments": _fetch_adjustments,
    "rackings": _fetch_rackings,
    "filters": _fetch_filters,
    "carbonations": _fetch_carbonations,
    "distillations": _fetch_distillations,
}


class SqlBulkEventLoader(EventSource):
    """Load every event collection for a set of batches with one concurrent fan-out.

    Each collection is read in its own session on a worker thread. Soft-deleted and
    voided rows, as well as self-transfers, never leave this loader.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        max_workers: int = 4,
        timeout: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._max_workers = max_workers
        self._timeout = timeout

    def load(self, batch_ids: Sequence[BatchId], *, timeout: float | None = None) -> BatchEventIndex:
        """Fetch every collection for ``batch_ids``; ``timeout`` overrides the loader default."""
        if not batch_ids:
            return BatchEventIndex()

        timeout = timeout if timeout is not None else self._timeout
        ids = list(dict.fromkeys(batch_ids))
        logger.debug("Loading %d event collections for %d batches", len(_FETCHERS), len(ids))

        executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="event-loader")
        try:
            futures = {name: executor.submit(self._run, fetch, ids) for name, fetch in _FETCHERS.items()}
            _, pending = wait(futures.values(), timeout=timeout)
            if pending:
                pending_names = [name for name, future in futures.items() if future in pending]
                logger.warning(
                    "Event load timed out after %ss for %d batches; abandoning collections: %s",
                    timeout,
                    len(ids),
                    ", ".join(pending_names),
                )
                raise EventLoadTimeout(timeout=timeout or 0.0, pending=pending_names)
            collections = {name: future.result() for name, future in futures.items()}
        finally:
            # Stuck queries cannot be interrupted; their threads finish and close their sessions on their own.
            executor.shutdown(wait=False, cancel_futures=True)

        return BatchEventIndex(**collections)

    def _run(
        self,
        fetch: Callable[[Session, list[BatchId]], dict[BatchId, list[Any]]],
        batch_ids: list[BatchId],
    ) -> dict[BatchId, list[Any]]:
        with self._session_factory() as session:
            return fetch(session, batch_ids)
