from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class DecimalAsString(TypeDecorator):
    impl = String
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: object) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value: str | None, dialect: object) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    pass


class BatchOrm(Base):
    __tablename__ = "batches"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    product_type: Mapped[str | None] = mapped_column(String, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    initial_volume_liters: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    current_volume_liters: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    parent_batch_id: Mapped[str | None] = mapped_column(String, ForeignKey("batches.id"), nullable=True)
    vessel_id: Mapped[str | None] = mapped_column(String, nullable=True)
    actual_abv: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    estimated_abv: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class BatchTransferOrm(Base):
    __tablename__ = "batch_transfers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    source_batch_id: Mapped[str] = mapped_column(String, ForeignKey("batches.id"), nullable=False, index=True)
    destination_batch_id: Mapped[str] = mapped_column(String, ForeignKey("batches.id"), nullable=False, index=True)
    volume_transferred: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    loss: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class BatchMergeHistoryOrm(Base):
    __tablename__ = "batch_merge_history"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    target_batch_id: Mapped[str] = mapped_column(String, ForeignKey("batches.id"), nullable=False, index=True)
    volume_added: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    volume_added_unit: Mapped[str] = mapped_column(String, nullable=False, default="L")
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class BottleRunOrm(Base):
    __tablename__ = "bottle_runs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    batch_id: Mapped[str] = mapped_column(String, ForeignKey("batches.id"), nullable=False, index=True)
    volume_taken_liters: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    loss: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    units_produced: Mapped[int | None] = mapped_column(Integer, nullable=True)
    package_size_ml: Mapped[int | None] = mapped_column(Integer, nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class KegFillOrm(Base):
    __tablename__ = "keg_fills"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    batch_id: Mapped[str] = mapped_column(String, ForeignKey("batches.id"), nullable=False, index=True)
    volume_taken: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    loss: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class VolumeAdjustmentOrm(Base):
    __tablename__ = "batch_volume_adjustments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    batch_id: Mapped[str] = mapped_column(String, ForeignKey("batches.id"), nullable=False, index=True)
    adjustment_amount: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class RackingOperationOrm(Base):
    __tablename__ = "batch_racking_operations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    batch_id: Mapped[str] = mapped_column(String, ForeignKey("batches.id"), nullable=False, index=True)
    volume_loss: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class FilterOperationOrm(Base):
    __tablename__ = "batch_filter_operations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    batch_id: Mapped[str] = mapped_column(String, ForeignKey("batches.id"), nullable=False, index=True)
    volume_loss: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class CarbonationOperationOrm(Base):
    __tablename__ = "batch_carbonation_operations"

    # Sequential so that the latest reading can be found by insertion order.
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    batch_id: Mapped[str] = mapped_column(String, ForeignKey("batches.id"), nullable=False, index=True)
    final_co2_volumes: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    carbonation_process: Mapped[str | None] = mapped_column(String, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class DistillationRecordOrm(Base):
    __tablename__ = "distillation_records"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    source_batch_id: Mapped[str] = mapped_column(String, ForeignKey("batches.id"), nullable=False, index=True)
    source_volume_liters: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
