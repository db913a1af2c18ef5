"""
SettlementBatch -- the dated group of legs paid out together for one cycle.

UNIQUE(settlement_date, cycle) makes a second batch for the same date and
cycle impossible even when two schedulers race past the existence check.
"""

from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Date, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import TrackedBase, UTCDateTime
from settlement_kernel.domain.types import SettlementBatchStatus, SettlementCycle
from settlement_kernel.models.settlement import Settlement


class SettlementBatch(TrackedBase):
    __tablename__ = "settlement_batches"

    __table_args__ = (
        UniqueConstraint("batch_number", name="uq_settlement_batch_number"),
        UniqueConstraint("settlement_date", "cycle", name="uq_settlement_batch_date_cycle"),
        Index("idx_settlement_batch_date", "settlement_date"),
    )

    # BATCH-{D1|D3|RT}-{yyyymmdd}-{seq:03d}
    batch_number: Mapped[str] = mapped_column(String(50), nullable=False)

    cycle: Mapped[SettlementCycle] = mapped_column(String(20), nullable=False)

    settlement_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Half-open [period_start, period_end) in UTC
    period_start: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    period_end: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    status: Mapped[SettlementBatchStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SettlementBatchStatus.PROCESSING.value,
    )

    total_transactions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    total_amount: Mapped[int] = mapped_column(nullable=False, default=0)

    total_fee_amount: Mapped[int] = mapped_column(nullable=False, default=0)

    processed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    batch_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True
    )

    settlements: Mapped[list[Settlement]] = relationship(viewonly=True)

    def __repr__(self) -> str:
        return f"<SettlementBatch {self.batch_number} {self.status}>"
