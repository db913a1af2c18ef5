"""
Settlement -- one signed leg of the allocation of a transaction event.

For a given event the amounts of its active legs (status other than
CANCELLED) sum exactly to the event's signed amount.  Legs are never
deleted; status transitions are the only mutation path after creation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from settlement_kernel.domain.hierarchy import MASTER_PATH, normalize_path
from settlement_kernel.domain.types import (
    EntryType,
    SettlementEntityType,
    SettlementStatus,
)
from settlement_kernel.models.transaction_event import TransactionEvent


class Settlement(TrackedBase):
    """
    Settlement leg for the merchant, one organization margin, or the
    distributor residual.

    ``entity_id`` is null only for the master leg, whose ``entity_path`` is
    the sentinel ``["master"]``.
    """

    __tablename__ = "settlements"

    __table_args__ = (
        Index("idx_settlement_event", "transaction_event_id"),
        Index("idx_settlement_status", "status"),
        Index("idx_settlement_batch", "settlement_batch_id"),
        Index("idx_settlement_entity", "entity_id"),
    )

    transaction_event_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transaction_events.id"),
        nullable=False,
    )

    transaction_id: Mapped[str] = mapped_column(String(64), nullable=False)

    merchant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("merchants.id"),
        nullable=False,
    )

    merchant_path: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    entity_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    entity_type: Mapped[SettlementEntityType] = mapped_column(String(20), nullable=False)

    entity_path: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    entry_type: Mapped[EntryType] = mapped_column(String(10), nullable=False)

    amount: Mapped[int] = mapped_column(nullable=False)

    fee_amount: Mapped[int] = mapped_column(nullable=False, default=0)

    net_amount: Mapped[int] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="KRW")

    fee_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 6), nullable=True)

    status: Mapped[SettlementStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SettlementStatus.PENDING.value,
    )

    settlement_batch_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("settlement_batches.id"),
        nullable=True,
    )

    settled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Marks the distributor (or master) leg that absorbs rounding
    is_residual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    settlement_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True
    )

    transaction_event: Mapped[TransactionEvent] = relationship()

    @property
    def is_master(self) -> bool:
        return normalize_path(self.entity_path) == list(MASTER_PATH)

    @property
    def is_active(self) -> bool:
        return self.status != SettlementStatus.CANCELLED

    @property
    def effective_fee_rate(self) -> Decimal:
        return self.fee_rate if self.fee_rate is not None else Decimal("0")

    def __repr__(self) -> str:
        return (
            f"<Settlement {self.entity_type} amount={self.amount} "
            f"status={self.status} residual={self.is_residual}>"
        )
