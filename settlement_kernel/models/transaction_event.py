"""
TransactionEvent -- one approval or cancellation received from the gateway.

Immutable once created and the sole input to settlement.  ``amount`` is
signed: positive for APPROVAL, negative for CANCEL and PARTIAL_CANCEL.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from settlement_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from settlement_kernel.db.types import validate_currency
from settlement_kernel.domain.types import EventType


class TransactionEvent(TrackedBase):
    __tablename__ = "transaction_events"

    __table_args__ = (
        UniqueConstraint(
            "transaction_id", "event_sequence", name="uq_transaction_event_sequence"
        ),
        Index("idx_transaction_event_transaction", "transaction_id"),
        Index("idx_transaction_event_merchant", "merchant_id"),
        Index("idx_transaction_event_occurred", "occurred_at"),
    )

    event_type: Mapped[EventType] = mapped_column(String(20), nullable=False)

    # Order of events within one transaction; the approval is 1
    event_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    transaction_id: Mapped[str] = mapped_column(String(64), nullable=False)

    merchant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("merchants.id"),
        nullable=False,
    )

    merchant_path: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    org_path: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    payment_method_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payment_methods.id"),
        nullable=False,
    )

    card_company_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    amount: Mapped[int] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="KRW")

    pg_transaction_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    approval_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    @validates("currency")
    def _validate_currency(self, key: str, value: str) -> str:
        return validate_currency(value)

    @property
    def type(self) -> EventType:
        return EventType(self.event_type)

    @property
    def is_credit(self) -> bool:
        return self.amount > 0

    def __repr__(self) -> str:
        return (
            f"<TransactionEvent {self.event_type} tx={self.transaction_id} "
            f"seq={self.event_sequence} amount={self.amount}>"
        )
