"""Merchant -- leaf of the distribution tree that receives the main leg."""

from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import TrackedBase, UUIDString
from settlement_kernel.domain.fee_schedule import FeeSchedule
from settlement_kernel.domain.types import MerchantStatus, SettlementCycle
from settlement_kernel.models.organization import Organization


class Merchant(TrackedBase):
    """
    Merchant attached to exactly one organization.

    ``org_path`` is a copy of the owning organization's path and is rewritten
    whenever that organization moves.  ``fee_config`` is optional: when it
    has no rate for a payment method the organization's map is used for the
    merchant leg.
    """

    __tablename__ = "merchants"

    __table_args__ = (
        UniqueConstraint("merchant_code", name="uq_merchant_code"),
        Index("idx_merchant_org", "org_id"),
        Index("idx_merchant_cycle", "settlement_cycle"),
    )

    merchant_code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    org_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("organizations.id"),
        nullable=False,
    )

    org_path: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    fee_config: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    settlement_cycle: Mapped[SettlementCycle] = mapped_column(
        String(20),
        nullable=False,
        default=SettlementCycle.D_PLUS_1.value,
    )

    status: Mapped[MerchantStatus] = mapped_column(
        String(20),
        nullable=False,
        default=MerchantStatus.ACTIVE.value,
    )

    organization: Mapped[Organization] = relationship(lazy="joined")

    @property
    def fee_schedule(self) -> FeeSchedule:
        return FeeSchedule.from_mapping(self.fee_config, validate_range=False)

    def set_fee_schedule(self, raw: dict[str, Any] | FeeSchedule | None) -> FeeSchedule:
        """Validate and store a fee configuration.

        Raises:
            InvalidFeeRateError: a rate is malformed or outside [0, 1].
        """
        schedule = raw if isinstance(raw, FeeSchedule) else FeeSchedule.from_mapping(raw)
        self.fee_config = schedule.to_json() if schedule else None
        return schedule

    @property
    def cycle(self) -> SettlementCycle:
        return SettlementCycle(self.settlement_cycle)

    def __repr__(self) -> str:
        return f"<Merchant {self.merchant_code} cycle={self.settlement_cycle}>"
