"""
Organization -- one node of the distribution tree.

The tree is stored as a materialized path: ``path`` lists the ids from the
root distributor down to this node and ``level == len(path)``.  Nodes are
never deleted; they are disabled.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from settlement_kernel.domain.fee_schedule import FeeSchedule
from settlement_kernel.domain.hierarchy import is_descendant, normalize_path
from settlement_kernel.domain.types import OrganizationStatus, OrganizationType


class Organization(TrackedBase):
    """
    Distributor, agency, dealer, seller or vendor.

    Guarantees:
        - ``path[-1] == str(id)`` and ``path[:-1]`` is the parent's path.
        - ``fee_config`` only ever holds values accepted by
          ``FeeSchedule.from_mapping`` when written via set_fee_schedule().
    """

    __tablename__ = "organizations"

    __table_args__ = (
        UniqueConstraint("org_code", name="uq_organization_code"),
        Index("idx_organization_parent", "parent_id"),
        Index("idx_organization_type", "org_type"),
    )

    org_code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    org_type: Mapped[OrganizationType] = mapped_column(String(20), nullable=False)

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("organizations.id"),
        nullable=True,
    )

    # Root-to-self list of id strings
    path: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    status: Mapped[OrganizationStatus] = mapped_column(
        String(20),
        nullable=False,
        default=OrganizationStatus.ACTIVE.value,
    )

    disabled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # payment-method code -> decimal string, optional "default" key
    fee_config: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

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
    def path_ids(self) -> list[str]:
        return normalize_path(self.path)

    @property
    def is_active(self) -> bool:
        return self.status == OrganizationStatus.ACTIVE

    @property
    def is_distributor(self) -> bool:
        return self.org_type == OrganizationType.DISTRIBUTOR

    def is_descendant_of(self, other: "Organization") -> bool:
        """True when this node is ``other`` or lies beneath it."""
        return is_descendant(self.path, other.path)

    def __repr__(self) -> str:
        return f"<Organization {self.org_code} {self.org_type} level={self.level}>"
