"""OrganizationSelector -- read access to the distribution tree."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from settlement_kernel.domain.hierarchy import (
    PathLike,
    is_descendant,
    is_strict_descendant,
    path_ids,
)
from settlement_kernel.domain.types import OrganizationStatus, OrganizationType
from settlement_kernel.models.merchant import Merchant
from settlement_kernel.models.organization import Organization
from settlement_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class OrganizationDTO:
    organization_id: UUID
    org_code: str
    name: str
    org_type: OrganizationType
    parent_id: UUID | None
    path: tuple[str, ...]
    level: int
    status: OrganizationStatus
    disabled_at: datetime | None


@dataclass(frozen=True)
class MerchantDTO:
    merchant_id: UUID
    merchant_code: str
    name: str
    org_id: UUID
    org_path: tuple[str, ...]
    settlement_cycle: str
    status: str


class OrganizationSelector(BaseSelector):

    def get(self, organization_id: UUID) -> OrganizationDTO | None:
        org = self.session.get(Organization, organization_id)
        return self._to_dto(org) if org is not None else None

    def ancestors_of(self, path: PathLike) -> list[OrganizationDTO]:
        """Every organization on ``path`` (the node itself included), root first."""
        ids = path_ids(path)
        if not ids:
            return []
        rows = self.session.scalars(
            select(Organization).where(Organization.id.in_(ids)).order_by(Organization.level)
        ).all()
        return [self._to_dto(org) for org in rows]

    def descendants_of(self, organization_id: UUID) -> list[OrganizationDTO]:
        """Strict descendants of the organization, shallowest first."""
        root = self.session.get(Organization, organization_id)
        if root is None:
            return []
        rows = self.session.scalars(
            select(Organization)
            .where(Organization.level > root.level)
            .order_by(Organization.level, Organization.org_code)
        ).all()
        return [self._to_dto(org) for org in rows if is_strict_descendant(org.path, root.path)]

    def merchants_under(self, organization_id: UUID) -> list[MerchantDTO]:
        """Merchants attached to the organization or any of its descendants."""
        root = self.session.get(Organization, organization_id)
        if root is None:
            return []
        rows = self.session.scalars(select(Merchant).order_by(Merchant.merchant_code)).all()
        return [
            MerchantDTO(
                merchant_id=m.id,
                merchant_code=m.merchant_code,
                name=m.name,
                org_id=m.org_id,
                org_path=tuple(m.org_path),
                settlement_cycle=m.settlement_cycle,
                status=m.status,
            )
            for m in rows
            if is_descendant(m.org_path, root.path)
        ]

    @staticmethod
    def _to_dto(org: Organization) -> OrganizationDTO:
        return OrganizationDTO(
            organization_id=org.id,
            org_code=org.org_code,
            name=org.name,
            org_type=OrganizationType(org.org_type),
            parent_id=org.parent_id,
            path=tuple(org.path),
            level=org.level,
            status=OrganizationStatus(org.status),
            disabled_at=org.disabled_at,
        )
