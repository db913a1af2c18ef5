"""
HierarchyService -- provisioning that keeps materialized paths consistent.

Every write here preserves:
    - a node's path is its parent's path plus its own id;
    - level == len(path);
    - a merchant's org_path equals its organization's path.
"""

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select

from settlement_kernel.domain.fee_schedule import FeeSchedule
from settlement_kernel.domain.hierarchy import child_path, is_descendant, rebase_path
from settlement_kernel.domain.types import (
    MerchantStatus,
    OrganizationStatus,
    OrganizationType,
    SettlementCycle,
)
from settlement_kernel.exceptions import HierarchyCycleError, OrganizationNotFoundError
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.merchant import Merchant
from settlement_kernel.models.organization import Organization
from settlement_kernel.services.base import BaseService

logger = get_logger("services.hierarchy")


class HierarchyService(BaseService):

    def create_organization(
        self,
        org_code: str,
        name: str,
        org_type: OrganizationType,
        parent: Organization | None = None,
        fee_config: dict[str, Any] | FeeSchedule | None = None,
    ) -> Organization:
        """
        Create a root (no parent) or child organization.

        Raises:
            InvalidFeeRateError: fee_config is malformed or out of range.
        """
        org_id = uuid4()
        path = child_path(parent.path if parent else None, org_id)
        org = Organization(
            id=org_id,
            org_code=org_code,
            name=name,
            org_type=OrganizationType(org_type).value,
            parent_id=parent.id if parent else None,
            path=path,
            level=len(path),
            status=OrganizationStatus.ACTIVE.value,
            created_by_id=self.actor_id,
        )
        org.set_fee_schedule(fee_config)
        self.session.add(org)
        self.session.flush()

        logger.info(
            "organization_created",
            extra={
                "organization_id": str(org.id),
                "org_code": org_code,
                "org_type": org.org_type,
                "level": org.level,
            },
        )
        return org

    def create_merchant(
        self,
        merchant_code: str,
        name: str,
        organization: Organization,
        settlement_cycle: SettlementCycle = SettlementCycle.D_PLUS_1,
        fee_config: dict[str, Any] | FeeSchedule | None = None,
    ) -> Merchant:
        merchant = Merchant(
            merchant_code=merchant_code,
            name=name,
            org_id=organization.id,
            org_path=list(organization.path),
            settlement_cycle=SettlementCycle(settlement_cycle).value,
            status=MerchantStatus.ACTIVE.value,
            created_by_id=self.actor_id,
        )
        merchant.organization = organization
        merchant.set_fee_schedule(fee_config)
        self.session.add(merchant)
        self.session.flush()

        logger.info(
            "merchant_created",
            extra={
                "merchant_id": str(merchant.id),
                "merchant_code": merchant_code,
                "organization_id": str(organization.id),
                "settlement_cycle": merchant.settlement_cycle,
            },
        )
        return merchant

    def move_organization(self, org: Organization, new_parent: Organization | None) -> Organization:
        """
        Re-parent ``org`` and rewrite the paths of its whole subtree and of
        every merchant attached to it.

        Raises:
            HierarchyCycleError: ``new_parent`` is ``org`` or lies beneath it.
        """
        if new_parent is not None and is_descendant(new_parent.path, org.path):
            raise HierarchyCycleError(org.id, new_parent.id)

        old_path = list(org.path)
        new_path = child_path(new_parent.path if new_parent else None, org.id)

        subtree = self._subtree(old_path)
        for node in subtree:
            rebased = rebase_path(node.path, old_path, new_path)
            node.path = rebased
            node.level = len(rebased)
            node.updated_by_id = self.actor_id
        org.parent_id = new_parent.id if new_parent else None

        subtree_ids = [node.id for node in subtree]
        merchants = self.session.scalars(
            select(Merchant).where(Merchant.org_id.in_(subtree_ids))
        ).all()
        paths_by_org = {node.id: node.path for node in subtree}
        for merchant in merchants:
            merchant.org_path = list(paths_by_org[merchant.org_id])
            merchant.updated_by_id = self.actor_id

        self.session.flush()
        logger.info(
            "organization_moved",
            extra={
                "organization_id": str(org.id),
                "new_parent_id": str(new_parent.id) if new_parent else None,
                "subtree_size": len(subtree),
                "merchant_count": len(merchants),
            },
        )
        return org

    def disable_organization(self, organization_id: UUID) -> Organization:
        """
        Raises:
            OrganizationNotFoundError: no such organization.
        """
        org = self.session.get(Organization, organization_id)
        if org is None:
            raise OrganizationNotFoundError(organization_id)
        if org.status != OrganizationStatus.DISABLED:
            org.status = OrganizationStatus.DISABLED.value
            org.disabled_at = self.clock.now_utc()
            org.updated_by_id = self.actor_id
            self.session.flush()
            logger.info("organization_disabled", extra={"organization_id": str(org.id)})
        return org

    def _subtree(self, root_path: list[str]) -> list[Organization]:
        """Root and all descendants, filtered in Python on the id list."""
        # JSON path prefixes are not portable across backends; narrow by
        # level first and compare element-wise.
        candidates = self.session.scalars(
            select(Organization).where(Organization.level >= len(root_path))
        ).all()
        return [org for org in candidates if is_descendant(org.path, root_path)]
