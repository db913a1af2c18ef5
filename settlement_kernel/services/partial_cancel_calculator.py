"""
PartialCancelCalculator -- proportional reversal of an approval.

Each active leg of the original approval is reversed by
``floor(|leg| * ratio)`` where ``ratio = |cancel| / |approval|`` (ten
decimal places, half-up).  Flooring leaves a shortfall of at most one unit
per leg; the residual leg absorbs it so the reversal totals the cancel
amount exactly.
"""

from sqlalchemy import select

from settlement_kernel.db.types import floor_minor_units, ratio_of
from settlement_kernel.domain.hierarchy import MASTER_PATH, normalize_path, path_ids
from settlement_kernel.domain.types import (
    EntryType,
    OrganizationType,
    SettlementEntityType,
    SettlementStatus,
)
from settlement_kernel.exceptions import OriginalSettlementNotFoundError, ZeroSumViolationError
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.organization import Organization
from settlement_kernel.models.settlement import Settlement
from settlement_kernel.models.transaction_event import TransactionEvent
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.fee_calculation_service import (
    ROLE_RESIDUAL,
    build_settlement,
)

logger = get_logger("services.partial_cancel")


class PartialCancelCalculator(BaseService):

    def calculate_proportional(
        self,
        cancel_event: TransactionEvent,
        approval_event: TransactionEvent,
    ) -> list[Settlement]:
        """
        Unsaved DEBIT legs reversing ``cancel_event``'s share of the approval.

        Raises:
            OriginalSettlementNotFoundError: the approval has no active legs.
            ZeroSumViolationError: the adjusted legs still miss the cancel
                amount.
        """
        originals = self._active_settlements(approval_event)
        if not originals:
            raise OriginalSettlementNotFoundError(cancel_event.transaction_id, cancel_event.id)

        ratio = ratio_of(cancel_event.amount, approval_event.amount)
        logger.info(
            "partial_cancel_ratio_computed",
            extra={
                "transaction_event_id": str(cancel_event.id),
                "approval_event_id": str(approval_event.id),
                "ratio": str(ratio),
                "original_leg_count": len(originals),
            },
        )

        reversals: list[Settlement] = []
        residual_leg: Settlement | None = None
        for original in originals:
            reversal = build_settlement(
                cancel_event,
                entity_id=original.entity_id,
                entity_type=SettlementEntityType(original.entity_type),
                entity_path=original.entity_path,
                entry_type=EntryType.DEBIT,
                amount=-floor_minor_units(abs(original.amount) * ratio),
                fee_amount=-floor_minor_units(abs(original.fee_amount) * ratio),
                fee_rate=original.fee_rate,
                actor_id=self.actor_id,
                is_residual=original.is_residual,
                role=(original.settlement_metadata or {}).get("role", "reversal"),
                extra={"reverses_settlement_id": str(original.id)},
            )
            reversals.append(reversal)
            if original.is_residual and residual_leg is None:
                residual_leg = reversal

        difference = cancel_event.amount - sum(s.amount for s in reversals)
        if difference != 0:
            if residual_leg is None:
                residual_leg = self._new_residual_leg(cancel_event, approval_event, originals)
                reversals.append(residual_leg)
            previous = residual_leg.amount
            residual_leg.amount = previous + difference
            residual_leg.net_amount = residual_leg.amount
            logger.info(
                "rounding_difference_adjusted",
                extra={
                    "transaction_event_id": str(cancel_event.id),
                    "difference": difference,
                    "residual_before": previous,
                    "residual_after": residual_leg.amount,
                },
            )

        total = sum(s.amount for s in reversals)
        if total != cancel_event.amount:
            raise ZeroSumViolationError(cancel_event.id, cancel_event.amount, total)
        return reversals

    def _active_settlements(self, approval_event: TransactionEvent) -> list[Settlement]:
        return list(
            self.session.scalars(
                select(Settlement)
                .where(
                    Settlement.transaction_event_id == approval_event.id,
                    Settlement.status != SettlementStatus.CANCELLED.value,
                )
                .order_by(Settlement.is_residual, Settlement.created_at)
            ).all()
        )

    def _new_residual_leg(
        self,
        cancel_event: TransactionEvent,
        approval_event: TransactionEvent,
        originals: list[Settlement],
    ) -> Settlement:
        """Zero-amount residual leg for the distributor on the approval's path, else master."""
        owner = next(
            (s for s in originals if s.entity_type == SettlementEntityType.DISTRIBUTOR.value),
            None,
        )
        if owner is not None:
            entity_id, entity_path, fee_rate = owner.entity_id, owner.entity_path, owner.fee_rate
        else:
            distributor = self.session.scalars(
                select(Organization).where(
                    Organization.id.in_(path_ids(approval_event.org_path)),
                    Organization.org_type == OrganizationType.DISTRIBUTOR.value,
                )
            ).first()
            entity_id = distributor.id if distributor else None
            entity_path = distributor.path if distributor else MASTER_PATH
            fee_rate = None
        return build_settlement(
            cancel_event,
            entity_id=entity_id,
            entity_type=SettlementEntityType.DISTRIBUTOR,
            entity_path=normalize_path(entity_path),
            entry_type=EntryType.DEBIT,
            amount=0,
            fee_amount=0,
            fee_rate=fee_rate,
            actor_id=self.actor_id,
            is_residual=True,
            role=ROLE_RESIDUAL,
        )
