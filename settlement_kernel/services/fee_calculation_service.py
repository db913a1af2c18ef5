"""
FeeCalculationService -- allocate an APPROVAL or CANCEL across the tree.

Allocation for an event of absolute amount A and sign s:

    merchant leg      s * (A - floor(A * r_m))        fee s * floor(A * r_m)
    margin legs       s * floor(A * (r_prev - r_org))  nearest org first,
                      only when the margin is positive
    residual leg      s * (A - sum of the above)       distributor, or the
                      ["master"] sentinel when the chain has no distributor

The distributor never takes a margin leg; it owns the residual, so the legs
always sum to the event amount whatever the configured rates are.
"""

from collections.abc import Sequence
from decimal import Decimal

from sqlalchemy import select

from settlement_kernel.db.types import portion_of
from settlement_kernel.domain.hierarchy import MASTER_PATH, normalize_path, path_ids
from settlement_kernel.domain.types import (
    EntryType,
    SettlementEntityType,
    SettlementStatus,
)
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.merchant import Merchant
from settlement_kernel.models.organization import Organization
from settlement_kernel.models.settlement import Settlement
from settlement_kernel.models.transaction_event import TransactionEvent
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.fee_config_resolver import FeeConfigResolver

logger = get_logger("services.fee_calculation")

ROLE_MERCHANT = "merchant"
ROLE_MARGIN = "margin"
ROLE_RESIDUAL = "residual"


def build_settlement(
    event: TransactionEvent,
    *,
    entity_id,
    entity_type: SettlementEntityType,
    entity_path: Sequence,
    entry_type: EntryType,
    amount: int,
    fee_amount: int,
    fee_rate: Decimal | None,
    actor_id,
    is_residual: bool = False,
    role: str,
    extra: dict | None = None,
) -> Settlement:
    """Unsaved PENDING leg for ``event``."""
    metadata = {"role": role}
    if extra:
        metadata.update(extra)
    return Settlement(
        transaction_event_id=event.id,
        transaction_id=event.transaction_id,
        merchant_id=event.merchant_id,
        merchant_path=normalize_path(event.merchant_path),
        entity_id=entity_id,
        entity_type=SettlementEntityType(entity_type).value,
        entity_path=normalize_path(entity_path),
        entry_type=EntryType(entry_type).value,
        amount=amount,
        fee_amount=fee_amount,
        net_amount=amount,
        currency=event.currency,
        fee_rate=fee_rate,
        status=SettlementStatus.PENDING.value,
        is_residual=is_residual,
        settlement_metadata=metadata,
        created_by_id=actor_id,
    )


class FeeCalculationService(BaseService):
    """
    Contract:
        ``calculate_fees`` returns unsaved legs; persisting them is the
        creation service's job.

    Guarantees:
        - Exactly one merchant leg.
        - Margin legs are non-negative in magnitude.
        - At most one residual leg, and only when the residual is positive.
    """

    def __init__(self, session, context, resolver: FeeConfigResolver | None = None):
        super().__init__(session, context)
        self.resolver = resolver or FeeConfigResolver()

    def calculate_fees(
        self,
        event: TransactionEvent,
        merchant: Merchant,
        payment_method_code: str,
    ) -> list[Settlement]:
        """
        Raises:
            FeeConfigNotFoundError: the merchant or an ancestor has no rate.
            InvalidFeeRateError: a stored rate has an unsupported encoding.
        """
        abs_amount = abs(event.amount)
        is_credit = event.amount > 0
        entry_type = EntryType.CREDIT if is_credit else EntryType.DEBIT
        sign = 1 if is_credit else -1

        logger.info(
            "fee_calculation_started",
            extra={
                "transaction_event_id": str(event.id),
                "event_type": event.event_type,
                "amount": event.amount,
                "merchant_id": str(merchant.id),
                "payment_method": payment_method_code,
            },
        )

        merchant_rate = self.resolver.resolve_merchant_rate(merchant, payment_method_code)
        merchant_fee = portion_of(abs_amount, merchant_rate)
        merchant_settlement = abs_amount - merchant_fee

        settlements = [
            build_settlement(
                event,
                entity_id=merchant.id,
                entity_type=SettlementEntityType.MERCHANT,
                entity_path=merchant.org_path,
                entry_type=entry_type,
                amount=sign * merchant_settlement,
                fee_amount=sign * merchant_fee,
                fee_rate=merchant_rate,
                actor_id=self.actor_id,
                role=ROLE_MERCHANT,
            )
        ]

        distributor: Organization | None = None
        previous_rate = merchant_rate
        for org in self._load_ancestors(merchant.org_path):
            org_rate = self.resolver.resolve_organization_rate(org, payment_method_code)
            if org.is_distributor:
                distributor = org
                previous_rate = org_rate
                continue

            margin_rate = previous_rate - org_rate
            if margin_rate > 0:
                margin_amount = portion_of(abs_amount, margin_rate)
                settlements.append(
                    build_settlement(
                        event,
                        entity_id=org.id,
                        entity_type=SettlementEntityType.for_organization(org.org_type),
                        entity_path=org.path,
                        entry_type=entry_type,
                        amount=sign * margin_amount,
                        fee_amount=0,
                        fee_rate=margin_rate,
                        actor_id=self.actor_id,
                        role=ROLE_MARGIN,
                        extra={"organization_rate": str(org_rate)},
                    )
                )
            previous_rate = org_rate

        allocated = sum(abs(s.amount) for s in settlements)
        residual = abs_amount - allocated
        if residual > 0:
            settlements.append(
                build_settlement(
                    event,
                    entity_id=distributor.id if distributor else None,
                    entity_type=SettlementEntityType.DISTRIBUTOR,
                    entity_path=distributor.path if distributor else MASTER_PATH,
                    entry_type=entry_type,
                    amount=sign * residual,
                    fee_amount=0,
                    fee_rate=previous_rate,
                    actor_id=self.actor_id,
                    is_residual=True,
                    role=ROLE_RESIDUAL,
                )
            )

        self._log_breakdown(event, settlements, abs_amount)
        return settlements

    def _load_ancestors(self, org_path: Sequence) -> list[Organization]:
        """Organizations on the merchant's path, nearest (deepest) first."""
        ids = path_ids(org_path)
        if not ids:
            return []
        rows = self.session.scalars(
            select(Organization).where(Organization.id.in_(ids))
        ).all()
        return sorted(rows, key=lambda org: org.level, reverse=True)

    def _log_breakdown(self, event: TransactionEvent, settlements: list[Settlement], total: int) -> None:
        logger.info(
            "fee_breakdown",
            extra={
                "transaction_event_id": str(event.id),
                "total": total,
                "legs": [
                    {
                        "entity_type": s.entity_type,
                        "entity_id": str(s.entity_id) if s.entity_id else "MASTER",
                        "fee_rate": str(s.fee_rate) if s.fee_rate is not None else None,
                        "amount": s.amount,
                        "is_residual": s.is_residual,
                    }
                    for s in settlements
                ],
            },
        )
