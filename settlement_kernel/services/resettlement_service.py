"""
SettlementResettlementService -- replace FAILED or PENDING_REVIEW legs.

The old legs are cancelled, never deleted, and the event is settled again
inside the caller's transaction.
"""

from uuid import UUID

from sqlalchemy import select

from settlement_kernel.domain.types import RESETTLEABLE_STATUSES, SettlementStatus
from settlement_kernel.exceptions import (
    NoResettleableSettlementsError,
    TransactionEventNotFoundError,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.settlement import Settlement
from settlement_kernel.models.transaction_event import TransactionEvent
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.fee_config_resolver import FeeConfigResolver
from settlement_kernel.services.settlement_service import SettlementService

logger = get_logger("services.resettlement")


class SettlementResettlementService(BaseService):

    def __init__(self, session, context, resolver: FeeConfigResolver | None = None):
        super().__init__(session, context)
        self._settlement_service = SettlementService(
            session, context, auto_commit=False, resolver=resolver
        )

    def resettle(self, transaction_event_id: UUID) -> list[Settlement]:
        """
        Cancel the event's resettleable legs and settle it again.

        Raises:
            NoResettleableSettlementsError: no FAILED or PENDING_REVIEW legs.
            TransactionEventNotFoundError: the event row is missing.
        """
        with LogContext.bind(event_id=str(transaction_event_id), **self.context.log_fields()):
            existing = self.session.scalars(
                select(Settlement).where(
                    Settlement.transaction_event_id == transaction_event_id,
                    Settlement.status.in_([s.value for s in RESETTLEABLE_STATUSES]),
                )
            ).all()
            if not existing:
                raise NoResettleableSettlementsError(transaction_event_id)

            for settlement in existing:
                settlement.status = SettlementStatus.CANCELLED.value
                settlement.updated_by_id = self.actor_id
            self.session.flush()
            logger.info(
                "settlements_cancelled_for_resettlement",
                extra={"cancelled_count": len(existing)},
            )

            event = self.session.get(TransactionEvent, transaction_event_id)
            if event is None:
                raise TransactionEventNotFoundError(transaction_event_id)

            result = self._settlement_service.process_transaction_event(event)

            logger.info(
                "resettlement_completed",
                extra={
                    "cancelled_count": len(existing),
                    "created_count": len(result.settlements),
                    "status": result.status.value,
                },
            )
            return list(result.settlements)
