"""
SettlementCreationService -- compute, validate and persist one event's legs.

    COMPUTING --> VALIDATED ----------> persisted as PENDING         (CREATED)
        |
        +------> INVARIANT_VIOLATED -> persisted as PENDING_REVIEW  (NEEDS_REVIEW)

A zero-sum violation is not raised to the caller: the computed legs are kept
for an operator to inspect and resettle, and the outcome is reported through
``SettlementCreationResult``.  Every other error propagates.

Flushes only; the caller owns the transaction.
"""

from dataclasses import dataclass, field

from sqlalchemy import select

from settlement_kernel.domain.types import CreationStatus, EventType, SettlementStatus
from settlement_kernel.exceptions import (
    OriginalApprovalNotFoundError,
    UnsupportedEventTypeError,
    ZeroSumViolationError,
)
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.merchant import Merchant
from settlement_kernel.models.settlement import Settlement
from settlement_kernel.models.transaction_event import TransactionEvent
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.fee_calculation_service import FeeCalculationService
from settlement_kernel.services.fee_config_resolver import FeeConfigResolver
from settlement_kernel.services.partial_cancel_calculator import PartialCancelCalculator
from settlement_kernel.services.zero_sum_validator import ZeroSumValidator

logger = get_logger("services.settlement_creation")


@dataclass(frozen=True)
class SettlementCreationResult:
    status: CreationStatus
    settlements: tuple[Settlement, ...] = field(default_factory=tuple)
    discrepancy: int = 0

    @property
    def needs_review(self) -> bool:
        return self.status == CreationStatus.NEEDS_REVIEW

    @property
    def total_amount(self) -> int:
        return sum(s.amount for s in self.settlements)


class SettlementCreationService(BaseService):

    def __init__(
        self,
        session,
        context,
        resolver: FeeConfigResolver | None = None,
        validator: ZeroSumValidator | None = None,
    ):
        super().__init__(session, context)
        self.fee_calculation = FeeCalculationService(session, context, resolver)
        self.partial_cancel = PartialCancelCalculator(session, context)
        self.validator = validator or ZeroSumValidator()

    def create_settlements(
        self,
        event: TransactionEvent,
        merchant: Merchant,
        payment_method_code: str,
    ) -> SettlementCreationResult:
        """
        Raises:
            UnsupportedEventTypeError: no calculator for the event type.
            OriginalApprovalNotFoundError: PARTIAL_CANCEL without an approval.
            OriginalSettlementNotFoundError: approval has no active legs.
            FeeConfigNotFoundError: a rate could not be resolved.
        """
        logger.info(
            "settlement_creation_started",
            extra={
                "transaction_event_id": str(event.id),
                "event_type": event.event_type,
                "amount": event.amount,
            },
        )

        settlements = self._compute(event, merchant, payment_method_code)

        try:
            self.validator.validate(event, settlements)
        except ZeroSumViolationError as exc:
            return self._persist_for_review(event, settlements, exc)

        self.session.add_all(settlements)
        self.session.flush()

        logger.info(
            "settlements_created",
            extra={
                "transaction_event_id": str(event.id),
                "settlement_count": len(settlements),
            },
        )
        return SettlementCreationResult(
            status=CreationStatus.CREATED,
            settlements=tuple(settlements),
            discrepancy=0,
        )

    def _compute(
        self,
        event: TransactionEvent,
        merchant: Merchant,
        payment_method_code: str,
    ) -> list[Settlement]:
        try:
            event_type = EventType(event.event_type)
        except ValueError:
            raise UnsupportedEventTypeError(str(event.event_type)) from None

        if event_type in (EventType.APPROVAL, EventType.CANCEL):
            return self.fee_calculation.calculate_fees(event, merchant, payment_method_code)
        if event_type == EventType.PARTIAL_CANCEL:
            approval = self.find_original_approval(event)
            return self.partial_cancel.calculate_proportional(event, approval)
        raise UnsupportedEventTypeError(event_type.value)

    def find_original_approval(self, cancel_event: TransactionEvent) -> TransactionEvent:
        """
        First APPROVAL of the same transaction by event_sequence.

        Raises:
            OriginalApprovalNotFoundError: the transaction has no approval.
        """
        approval = self.session.scalars(
            select(TransactionEvent)
            .where(
                TransactionEvent.transaction_id == cancel_event.transaction_id,
                TransactionEvent.event_type == EventType.APPROVAL.value,
            )
            .order_by(TransactionEvent.event_sequence)
            .limit(1)
        ).first()
        if approval is None:
            raise OriginalApprovalNotFoundError(cancel_event.transaction_id)
        return approval

    def _persist_for_review(
        self,
        event: TransactionEvent,
        settlements: list[Settlement],
        violation: ZeroSumViolationError,
    ) -> SettlementCreationResult:
        for settlement in settlements:
            settlement.status = SettlementStatus.PENDING_REVIEW.value
        self.session.add_all(settlements)
        self.session.flush()

        logger.error(
            "settlements_pending_review",
            extra={
                "transaction_event_id": str(event.id),
                "event_amount": event.amount,
                "difference": violation.difference,
                "settlement_count": len(settlements),
            },
        )
        return SettlementCreationResult(
            status=CreationStatus.NEEDS_REVIEW,
            settlements=tuple(settlements),
            discrepancy=violation.difference,
        )
