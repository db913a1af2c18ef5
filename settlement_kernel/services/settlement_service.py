"""
SettlementService -- entry point for settling one transaction event.

One event is one unit of work.  With ``auto_commit=True`` the service commits
after a successful creation (including a NEEDS_REVIEW outcome, whose legs
must survive) and rolls back on any exception.  With ``auto_commit=False``
the caller's transaction is left open, which is how resettlement reuses it.
"""

import time
from uuid import UUID

from sqlalchemy.orm import Session

from settlement_kernel.domain.context import ExecutionContext
from settlement_kernel.exceptions import (
    MerchantNotFoundError,
    PaymentMethodNotFoundError,
    TransactionEventNotFoundError,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.merchant import Merchant
from settlement_kernel.models.payment_method import PaymentMethod
from settlement_kernel.models.transaction_event import TransactionEvent
from settlement_kernel.services.fee_config_resolver import FeeConfigResolver
from settlement_kernel.services.settlement_creation_service import (
    SettlementCreationResult,
    SettlementCreationService,
)

logger = get_logger("services.settlement")


class SettlementService:

    def __init__(
        self,
        session: Session,
        context: ExecutionContext,
        auto_commit: bool = True,
        resolver: FeeConfigResolver | None = None,
    ):
        self._session = session
        self._context = context
        self._auto_commit = auto_commit
        self._creation = SettlementCreationService(session, context, resolver)

    def process_transaction_event(self, event: TransactionEvent) -> SettlementCreationResult:
        """
        Load the event's merchant and payment method, then create its legs.

        Raises:
            MerchantNotFoundError: event.merchant_id does not exist.
            PaymentMethodNotFoundError: event.payment_method_id does not exist.
            SettlementKernelError: any creation failure; the session has
                been rolled back when auto_commit is set.
        """

        def _work() -> SettlementCreationResult:
            merchant = self._session.get(Merchant, event.merchant_id)
            if merchant is None:
                raise MerchantNotFoundError(event.merchant_id)
            payment_method = self._session.get(PaymentMethod, event.payment_method_id)
            if payment_method is None:
                raise PaymentMethodNotFoundError(event.payment_method_id)
            return self._creation.create_settlements(event, merchant, payment_method.method_code)

        return self._run(event, _work)

    def process_transaction_event_with_merchant(
        self,
        event: TransactionEvent,
        merchant: Merchant,
        payment_method_code: str,
    ) -> SettlementCreationResult:
        """Same as process_transaction_event with caller-supplied lookups."""
        return self._run(
            event,
            lambda: self._creation.create_settlements(event, merchant, payment_method_code),
        )

    def process_event_by_id(self, event_id: UUID) -> SettlementCreationResult:
        """
        Raises:
            TransactionEventNotFoundError: no event with ``event_id``.
        """
        event = self._session.get(TransactionEvent, event_id)
        if event is None:
            raise TransactionEventNotFoundError(event_id)
        return self.process_transaction_event(event)

    def _run(self, event: TransactionEvent, work) -> SettlementCreationResult:
        with LogContext.bind(event_id=str(event.id), **self._context.log_fields()):
            logger.info(
                "settlement_processing_started",
                extra={
                    "event_type": event.event_type,
                    "amount": event.amount,
                    "transaction_id": event.transaction_id,
                },
            )
            t0 = time.monotonic()

            try:
                result = work()

                if self._auto_commit:
                    self._session.commit()

                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                logger.info(
                    "settlement_processing_completed",
                    extra={
                        "status": result.status.value,
                        "settlement_count": len(result.settlements),
                        "discrepancy": result.discrepancy,
                        "duration_ms": duration_ms,
                    },
                )
                return result

            except Exception:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                if self._auto_commit:
                    self._session.rollback()
                logger.error(
                    "settlement_processing_failed",
                    extra={"duration_ms": duration_ms},
                    exc_info=True,
                )
                raise
