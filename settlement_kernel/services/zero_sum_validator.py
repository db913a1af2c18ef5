"""
ZeroSumValidator -- the allocation invariant.

For one event the signed amounts of its legs must add up to the event's
signed amount exactly.  Integer arithmetic only.
"""

from collections.abc import Iterable

from settlement_kernel.exceptions import ZeroSumViolationError
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.settlement import Settlement
from settlement_kernel.models.transaction_event import TransactionEvent

logger = get_logger("services.zero_sum")


class ZeroSumValidator:

    @staticmethod
    def discrepancy(event: TransactionEvent, settlements: Iterable[Settlement]) -> int:
        """event.amount minus the sum of leg amounts; zero when balanced."""
        return event.amount - sum(s.amount for s in settlements)

    def validate(self, event: TransactionEvent, settlements: list[Settlement]) -> None:
        """
        Raises:
            ZeroSumViolationError: the legs do not sum to event.amount.
        """
        total = sum(s.amount for s in settlements)
        if total != event.amount:
            logger.error(
                "zero_sum_violation",
                extra={
                    "transaction_event_id": str(event.id),
                    "event_amount": event.amount,
                    "settlement_total": total,
                    "difference": event.amount - total,
                    "legs": [
                        {
                            "entry_type": s.entry_type,
                            "entity_type": s.entity_type,
                            "entity_id": str(s.entity_id) if s.entity_id else None,
                            "amount": s.amount,
                            "fee_rate": str(s.fee_rate) if s.fee_rate is not None else None,
                        }
                        for s in settlements
                    ],
                },
            )
            raise ZeroSumViolationError(event.id, event.amount, total)

        logger.debug(
            "zero_sum_validated",
            extra={"transaction_event_id": str(event.id), "event_amount": event.amount},
        )
