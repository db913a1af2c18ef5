"""
SettlementBatchService -- group PENDING legs into a dated batch per cycle.

A batch for (transaction date T, cycle C) collects every PENDING, unbatched
leg whose event occurred during calendar day T in the configured timezone
and whose merchant settles on cycle C.  It is dated on the settlement date
(T stepped by C's business days) and completes the legs it collects.

Idempotency: an existing batch for the settlement date and cycle makes the
call a no-op.  The insert itself runs inside a SAVEPOINT so that losing a
race on UNIQUE(settlement_date, cycle) is also a no-op rather than an error
that poisons the caller's transaction.
"""

from collections import defaultdict
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from settlement_kernel.domain.types import (
    SettlementBatchStatus,
    SettlementCycle,
    SettlementStatus,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.merchant import Merchant
from settlement_kernel.models.settlement import Settlement
from settlement_kernel.models.settlement_batch import SettlementBatch
from settlement_kernel.models.transaction_event import TransactionEvent
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.business_day_calculator import (
    BusinessDayCalculator,
    HolidayCalendar,
)

logger = get_logger("services.settlement_batch")

DEFAULT_TIMEZONE = "Asia/Seoul"

BACKFILL_CYCLES: tuple[SettlementCycle, ...] = (
    SettlementCycle.D_PLUS_1,
    SettlementCycle.D_PLUS_3,
)


def format_batch_number(cycle: SettlementCycle, settlement_date: date, sequence: int) -> str:
    return f"BATCH-{cycle.batch_prefix}-{settlement_date:%Y%m%d}-{sequence:03d}"


class SettlementBatchService(BaseService):

    def __init__(
        self,
        session,
        context,
        calculator: BusinessDayCalculator | None = None,
        timezone_name: str = DEFAULT_TIMEZONE,
        country_code: str = "KR",
    ):
        super().__init__(session, context)
        self.timezone = ZoneInfo(timezone_name)
        self.calculator = calculator or BusinessDayCalculator(
            HolidayCalendar.from_session(session, country_code)
        )

    def day_period(self, transaction_date: date) -> tuple[datetime, datetime]:
        """[start of day, start of next day) in the configured zone, as UTC."""
        start = datetime.combine(transaction_date, time.min, tzinfo=self.timezone)
        end = datetime.combine(transaction_date + timedelta(days=1), time.min, tzinfo=self.timezone)
        return start.astimezone(UTC), end.astimezone(UTC)

    def create_daily_batch(
        self,
        transaction_date: date,
        cycle: SettlementCycle,
    ) -> SettlementBatch | None:
        """
        Batch the legs of ``transaction_date`` for ``cycle``.

        Returns None when a batch already exists for the settlement date and
        cycle, when there is nothing to batch, or when a concurrent run
        inserted the batch first.
        """
        cycle = SettlementCycle(cycle)
        settlement_date = self.calculator.settlement_date(transaction_date, cycle)
        log_extra = {
            "transaction_date": transaction_date.isoformat(),
            "settlement_date": settlement_date.isoformat(),
            "cycle": cycle.value,
        }

        if self._count_batches(settlement_date, cycle):
            logger.info("batch_already_exists", extra=log_extra)
            return None

        period_start, period_end = self.day_period(transaction_date)
        unbatched = self._unbatched_settlements(period_start, period_end, cycle)
        if not unbatched:
            logger.info("no_unbatched_settlements", extra=log_extra)
            return None

        batch_number = format_batch_number(
            cycle, settlement_date, self._count_batches(settlement_date, cycle) + 1
        )
        batch = SettlementBatch(
            batch_number=batch_number,
            cycle=cycle.value,
            settlement_date=settlement_date,
            period_start=period_start,
            period_end=period_end,
            status=SettlementBatchStatus.PROCESSING.value,
            total_transactions=len(unbatched),
            total_amount=sum(s.amount for s in unbatched),
            total_fee_amount=sum(s.fee_amount for s in unbatched),
            batch_metadata={
                "cycle": cycle.value,
                "transaction_date": transaction_date.isoformat(),
            },
            created_by_id=self.actor_id,
        )

        try:
            with self.session.begin_nested():
                self.session.add(batch)
                self.session.flush()
        except IntegrityError:
            logger.info("batch_insert_conflict", extra={**log_extra, "batch_number": batch_number})
            return None

        with LogContext.bind(batch_number=batch_number):
            now = self.clock.now_utc()
            for settlement in unbatched:
                settlement.settlement_batch_id = batch.id
                settlement.status = SettlementStatus.COMPLETED.value
                settlement.settled_at = now
                settlement.updated_by_id = self.actor_id

            batch.status = SettlementBatchStatus.COMPLETED.value
            batch.processed_at = now
            self.session.flush()

            logger.info(
                "batch_created",
                extra={
                    **log_extra,
                    "settlement_count": batch.total_transactions,
                    "total_amount": batch.total_amount,
                    "total_fee_amount": batch.total_fee_amount,
                },
            )
        return batch

    def create_realtime_batch(self, today: date) -> SettlementBatch | None:
        return self.create_daily_batch(today, SettlementCycle.REALTIME)

    def backfill_unbatched_settlements(self) -> int:
        """
        Batch every PENDING, unbatched leg by its event date.

        Each (date, cycle) runs in its own SAVEPOINT; a failure is logged and
        the remaining dates still run.  Returns the number of batches created.
        """
        rows = self.session.execute(
            select(TransactionEvent.occurred_at)
            .join(Settlement, Settlement.transaction_event_id == TransactionEvent.id)
            .where(
                Settlement.status == SettlementStatus.PENDING.value,
                Settlement.settlement_batch_id.is_(None),
            )
        ).all()
        if not rows:
            logger.info("backfill_nothing_to_do")
            return 0

        by_date: dict[date, int] = defaultdict(int)
        for (occurred_at,) in rows:
            by_date[occurred_at.astimezone(self.timezone).date()] += 1

        created = 0
        for transaction_date in sorted(by_date):
            for cycle in BACKFILL_CYCLES:
                try:
                    with self.session.begin_nested():
                        batch = self.create_daily_batch(transaction_date, cycle)
                except Exception:
                    logger.warning(
                        "backfill_date_failed",
                        extra={
                            "transaction_date": transaction_date.isoformat(),
                            "cycle": cycle.value,
                        },
                        exc_info=True,
                    )
                    continue
                if batch is not None:
                    created += 1

        logger.info(
            "backfill_completed",
            extra={"batches_created": created, "date_count": len(by_date)},
        )
        return created

    def _count_batches(self, settlement_date: date, cycle: SettlementCycle) -> int:
        """Batches already dated ``settlement_date`` whose number carries the cycle prefix."""
        count = self.session.scalar(
            select(func.count())
            .select_from(SettlementBatch)
            .where(
                SettlementBatch.settlement_date == settlement_date,
                SettlementBatch.batch_number.contains(f"-{cycle.batch_prefix}-"),
            )
        )
        return count or 0

    def _unbatched_settlements(
        self,
        period_start: datetime,
        period_end: datetime,
        cycle: SettlementCycle,
    ) -> list[Settlement]:
        return list(
            self.session.scalars(
                select(Settlement)
                .join(TransactionEvent, Settlement.transaction_event_id == TransactionEvent.id)
                .join(Merchant, Settlement.merchant_id == Merchant.id)
                .where(
                    Settlement.status == SettlementStatus.PENDING.value,
                    Settlement.settlement_batch_id.is_(None),
                    TransactionEvent.occurred_at >= period_start,
                    TransactionEvent.occurred_at < period_end,
                    Merchant.settlement_cycle == cycle.value,
                )
                .order_by(TransactionEvent.occurred_at, Settlement.created_at)
            ).all()
        )
