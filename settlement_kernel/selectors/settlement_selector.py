"""
Module: settlement_kernel.selectors.settlement_selector
Responsibility: Read-side queries over settlements and batches, scoped by
    the viewer's position in the organization tree.
Architecture position: Kernel > Selectors.

Access rule:
    A viewer whose organization path is P sees a leg when the leg's
    entity_path equals P or descends from P.  The empty path is the master
    administrator and sees everything, including ``["master"]`` legs.

Time windows apply to the originating event's ``occurred_at`` and are
half-open: [start, end).  The tree filter runs on the id lists after the
SQL query, because JSON prefix matching differs between PostgreSQL and
SQLite.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import func, select

from settlement_kernel.domain.hierarchy import PathLike, is_descendant, normalize_path
from settlement_kernel.domain.types import (
    EntryType,
    SettlementEntityType,
    SettlementStatus,
)
from settlement_kernel.models.organization import Organization
from settlement_kernel.models.settlement import Settlement
from settlement_kernel.models.settlement_batch import SettlementBatch
from settlement_kernel.models.transaction_event import TransactionEvent
from settlement_kernel.selectors.base import BaseSelector

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class SettlementDTO:
    settlement_id: UUID
    transaction_event_id: UUID
    transaction_id: str
    merchant_id: UUID
    entity_id: UUID | None
    entity_type: SettlementEntityType
    entity_path: tuple[str, ...]
    entry_type: EntryType
    amount: int
    fee_amount: int
    net_amount: int
    currency: str
    fee_rate: Decimal | None
    status: SettlementStatus
    settlement_batch_id: UUID | None
    settled_at: datetime | None
    is_residual: bool
    occurred_at: datetime


@dataclass(frozen=True)
class SettlementSummary:
    viewer_path: tuple[str, ...]
    total_amount: int
    total_fee_amount: int
    total_net_amount: int
    credit_amount: int
    debit_amount: int
    transaction_count: int
    currency: str = "KRW"


@dataclass(frozen=True)
class DailyBatchReport:
    report_date: date
    settlements: tuple[SettlementDTO, ...]
    total_amount: int
    total_fee_amount: int

    @property
    def settlement_count(self) -> int:
        return len(self.settlements)


@dataclass(frozen=True)
class EntitySettlementSummary:
    """Per-organization aggregation over a window."""

    entity_id: UUID | None
    entity_type: SettlementEntityType
    entity_path: tuple[str, ...]
    org_code: str | None
    name: str | None
    approval_amount: int
    approval_count: int
    cancel_amount: int
    cancel_count: int
    net_amount: int
    fee_amount: int
    completed_count: int
    pending_count: int
    failed_count: int

    @property
    def primary_status(self) -> SettlementStatus | None:
        """FAILED if any failed, else PENDING if any pending, else COMPLETED."""
        if self.failed_count:
            return SettlementStatus.FAILED
        if self.pending_count:
            return SettlementStatus.PENDING
        if self.completed_count:
            return SettlementStatus.COMPLETED
        return None


@dataclass(frozen=True)
class BatchDTO:
    batch_id: UUID
    batch_number: str
    cycle: str
    settlement_date: date
    period_start: datetime
    period_end: datetime
    status: str
    total_transactions: int
    total_amount: int
    total_fee_amount: int
    processed_at: datetime | None


@dataclass(frozen=True)
class BatchPage:
    items: tuple[BatchDTO, ...]
    page: int
    size: int
    total: int

    @property
    def has_next(self) -> bool:
        return (self.page + 1) * self.size < self.total


class SettlementQueryService(BaseSelector):

    def __init__(self, session, timezone_name: str = "Asia/Seoul"):
        super().__init__(session)
        self.timezone = ZoneInfo(timezone_name)

    def find_accessible_settlements(
        self,
        viewer_path: PathLike | None,
        start: datetime,
        end: datetime,
        status: SettlementStatus | None = None,
        entity_type: SettlementEntityType | None = None,
    ) -> list[SettlementDTO]:
        """Legs visible to ``viewer_path`` for events in [start, end)."""
        rows = self._window(start, end, status=status, entity_type=entity_type)
        viewer = normalize_path(viewer_path)
        return [
            _to_dto(settlement, occurred_at)
            for settlement, occurred_at in rows
            if is_descendant(settlement.entity_path, viewer)
        ]

    def get_summary(
        self,
        viewer_path: PathLike | None,
        start: datetime,
        end: datetime,
        entity_type: SettlementEntityType | None = None,
    ) -> SettlementSummary:
        legs = self.find_accessible_settlements(viewer_path, start, end, entity_type=entity_type)
        return SettlementSummary(
            viewer_path=tuple(normalize_path(viewer_path)),
            total_amount=sum(s.amount for s in legs),
            total_fee_amount=sum(s.fee_amount for s in legs),
            total_net_amount=sum(s.net_amount for s in legs),
            credit_amount=sum(s.amount for s in legs if s.entry_type == EntryType.CREDIT),
            debit_amount=sum(s.amount for s in legs if s.entry_type == EntryType.DEBIT),
            transaction_count=len(legs),
        )

    def get_daily_batch_report(self, viewer_path: PathLike | None, report_date: date) -> DailyBatchReport:
        """Visible legs for events on ``report_date`` in the configured timezone."""
        start = datetime.combine(report_date, time.min, tzinfo=self.timezone).astimezone(UTC)
        end = datetime.combine(
            report_date + timedelta(days=1), time.min, tzinfo=self.timezone
        ).astimezone(UTC)
        legs = self.find_accessible_settlements(viewer_path, start, end)
        return DailyBatchReport(
            report_date=report_date,
            settlements=tuple(legs),
            total_amount=sum(s.amount for s in legs),
            total_fee_amount=sum(s.fee_amount for s in legs),
        )

    def settlements_by_organization(
        self,
        viewer_path: PathLike | None,
        start: datetime,
        end: datetime,
        org_type: SettlementEntityType | None = None,
        search: str | None = None,
    ) -> list[EntitySettlementSummary]:
        """
        Aggregate visible organization legs per entity, deepest tier first.

        ``search`` matches org_code or name case-insensitively.
        """
        legs = [
            s for s in self.find_accessible_settlements(viewer_path, start, end, entity_type=org_type)
            if s.entity_type != SettlementEntityType.MERCHANT
        ]

        grouped: dict[tuple, list[SettlementDTO]] = defaultdict(list)
        for leg in legs:
            grouped[(leg.entity_id, leg.entity_type, leg.entity_path)].append(leg)

        org_ids = [key[0] for key in grouped if key[0] is not None]
        orgs = {}
        if org_ids:
            orgs = {
                org.id: org
                for org in self.session.scalars(
                    select(Organization).where(Organization.id.in_(org_ids))
                ).all()
            }

        summaries = []
        for (entity_id, entity_type, entity_path), group in grouped.items():
            org = orgs.get(entity_id)
            if search and not _matches(org, search):
                continue
            summaries.append(
                EntitySettlementSummary(
                    entity_id=entity_id,
                    entity_type=entity_type,
                    entity_path=entity_path,
                    org_code=org.org_code if org else None,
                    name=org.name if org else None,
                    approval_amount=sum(s.amount for s in group if s.entry_type == EntryType.CREDIT),
                    approval_count=sum(1 for s in group if s.entry_type == EntryType.CREDIT),
                    cancel_amount=sum(s.amount for s in group if s.entry_type == EntryType.DEBIT),
                    cancel_count=sum(1 for s in group if s.entry_type == EntryType.DEBIT),
                    net_amount=sum(s.amount for s in group),
                    fee_amount=sum(s.fee_amount for s in group),
                    completed_count=sum(1 for s in group if s.status == SettlementStatus.COMPLETED),
                    pending_count=sum(1 for s in group if s.status == SettlementStatus.PENDING),
                    failed_count=sum(1 for s in group if s.status == SettlementStatus.FAILED),
                )
            )

        summaries.sort(key=lambda s: (-len(s.entity_path), s.org_code or ""))
        return summaries

    def find_batches(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        status: str | None = None,
        page: int = 0,
        size: int = 20,
    ) -> BatchPage:
        """Batches by settlement date (inclusive range), newest first; size capped at 100."""
        size = max(1, min(size, MAX_PAGE_SIZE))
        page = max(0, page)

        conditions = []
        if start_date is not None:
            conditions.append(SettlementBatch.settlement_date >= start_date)
        if end_date is not None:
            conditions.append(SettlementBatch.settlement_date <= end_date)
        if status is not None:
            conditions.append(SettlementBatch.status == str(getattr(status, "value", status)))

        total = self.session.scalar(
            select(func.count()).select_from(SettlementBatch).where(*conditions)
        ) or 0
        rows = self.session.scalars(
            select(SettlementBatch)
            .where(*conditions)
            .order_by(SettlementBatch.settlement_date.desc(), SettlementBatch.batch_number)
            .offset(page * size)
            .limit(size)
        ).all()

        return BatchPage(
            items=tuple(_batch_to_dto(b) for b in rows),
            page=page,
            size=size,
            total=total,
        )

    def settlements_for_event(self, transaction_event_id: UUID) -> list[SettlementDTO]:
        rows = self.session.execute(
            select(Settlement, TransactionEvent.occurred_at)
            .join(TransactionEvent, Settlement.transaction_event_id == TransactionEvent.id)
            .where(Settlement.transaction_event_id == transaction_event_id)
            .order_by(Settlement.is_residual, Settlement.created_at)
        ).all()
        return [_to_dto(settlement, occurred_at) for settlement, occurred_at in rows]

    def _window(
        self,
        start: datetime,
        end: datetime,
        status: SettlementStatus | None = None,
        entity_type: SettlementEntityType | None = None,
    ):
        stmt = (
            select(Settlement, TransactionEvent.occurred_at)
            .join(TransactionEvent, Settlement.transaction_event_id == TransactionEvent.id)
            .where(
                TransactionEvent.occurred_at >= start,
                TransactionEvent.occurred_at < end,
            )
            .order_by(TransactionEvent.occurred_at, Settlement.created_at)
        )
        if status is not None:
            stmt = stmt.where(Settlement.status == SettlementStatus(status).value)
        if entity_type is not None:
            stmt = stmt.where(Settlement.entity_type == SettlementEntityType(entity_type).value)
        return self.session.execute(stmt).all()


def _matches(org: Organization | None, search: str) -> bool:
    if org is None:
        return False
    needle = search.lower()
    return needle in org.org_code.lower() or needle in org.name.lower()


def _to_dto(settlement: Settlement, occurred_at: datetime) -> SettlementDTO:
    return SettlementDTO(
        settlement_id=settlement.id,
        transaction_event_id=settlement.transaction_event_id,
        transaction_id=settlement.transaction_id,
        merchant_id=settlement.merchant_id,
        entity_id=settlement.entity_id,
        entity_type=SettlementEntityType(settlement.entity_type),
        entity_path=tuple(settlement.entity_path),
        entry_type=EntryType(settlement.entry_type),
        amount=settlement.amount,
        fee_amount=settlement.fee_amount,
        net_amount=settlement.net_amount,
        currency=settlement.currency,
        fee_rate=settlement.fee_rate,
        status=SettlementStatus(settlement.status),
        settlement_batch_id=settlement.settlement_batch_id,
        settled_at=settlement.settled_at,
        is_residual=settlement.is_residual,
        occurred_at=occurred_at,
    )


def _batch_to_dto(batch: SettlementBatch) -> BatchDTO:
    return BatchDTO(
        batch_id=batch.id,
        batch_number=batch.batch_number,
        cycle=batch.cycle,
        settlement_date=batch.settlement_date,
        period_start=batch.period_start,
        period_end=batch.period_end,
        status=batch.status,
        total_transactions=batch.total_transactions,
        total_amount=batch.total_amount,
        total_fee_amount=batch.total_fee_amount,
        processed_at=batch.processed_at,
    )
