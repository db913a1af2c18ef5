"""
Tests for SettlementQueryService.

Two independent trees (ACME, OTHER) each settle one 100,000 approval on
Monday 2024-03-04 in Seoul.
"""

from datetime import UTC, date, datetime, timedelta

import pytest

from settlement_kernel.domain.hierarchy import MASTER_PATH
from settlement_kernel.domain.types import (
    EntryType,
    EventType,
    SettlementBatchStatus,
    SettlementCycle,
    SettlementEntityType,
    SettlementStatus,
)
from settlement_kernel.models import SettlementBatch
from settlement_kernel.selectors.settlement_selector import MAX_PAGE_SIZE, SettlementQueryService
from settlement_kernel.services.settlement_creation_service import SettlementCreationService

MONDAY = date(2024, 3, 4)
WINDOW_START = datetime(2024, 3, 3, 15, 0, tzinfo=UTC)
WINDOW_END = datetime(2024, 3, 4, 15, 0, tzinfo=UTC)


@pytest.fixture
def trees(session, ctx, build_tree, card, make_event):
    acme = build_tree("ACME")
    other = build_tree("OTHER")
    creation = SettlementCreationService(session, ctx)
    for tree in (acme, other):
        event = make_event(tree.merchant, 100_000)
        creation.create_settlements(event, tree.merchant, "CARD")
    return acme, other


@pytest.fixture
def queries(session):
    return SettlementQueryService(session)


class TestAccessControl:

    def test_master_sees_everything(self, trees, queries):
        legs = queries.find_accessible_settlements([], WINDOW_START, WINDOW_END)
        assert len(legs) == 12

    def test_dealer_sees_own_subtree(self, trees, queries):
        acme, _ = trees

        legs = queries.find_accessible_settlements(acme.dealer.path, WINDOW_START, WINDOW_END)

        assert sorted(leg.entity_type.value for leg in legs) == ["DEALER", "MERCHANT", "SELLER", "VENDOR"]
        assert {leg.merchant_id for leg in legs} == {acme.merchant.id}

    def test_distributor_sees_its_tree_only(self, trees, queries):
        acme, _ = trees

        legs = queries.find_accessible_settlements(acme.distributor.path, WINDOW_START, WINDOW_END)

        assert len(legs) == 6
        assert sum(leg.amount for leg in legs) == 100_000

    def test_master_leg_visible_to_master_only(self, session, ctx, build_tree, card, make_event, queries):
        tree = build_tree("NODIST", with_distributor=False)
        event = make_event(tree.merchant, 100_000)
        SettlementCreationService(session, ctx).create_settlements(event, tree.merchant, "CARD")

        agency_view = queries.find_accessible_settlements(tree.agency.path, WINDOW_START, WINDOW_END)
        master_view = queries.find_accessible_settlements(None, WINDOW_START, WINDOW_END)

        assert not any(leg.entity_path == MASTER_PATH for leg in agency_view)
        assert any(leg.entity_path == MASTER_PATH for leg in master_view)

    def test_window_is_half_open(self, trees, queries):
        assert queries.find_accessible_settlements([], WINDOW_END, WINDOW_END + timedelta(days=1)) == []
        assert len(queries.find_accessible_settlements([], WINDOW_START, WINDOW_END)) == 12

    def test_status_and_entity_type_filters(self, trees, queries):
        merchants = queries.find_accessible_settlements(
            [], WINDOW_START, WINDOW_END, entity_type=SettlementEntityType.MERCHANT
        )
        completed = queries.find_accessible_settlements(
            [], WINDOW_START, WINDOW_END, status=SettlementStatus.COMPLETED
        )

        assert len(merchants) == 2
        assert completed == []

    def test_dtos_are_frozen(self, trees, queries):
        leg = queries.find_accessible_settlements([], WINDOW_START, WINDOW_END)[0]
        with pytest.raises(AttributeError):
            leg.amount = 0


class TestSummaries:

    def test_summary_for_dealer(self, trees, queries):
        acme, _ = trees

        summary = queries.get_summary(acme.dealer.path, WINDOW_START, WINDOW_END)

        assert summary.viewer_path == tuple(acme.dealer.path)
        assert summary.total_amount == 97_000 + 3 * 500
        assert summary.total_fee_amount == 3_000
        assert summary.credit_amount == summary.total_amount
        assert summary.debit_amount == 0
        assert summary.transaction_count == 4

    def test_summary_splits_credit_and_debit(self, session, ctx, trees, make_event, queries):
        acme, _ = trees
        cancel = make_event(acme.merchant, -100_000, event_type=EventType.CANCEL)
        SettlementCreationService(session, ctx).create_settlements(cancel, acme.merchant, "CARD")

        summary = queries.get_summary(acme.distributor.path, WINDOW_START, WINDOW_END)

        assert summary.credit_amount == 100_000
        assert summary.debit_amount == -100_000
        assert summary.total_amount == 0

    def test_daily_report(self, trees, queries):
        acme, _ = trees

        report = queries.get_daily_batch_report(acme.agency.path, MONDAY)

        assert report.report_date == MONDAY
        assert report.settlement_count == 5
        assert report.total_amount == 97_000 + 4 * 500
        assert report.total_fee_amount == 3_000

    def test_daily_report_other_day_is_empty(self, trees, queries):
        assert queries.get_daily_batch_report([], MONDAY + timedelta(days=1)).settlement_count == 0

    def test_by_organization_deepest_first(self, trees, queries):
        summaries = queries.settlements_by_organization([], WINDOW_START, WINDOW_END)

        assert len(summaries) == 10
        assert [s.org_code for s in summaries[:2]] == ["ACME-VENDOR", "OTHER-VENDOR"]
        assert summaries[-1].entity_type == SettlementEntityType.DISTRIBUTOR
        assert all(s.entity_type != SettlementEntityType.MERCHANT for s in summaries)

    def test_by_organization_search_and_type(self, trees, queries):
        summaries = queries.settlements_by_organization(
            [], WINDOW_START, WINDOW_END, org_type=SettlementEntityType.DEALER, search="acme"
        )

        assert len(summaries) == 1
        dealer = summaries[0]
        assert dealer.org_code == "ACME-DEALER"
        assert dealer.approval_amount == 500
        assert dealer.approval_count == 1
        assert dealer.cancel_count == 0
        assert dealer.net_amount == 500
        assert dealer.primary_status == SettlementStatus.PENDING

    def test_settlements_for_event(self, session, ctx, tree, make_event, queries):
        event = make_event(tree.merchant, 100_000)
        SettlementCreationService(session, ctx).create_settlements(event, tree.merchant, "CARD")

        legs = queries.settlements_for_event(event.id)

        assert len(legs) == 6
        assert legs[-1].is_residual
        assert {leg.entry_type for leg in legs} == {EntryType.CREDIT}
        assert all(leg.occurred_at == event.occurred_at for leg in legs)


class TestFindBatches:

    @pytest.fixture
    def batches(self, session, ctx):
        first = date(2024, 1, 1)
        for offset in range(105):
            day = first + timedelta(days=offset)
            session.add(
                SettlementBatch(
                    batch_number=f"BATCH-D1-{day:%Y%m%d}-001",
                    cycle=SettlementCycle.D_PLUS_1.value,
                    settlement_date=day,
                    period_start=datetime(2023, 12, 31, 15, 0, tzinfo=UTC) + timedelta(days=offset),
                    period_end=datetime(2024, 1, 1, 15, 0, tzinfo=UTC) + timedelta(days=offset),
                    status=SettlementBatchStatus.COMPLETED.value,
                    created_by_id=ctx.actor_id,
                )
            )
        session.flush()
        return first

    def test_page_size_capped(self, batches, queries):
        page = queries.find_batches(size=500)

        assert page.size == MAX_PAGE_SIZE
        assert len(page.items) == MAX_PAGE_SIZE
        assert page.total == 105
        assert page.has_next

    def test_newest_first(self, batches, queries):
        page = queries.find_batches(size=3)

        assert [b.settlement_date for b in page.items] == [
            batches + timedelta(days=104),
            batches + timedelta(days=103),
            batches + timedelta(days=102),
        ]

    def test_last_page(self, batches, queries):
        page = queries.find_batches(page=1, size=100)

        assert len(page.items) == 5
        assert not page.has_next

    def test_date_range_inclusive(self, batches, queries):
        page = queries.find_batches(start_date=batches, end_date=batches + timedelta(days=2))
        assert page.total == 3

    def test_status_filter(self, batches, queries):
        assert queries.find_batches(status=SettlementBatchStatus.FAILED).total == 0
        assert queries.find_batches(status="COMPLETED").total == 105
