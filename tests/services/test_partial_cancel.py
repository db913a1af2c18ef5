"""
Tests for PartialCancelCalculator.

Every approval leg is reversed proportionally and floored; the residual
reversal absorbs the rounding shortfall so the reversal total equals the
cancel amount exactly.
"""

import pytest

from settlement_kernel.domain.hierarchy import MASTER_PATH
from settlement_kernel.domain.types import EntryType, EventType, SettlementStatus
from settlement_kernel.exceptions import OriginalSettlementNotFoundError
from settlement_kernel.services.partial_cancel_calculator import PartialCancelCalculator
from settlement_kernel.services.settlement_creation_service import SettlementCreationService


@pytest.fixture
def approve(session, ctx, make_event):
    """Settle an approval and return (event, legs)."""

    def _approve(merchant, amount, transaction_id="TX-PC-1"):
        event = make_event(merchant, amount, transaction_id=transaction_id)
        result = SettlementCreationService(session, ctx).create_settlements(event, merchant, "CARD")
        return event, list(result.settlements)

    return _approve


@pytest.fixture
def partial_cancel(make_event):
    def _cancel(merchant, amount, transaction_id="TX-PC-1", event_sequence=2):
        return make_event(
            merchant,
            amount,
            event_type=EventType.PARTIAL_CANCEL,
            transaction_id=transaction_id,
            event_sequence=event_sequence,
        )

    return _cancel


def test_thirty_percent_reference_example(session, ctx, tree, approve, partial_cancel):
    approval, _ = approve(tree.merchant, 100_000)
    cancel = partial_cancel(tree.merchant, -30_000)

    reversals = PartialCancelCalculator(session, ctx).calculate_proportional(cancel, approval)

    assert sorted(leg.amount for leg in reversals) == [-29_100, -300, -150, -150, -150, -150]
    assert sum(leg.amount for leg in reversals) == -30_000
    assert all(leg.entry_type == EntryType.DEBIT.value for leg in reversals)
    assert all(leg.transaction_event_id == cancel.id for leg in reversals)


def test_reversals_mirror_original_entities(session, ctx, tree, approve, partial_cancel):
    approval, originals = approve(tree.merchant, 100_000)
    cancel = partial_cancel(tree.merchant, -30_000)

    reversals = PartialCancelCalculator(session, ctx).calculate_proportional(cancel, approval)

    by_original = {leg.settlement_metadata["reverses_settlement_id"]: leg for leg in reversals}
    for original in originals:
        reversal = by_original[str(original.id)]
        assert reversal.entity_id == original.entity_id
        assert reversal.entity_path == original.entity_path
        assert reversal.fee_rate == original.fee_rate
        assert reversal.is_residual == original.is_residual


def test_merchant_fee_reversed_proportionally(session, ctx, tree, approve, partial_cancel):
    approval, _ = approve(tree.merchant, 100_000)
    cancel = partial_cancel(tree.merchant, -30_000)

    reversals = PartialCancelCalculator(session, ctx).calculate_proportional(cancel, approval)

    merchant_reversal = next(leg for leg in reversals if leg.entity_id == tree.merchant.id)
    assert merchant_reversal.fee_amount == -900


def test_residual_absorbs_rounding(session, ctx, tree, approve, partial_cancel, captured_logs):
    approval, _ = approve(tree.merchant, 100_000)
    cancel = partial_cancel(tree.merchant, -33_333)

    reversals = PartialCancelCalculator(session, ctx).calculate_proportional(cancel, approval)

    # ratio 0.33333; 97,000 -> 32,333.01 -> 32,333; 500 -> 166.665 -> 166
    residual = next(leg for leg in reversals if leg.is_residual)
    assert sorted(leg.amount for leg in reversals if not leg.is_residual) == [-32_333, -166, -166, -166, -166]
    assert residual.amount == -33_333 + 32_333 + 4 * 166
    assert residual.net_amount == residual.amount
    assert sum(leg.amount for leg in reversals) == -33_333
    assert any(r["message"] == "rounding_difference_adjusted" for r in captured_logs())


def test_full_amount_partial_cancel(session, ctx, tree, approve, partial_cancel):
    approval, originals = approve(tree.merchant, 100_000)
    cancel = partial_cancel(tree.merchant, -100_000)

    reversals = PartialCancelCalculator(session, ctx).calculate_proportional(cancel, approval)

    assert sorted(leg.amount for leg in reversals) == sorted(-o.amount for o in originals)


def test_cancelled_originals_are_ignored(session, ctx, tree, approve, partial_cancel):
    approval, originals = approve(tree.merchant, 100_000)
    for leg in originals:
        leg.status = SettlementStatus.CANCELLED.value
    session.flush()
    cancel = partial_cancel(tree.merchant, -30_000)

    with pytest.raises(OriginalSettlementNotFoundError) as exc_info:
        PartialCancelCalculator(session, ctx).calculate_proportional(cancel, approval)
    assert exc_info.value.cancel_event_id == cancel.id
    assert exc_info.value.transaction_id == "TX-PC-1"


def test_missing_residual_leg_is_created(session, ctx, tree, approve, partial_cancel):
    approval, originals = approve(tree.merchant, 100_000)
    residual = next(leg for leg in originals if leg.is_residual)
    residual.status = SettlementStatus.CANCELLED.value
    session.flush()
    cancel = partial_cancel(tree.merchant, -33_333)

    reversals = PartialCancelCalculator(session, ctx).calculate_proportional(cancel, approval)

    # The merchant and margin legs do not cover the cancel; a fresh
    # distributor leg carries the difference.
    added = reversals[-1]
    assert added.is_residual
    assert added.entity_id == tree.distributor.id
    assert sum(leg.amount for leg in reversals) == -33_333


def test_missing_residual_goes_to_master_without_distributor(session, ctx, build_tree, card, approve, partial_cancel):
    tree = build_tree(with_distributor=False)
    approval, originals = approve(tree.merchant, 100_000, transaction_id="TX-PC-2")
    for leg in originals:
        if leg.is_residual:
            leg.status = SettlementStatus.CANCELLED.value
    session.flush()
    cancel = partial_cancel(tree.merchant, -30_000, transaction_id="TX-PC-2")

    reversals = PartialCancelCalculator(session, ctx).calculate_proportional(cancel, approval)

    assert reversals[-1].entity_path == list(MASTER_PATH)
    assert reversals[-1].entity_id is None
    assert sum(leg.amount for leg in reversals) == -30_000
