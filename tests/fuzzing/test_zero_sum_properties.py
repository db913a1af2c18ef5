"""
Property-based checks for fee allocation.

For any amount and any rate chain that decreases toward the root
(merchant > vendor >= seller >= dealer >= agency >= distributor):

- approval, full cancel and partial cancel legs sum to the event amount
- every organization margin has the sign of the event
- the merchant never receives more than the transaction amount
"""

from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from settlement_kernel.domain.types import (
    CreationStatus,
    EventType,
    OrganizationType,
    SettlementEntityType,
)
from settlement_kernel.services.settlement_creation_service import SettlementCreationService

FUZZ_SETTINGS = settings(
    max_examples=50,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture, HealthCheck.too_slow],
)

_CHAIN = [
    OrganizationType.VENDOR,
    OrganizationType.SELLER,
    OrganizationType.DEALER,
    OrganizationType.AGENCY,
    OrganizationType.DISTRIBUTOR,
]


def _rate(basis_points: int) -> str:
    return str(Decimal(basis_points) / Decimal(10_000))


@composite
def rate_chains(draw):
    """Merchant rate followed by five organization rates, root-most last."""
    merchant_bp = draw(st.integers(min_value=1, max_value=1_000))
    org_bps = sorted(
        draw(st.lists(st.integers(min_value=0, max_value=merchant_bp - 1), min_size=5, max_size=5)),
        reverse=True,
    )
    return _rate(merchant_bp), {org_type: _rate(bp) for org_type, bp in zip(_CHAIN, org_bps)}


amounts = st.integers(min_value=1, max_value=1_000_000_000)


def _settle(session, ctx, event, merchant):
    return SettlementCreationService(session, ctx).create_settlements(event, merchant, "CARD")


def _assert_margins_follow_sign(result, sign):
    for leg in result.settlements:
        if leg.entity_type != SettlementEntityType.MERCHANT.value and not leg.is_residual:
            assert leg.amount * sign >= 0


class TestZeroSumProperties:

    @given(amount=amounts, chain=rate_chains())
    @FUZZ_SETTINGS
    def test_approval_is_zero_sum(self, session, ctx, build_tree, make_event, amount, chain):
        merchant_rate, rates = chain
        tree = build_tree(merchant_rate=merchant_rate, rates=rates)
        event = make_event(tree.merchant, amount, transaction_id=f"TX-{uuid4()}")

        result = _settle(session, ctx, event, tree.merchant)

        assert result.status == CreationStatus.CREATED
        assert result.total_amount == amount
        _assert_margins_follow_sign(result, 1)
        merchant_leg = next(
            leg for leg in result.settlements
            if leg.entity_type == SettlementEntityType.MERCHANT.value
        )
        assert 0 <= merchant_leg.amount <= amount

    @given(amount=amounts, chain=rate_chains())
    @FUZZ_SETTINGS
    def test_full_cancel_is_zero_sum(self, session, ctx, build_tree, make_event, amount, chain):
        merchant_rate, rates = chain
        tree = build_tree(merchant_rate=merchant_rate, rates=rates)
        event = make_event(
            tree.merchant, -amount, event_type=EventType.CANCEL, transaction_id=f"TX-{uuid4()}"
        )

        result = _settle(session, ctx, event, tree.merchant)

        assert result.status == CreationStatus.CREATED
        assert result.total_amount == -amount
        _assert_margins_follow_sign(result, -1)

    @given(data=st.data(), chain=rate_chains())
    @FUZZ_SETTINGS
    def test_partial_cancel_is_zero_sum(self, session, ctx, build_tree, make_event, data, chain):
        amount = data.draw(st.integers(min_value=2, max_value=1_000_000_000), label="amount")
        cancelled = data.draw(st.integers(min_value=1, max_value=amount - 1), label="cancelled")
        merchant_rate, rates = chain
        tree = build_tree(merchant_rate=merchant_rate, rates=rates)
        transaction_id = f"TX-{uuid4()}"
        approval = make_event(tree.merchant, amount, transaction_id=transaction_id)
        approval_result = _settle(session, ctx, approval, tree.merchant)
        cancel = make_event(
            tree.merchant,
            -cancelled,
            event_type=EventType.PARTIAL_CANCEL,
            transaction_id=transaction_id,
            event_sequence=2,
        )

        result = _settle(session, ctx, cancel, tree.merchant)

        assert result.status == CreationStatus.CREATED
        assert result.total_amount == -cancelled
        _assert_margins_follow_sign(result, -1)
        # no reversal exceeds the leg it reverses
        originals = {str(leg.id): leg for leg in approval_result.settlements}
        for leg in result.settlements:
            if leg.is_residual:
                continue
            original = originals[leg.settlement_metadata["reverses_settlement_id"]]
            assert abs(leg.amount) <= abs(original.amount)
