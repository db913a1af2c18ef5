"""
Pytest fixtures for the settlement engine test suite.

Provides:
- A fresh in-memory SQLite database per test (SAVEPOINT-capable)
- Deterministic clock and execution context
- A five-tier organization tree with a merchant under the vendor
- Transaction event factory
- Structured log capture
"""

import itertools
import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy.orm import sessionmaker

from settlement_kernel.db.engine import build_engine, create_tables
from settlement_kernel.domain.clock import DeterministicClock
from settlement_kernel.domain.context import ExecutionContext
from settlement_kernel.domain.types import EventType, OrganizationType, SettlementCycle
from settlement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from settlement_kernel.models import Merchant, Organization, PaymentMethod, TransactionEvent
from settlement_kernel.services.hierarchy_service import HierarchyService

# Actor recorded on every row created by the fixtures
TEST_ACTOR_ID = uuid4()

# Monday 2024-03-04 10:00 in Seoul
DEFAULT_OCCURRED_AT = datetime(2024, 3, 4, 1, 0, tzinfo=UTC)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture settlement_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, settle):
            settle(event)
            logs = captured_logs()
            assert any(r["message"] == "settlements_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("settlement_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


def make_sqlite_engine():
    """Empty in-memory database with every settlement table."""
    engine = build_engine("sqlite://")
    create_tables(engine)
    return engine


@pytest.fixture
def engine():
    engine = make_sqlite_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Context
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 3, 5, 2, 0, tzinfo=UTC))


@pytest.fixture
def ctx(clock):
    return ExecutionContext(tenant_id="test-tenant", actor_id=TEST_ACTOR_ID, clock=clock)


@pytest.fixture
def hierarchy(session, ctx):
    return HierarchyService(session, ctx)


# =============================================================================
# Reference data
# =============================================================================


@pytest.fixture
def card(session):
    method = PaymentMethod(method_code="CARD", name="Credit card")
    session.add(method)
    session.flush()
    return method


@pytest.fixture
def transfer(session):
    method = PaymentMethod(method_code="TRANSFER", name="Bank transfer")
    session.add(method)
    session.flush()
    return method


@dataclass
class Tree:
    distributor: Organization
    agency: Organization
    dealer: Organization
    seller: Organization
    vendor: Organization
    merchant: Merchant

    @property
    def margin_orgs(self) -> list[Organization]:
        """Organizations that take a margin, nearest the merchant first."""
        return [self.vendor, self.seller, self.dealer, self.agency]


@pytest.fixture
def build_tree(hierarchy):
    """
    Factory for a full DISTRIBUTOR > AGENCY > DEALER > SELLER > VENDOR chain.

    Default CARD rates: merchant 3.0%, vendor 2.5%, seller 2.0%,
    dealer 1.5%, agency 1.0%, distributor 0.5%.
    """
    counter = itertools.count(1)

    def _build(
        prefix: str | None = None,
        merchant_rate="0.03",
        rates: dict[OrganizationType, str] | None = None,
        cycle: SettlementCycle = SettlementCycle.D_PLUS_1,
        with_distributor: bool = True,
    ) -> Tree:
        tag = prefix or f"T{next(counter)}"
        chain_rates = {
            OrganizationType.DISTRIBUTOR: "0.005",
            OrganizationType.AGENCY: "0.01",
            OrganizationType.DEALER: "0.015",
            OrganizationType.SELLER: "0.02",
            OrganizationType.VENDOR: "0.025",
        }
        chain_rates.update(rates or {})

        parent = None
        nodes: dict[OrganizationType, Organization | None] = {}
        for org_type in OrganizationType:
            if org_type == OrganizationType.DISTRIBUTOR and not with_distributor:
                nodes[org_type] = None
                continue
            parent = hierarchy.create_organization(
                org_code=f"{tag}-{org_type.value}",
                name=f"{tag} {org_type.value.title()}",
                org_type=org_type,
                parent=parent,
                fee_config={"CARD": chain_rates[org_type]},
            )
            nodes[org_type] = parent

        merchant = hierarchy.create_merchant(
            merchant_code=f"{tag}-M",
            name=f"{tag} Merchant",
            organization=nodes[OrganizationType.VENDOR],
            settlement_cycle=cycle,
            fee_config={"CARD": merchant_rate} if merchant_rate is not None else None,
        )
        return Tree(
            distributor=nodes[OrganizationType.DISTRIBUTOR],
            agency=nodes[OrganizationType.AGENCY],
            dealer=nodes[OrganizationType.DEALER],
            seller=nodes[OrganizationType.SELLER],
            vendor=nodes[OrganizationType.VENDOR],
            merchant=merchant,
        )

    return _build


@pytest.fixture
def tree(build_tree, card):
    return build_tree("ACME")


@pytest.fixture
def make_event(session, card):
    """Factory for flushed TransactionEvent rows."""
    counter = itertools.count(1)

    def _make(
        merchant: Merchant,
        amount: int,
        event_type: EventType = EventType.APPROVAL,
        transaction_id: str | None = None,
        event_sequence: int = 1,
        occurred_at: datetime = DEFAULT_OCCURRED_AT,
        payment_method: PaymentMethod | None = None,
        currency: str = "KRW",
    ) -> TransactionEvent:
        event = TransactionEvent(
            event_type=EventType(event_type).value,
            event_sequence=event_sequence,
            transaction_id=transaction_id or f"TX-{next(counter):06d}",
            merchant_id=merchant.id,
            merchant_path=list(merchant.org_path) + [str(merchant.id)],
            org_path=list(merchant.org_path),
            payment_method_id=(payment_method or card).id,
            amount=amount,
            currency=currency,
            occurred_at=occurred_at,
            created_by_id=TEST_ACTOR_ID,
        )
        session.add(event)
        session.flush()
        return event

    return _make
