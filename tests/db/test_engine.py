"""Engine lifecycle, session_scope and SQLite SAVEPOINT behaviour."""

import pytest
from sqlalchemy import func, select

from settlement_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from settlement_kernel.models import PaymentMethod


@pytest.fixture
def module_engine():
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


def _method_count(session) -> int:
    return session.scalar(select(func.count()).select_from(PaymentMethod))


class TestModuleEngine:

    def test_uninitialized_raises(self):
        reset_engine()
        with pytest.raises(RuntimeError):
            get_engine()
        with pytest.raises(RuntimeError):
            get_session()
        with pytest.raises(RuntimeError):
            get_session_factory()

    def test_init_sets_engine_and_factory(self, module_engine):
        assert get_engine() is module_engine
        assert module_engine.dialect.name == "sqlite"
        session = get_session()
        try:
            assert session.bind is module_engine
        finally:
            session.close()


class TestSessionScope:

    def test_commits_on_success(self, module_engine):
        with session_scope() as session:
            session.add(PaymentMethod(method_code="CARD", name="Credit card"))

        with session_scope() as session:
            assert _method_count(session) == 1

    def test_rolls_back_and_reraises(self, module_engine, captured_logs):
        with pytest.raises(RuntimeError, match="boom"):
            with session_scope() as session:
                session.add(PaymentMethod(method_code="CARD", name="Credit card"))
                session.flush()
                raise RuntimeError("boom")

        with session_scope() as session:
            assert _method_count(session) == 0
        assert any(r["message"] == "transaction_rolled_back" for r in captured_logs())

    def test_explicit_factory(self, session_factory):
        with session_scope(session_factory) as session:
            session.add(PaymentMethod(method_code="TRANSFER", name="Bank transfer"))

        with session_scope(session_factory) as session:
            assert _method_count(session) == 1


def test_savepoint_rollback_keeps_outer_work(session):
    session.add(PaymentMethod(method_code="CARD", name="Credit card"))
    session.flush()

    nested = session.begin_nested()
    session.add(PaymentMethod(method_code="TRANSFER", name="Bank transfer"))
    session.flush()
    nested.rollback()

    assert _method_count(session) == 1
