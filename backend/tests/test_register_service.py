# Overview: Pytest coverage for cash register session lifecycle and reconciliation.

"""
Cash Register Session Tests

LIFECYCLE: absent -> open -> closed
- One open session per (tenant, user), enforced by a partial unique index
- Closing reconciles counted cash against the ledger-derived expected balance
- Values persisted at close equal a fresh recomputation
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from pos_ledger.errors import InvalidStateError, NotFoundError, ValidationError
from pos_ledger.models import CashRegisterSession, CashTransaction
from pos_ledger.services import cash_ledger_service, register_service
from pos_ledger.services.concurrency import unit_of_work


def _append(session, tx_type, amount):
    with unit_of_work():
        cash_ledger_service.append_transaction(session.id, session.tenant_id, tx_type, amount)


class TestOpenSession:

    def test_open_session_defaults(self, db_session, tenant, cashier, warehouse):
        session = register_service.open_session(tenant.id, cashier.id, "1000")

        assert session.status == "open"
        assert session.opening_amount == Decimal("1000.00")
        assert session.warehouse_id == warehouse.id
        assert session.name == "Register - cajero1"
        assert session.closed_at is None

    def test_second_open_session_rejected(self, db_session, tenant, cashier):
        register_service.open_session(tenant.id, cashier.id, "1000")

        with pytest.raises(InvalidStateError):
            register_service.open_session(tenant.id, cashier.id, "200")
        assert db_session.query(CashRegisterSession).count() == 1

    def test_different_users_can_each_open(self, db_session, tenant, cashier, second_cashier):
        register_service.open_session(tenant.id, cashier.id, "100")
        register_service.open_session(tenant.id, second_cashier.id, "100")

        assert len(register_service.list_active_sessions(tenant.id)) == 2

    def test_negative_opening_rejected(self, db_session, tenant, cashier):
        with pytest.raises(ValidationError):
            register_service.open_session(tenant.id, cashier.id, "-1")

    def test_unknown_user_not_found(self, db_session, tenant):
        with pytest.raises(NotFoundError):
            register_service.open_session(tenant.id, 424242, "0")

    def test_partial_unique_index_blocks_second_open_row(self, db_session, tenant, cashier):
        """The database itself refuses two open sessions for one user."""
        db_session.add_all([
            CashRegisterSession(tenant_id=tenant.id, user_id=cashier.id, name="A", opening_amount=Decimal("0")),
            CashRegisterSession(tenant_id=tenant.id, user_id=cashier.id, name="B", opening_amount=Decimal("0")),
        ])
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_reopen_after_close(self, db_session, tenant, cashier):
        first = register_service.open_session(tenant.id, cashier.id, "100")
        register_service.close_session(first.id, tenant.id, "100")

        second = register_service.open_session(tenant.id, cashier.id, "50")
        assert second.id != first.id
        assert register_service.get_active_session(tenant.id, cashier.id).id == second.id


class TestCloseSession:

    def test_close_with_shortage(self, db_session, tenant, cashier):
        """opening 500 + cash sales 1000, counted 1450 -> expected 1500, difference -50."""
        session = register_service.open_session(tenant.id, cashier.id, "500")
        _append(session, "sale", "600")
        _append(session, "sale", "400")

        result = register_service.close_session(session.id, tenant.id, "1450")

        assert result["expected_balance"] == Decimal("1500.00")
        assert result["difference"] == Decimal("-50.00")
        assert result["totals"]["sale"] == Decimal("1000.00")

        closed = db_session.get(CashRegisterSession, session.id)
        assert closed.status == "closed"
        assert closed.closing_amount == Decimal("1450.00")
        assert closed.expected_amount == Decimal("1500.00")
        assert closed.difference == Decimal("-50.00")

    def test_close_twice_rejected(self, db_session, tenant, cashier):
        session = register_service.open_session(tenant.id, cashier.id, "0")
        register_service.close_session(session.id, tenant.id, "0")

        with pytest.raises(InvalidStateError):
            register_service.close_session(session.id, tenant.id, "0")

    def test_closed_at_after_latest_transaction(self, db_session, tenant, cashier):
        session = register_service.open_session(tenant.id, cashier.id, "0")
        _append(session, "income", "10")
        register_service.close_session(session.id, tenant.id, "10")

        closed = db_session.get(CashRegisterSession, session.id)
        latest = db_session.query(CashTransaction.created_at).filter_by(cash_register_session_id=session.id).scalar()
        assert closed.closed_at > latest

    def test_persisted_values_match_fresh_recomputation(self, db_session, tenant, cashier):
        session = register_service.open_session(tenant.id, cashier.id, "250")
        _append(session, "sale", "99.99")
        _append(session, "expense", "12.50")
        _append(session, "sale_cancellation", "-20.00")
        register_service.close_session(session.id, tenant.id, "300")

        fresh = register_service.get_summary(session.id, tenant.id)
        stored = db_session.get(CashRegisterSession, session.id)
        assert fresh["expected_balance"] == stored.expected_amount == Decimal("317.49")
        assert fresh["difference"] == stored.difference == Decimal("-17.49")
        assert register_service.verify_session_totals(tenant.id) == []

    def test_verify_reports_tampered_session(self, db_session, tenant, cashier):
        session = register_service.open_session(tenant.id, cashier.id, "100")
        register_service.close_session(session.id, tenant.id, "100")

        stored = db_session.get(CashRegisterSession, session.id)
        stored.expected_amount = Decimal("90.00")
        db_session.commit()

        mismatches = register_service.verify_session_totals(tenant.id)
        assert len(mismatches) == 1
        assert mismatches[0]["fresh_expected"] == "100.00"

    def test_session_of_other_tenant_not_found(self, db_session, tenant, other_tenant, cashier):
        session = register_service.open_session(tenant.id, cashier.id, "0")
        with pytest.raises(NotFoundError):
            register_service.close_session(session.id, other_tenant.id, "0")


class TestCashMovements:

    def test_income_expense_withdrawal(self, db_session, tenant, cashier):
        session = register_service.open_session(tenant.id, cashier.id, "1000")
        income = register_service.record_cash_movement(tenant.id, cashier.id, "income", "200", category="propinas")
        register_service.record_cash_movement(tenant.id, cashier.id, "expense", "50", category="limpieza")
        register_service.record_cash_movement(tenant.id, cashier.id, "withdrawal", "300", reference="Deposito banco")

        assert income.reference == "Income - propinas"
        summary = register_service.get_summary(session.id, tenant.id)
        assert summary["expected_balance"] == Decimal("850.00")
        assert summary["difference"] is None

        withdrawals = register_service.list_cash_movements(tenant.id, "withdrawal")
        assert [w.reference for w in withdrawals] == ["Deposito banco"]

    def test_movement_without_open_session(self, db_session, tenant, cashier):
        with pytest.raises(InvalidStateError):
            register_service.record_cash_movement(tenant.id, cashier.id, "income", "10")

    def test_movement_type_restricted(self, db_session, tenant, cashier):
        register_service.open_session(tenant.id, cashier.id, "0")
        with pytest.raises(ValidationError):
            register_service.record_cash_movement(tenant.id, cashier.id, "sale", "10")


class TestClosures:

    def test_list_closures_filters_by_user(self, db_session, tenant, cashier, second_cashier):
        s1 = register_service.open_session(tenant.id, cashier.id, "100")
        s2 = register_service.open_session(tenant.id, second_cashier.id, "200")
        register_service.close_session(s1.id, tenant.id, "100")
        register_service.close_session(s2.id, tenant.id, "210")

        assert len(register_service.list_closures(tenant.id)) == 2
        mine = register_service.list_closures(tenant.id, user_id=second_cashier.id)
        assert len(mine) == 1
        assert mine[0]["difference"] == Decimal("10.00")
