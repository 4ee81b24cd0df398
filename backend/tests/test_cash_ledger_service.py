# Overview: Pytest coverage for the append-only cash transaction ledger.

"""
Cash Ledger Tests

- Sign rules per transaction type
- Closed sessions reject every further transaction
- Per-type totals are computed in SQL over the session window
- Expected balance does not depend on insertion order
"""

from decimal import Decimal

import pytest

from pos_ledger.errors import InvalidStateError, NotFoundError, ValidationError
from pos_ledger.models import CashTransaction
from pos_ledger.services import cash_ledger_service, register_service
from pos_ledger.services.concurrency import unit_of_work


@pytest.fixture
def open_session(db_session, tenant, cashier):
    return register_service.open_session(tenant.id, cashier.id, "1000")


def _append(session, tx_type, amount, **kwargs):
    with unit_of_work():
        return cash_ledger_service.append_transaction(session.id, session.tenant_id, tx_type, amount, **kwargs)


class TestAppend:

    def test_append_income(self, db_session, open_session, cashier):
        tx = _append(open_session, "income", "200.00", user_id=cashier.id, category="propinas")

        assert tx.amount == Decimal("200.00")
        assert tx.type == "income"
        assert tx.created_at >= open_session.opened_at

    @pytest.mark.parametrize("tx_type,amount", [
        ("sale", "-5"),
        ("sale", "0"),
        ("sale_cancellation", "5"),
        ("income", "-1"),
        ("expense", "0"),
        ("withdrawal", "-10"),
    ])
    def test_sign_rules(self, db_session, open_session, tx_type, amount):
        with pytest.raises(ValidationError):
            _append(open_session, tx_type, amount)
        assert db_session.query(CashTransaction).count() == 0

    def test_unknown_type_rejected(self, db_session, open_session):
        with pytest.raises(ValidationError):
            _append(open_session, "refund", "10")

    def test_float_amount_rejected(self, db_session, open_session):
        with pytest.raises(ValidationError):
            _append(open_session, "income", 10.5)

    def test_closed_session_rejects_append(self, db_session, open_session):
        register_service.close_session(open_session.id, open_session.tenant_id, "1000")

        with pytest.raises(InvalidStateError):
            _append(open_session, "income", "10")
        assert db_session.query(CashTransaction).count() == 0

    def test_session_of_other_tenant_not_found(self, db_session, open_session, other_tenant):
        with pytest.raises(NotFoundError):
            with unit_of_work():
                cash_ledger_service.append_transaction(open_session.id, other_tenant.id, "income", "10")


class TestTotals:

    def test_totals_grouped_by_type(self, db_session, open_session):
        _append(open_session, "sale", "100")
        _append(open_session, "sale", "50.50")
        _append(open_session, "sale_cancellation", "-50.50")
        _append(open_session, "income", "20")
        _append(open_session, "expense", "5.25")
        _append(open_session, "withdrawal", "300")

        totals = cash_ledger_service.session_totals(open_session)
        assert totals == {
            "sale": Decimal("150.50"),
            "sale_cancellation": Decimal("-50.50"),
            "income": Decimal("20.00"),
            "expense": Decimal("5.25"),
            "withdrawal": Decimal("300.00"),
        }

    def test_empty_session_totals_are_zero(self, db_session, open_session):
        totals = cash_ledger_service.session_totals(open_session)
        assert set(totals) == {"sale", "sale_cancellation", "income", "expense", "withdrawal"}
        assert all(v == Decimal("0") for v in totals.values())

    def test_expected_balance_is_order_independent(self, db_session, tenant, cashier, second_cashier):
        """Same multiset of transactions in opposite orders -> same expected balance."""
        events = [
            ("sale", "100"),
            ("income", "40"),
            ("expense", "15.75"),
            ("sale", "250.25"),
            ("withdrawal", "200"),
            ("sale_cancellation", "-100"),
        ]
        first = register_service.open_session(tenant.id, cashier.id, "500")
        second = register_service.open_session(tenant.id, second_cashier.id, "500")

        for tx_type, amount in events:
            _append(first, tx_type, amount)
        for tx_type, amount in reversed(events):
            _append(second, tx_type, amount)

        a = register_service.get_summary(first.id, tenant.id)["expected_balance"]
        b = register_service.get_summary(second.id, tenant.id)["expected_balance"]
        assert a == b == Decimal("574.50")


class TestListTransactions:

    def test_filters(self, db_session, open_session):
        _append(open_session, "sale", "100")
        _append(open_session, "income", "20")

        assert len(cash_ledger_service.list_transactions(open_session.tenant_id)) == 2
        incomes = cash_ledger_service.list_transactions(open_session.tenant_id, tx_type="income")
        assert [t.amount for t in incomes] == [Decimal("20.00")]
        assert cash_ledger_service.list_transactions(open_session.tenant_id, session_id=open_session.id + 1) == []
