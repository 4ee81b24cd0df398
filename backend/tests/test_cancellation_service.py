# Overview: Pytest coverage for sale cancellation as a compensating transaction.

"""
Sale Cancellation Tests

- sale + cancellation restores stock exactly (simple, composite, fractional)
- cash is reversed against the session that received it
- double cancellation is rejected and restores nothing
- a closed session blocks the whole cancellation
"""

from decimal import Decimal

import pytest

from pos_ledger.errors import InvalidStateError, NotFoundError
from pos_ledger.models import CashTransaction, Sale
from pos_ledger.services import (
    cancellation_service,
    component_service,
    register_service,
    sales_service,
    stock_service,
)
from pos_ledger.services.concurrency import unit_of_work


def _stock(product, warehouse):
    return stock_service.get_quantity(product.id, warehouse.id, product.tenant_id)


@pytest.fixture
def cash_sale(db_session, tenant, warehouse, cashier, product_a, sale_line):
    """Stock 50, session opened with 1000, one unit of A sold for 100 cash."""
    with unit_of_work():
        stock_service.adjust(product_a.id, warehouse.id, tenant.id, "50")
    session = register_service.open_session(tenant.id, cashier.id, "1000")
    sale = sales_service.create_sale(
        tenant.id, cashier.id, {"total": "100.00", "payment_method": "cash"}, [sale_line(product_a, 1, "100.00")],
    )
    return sale, session


class TestCancelSale:

    def test_cancel_restores_stock_and_cash(self, db_session, tenant, warehouse, cashier, product_a, cash_sale):
        sale, session = cash_sale

        assert cancellation_service.cancel_sale(sale.id, tenant.id, user_id=cashier.id) is True

        assert _stock(product_a, warehouse) == Decimal("50")
        reversal = db_session.query(CashTransaction).filter_by(type="sale_cancellation").one()
        assert reversal.amount == Decimal("-100.00")
        assert reversal.reference == f"CANCEL-{sale.id}"
        assert reversal.sale_id == sale.id
        assert reversal.cash_register_session_id == session.id

        summary = register_service.get_summary(session.id, tenant.id)
        assert summary["expected_balance"] == Decimal("1000.00")

        cancelled = db_session.get(Sale, sale.id)
        assert cancelled.status == "cancelled"
        assert cancelled.cancelled_by_user_id == cashier.id
        assert cancelled.cancelled_at is not None

    def test_cancel_keeps_history(self, db_session, tenant, cash_sale):
        sale, _ = cash_sale
        cancellation_service.cancel_sale(sale.id, tenant.id)

        assert db_session.query(Sale).count() == 1
        assert db_session.query(CashTransaction).count() == 2
        assert len(db_session.get(Sale, sale.id).items) == 1

    def test_double_cancellation_rejected(self, db_session, tenant, warehouse, product_a, cash_sale):
        sale, _ = cash_sale
        cancellation_service.cancel_sale(sale.id, tenant.id)

        with pytest.raises(InvalidStateError):
            cancellation_service.cancel_sale(sale.id, tenant.id)

        assert _stock(product_a, warehouse) == Decimal("50")
        assert db_session.query(CashTransaction).filter_by(type="sale_cancellation").count() == 1

    def test_closed_session_blocks_cancellation(self, db_session, tenant, warehouse, product_a, cash_sale):
        sale, session = cash_sale
        register_service.close_session(session.id, tenant.id, "1100")

        with pytest.raises(InvalidStateError):
            cancellation_service.cancel_sale(sale.id, tenant.id)

        assert db_session.get(Sale, sale.id).status == "completed"
        assert _stock(product_a, warehouse) == Decimal("49")
        assert db_session.query(CashTransaction).filter_by(type="sale_cancellation").count() == 0

    def test_other_tenant_not_found(self, db_session, other_tenant, cash_sale):
        sale, _ = cash_sale
        with pytest.raises(NotFoundError):
            cancellation_service.cancel_sale(sale.id, other_tenant.id)


class TestCancelRestoresStockExactly:

    def test_composite_round_trip(self, db_session, tenant, warehouse, cashier, combo, sale_line):
        combo_product, bun, patty = combo
        with unit_of_work():
            stock_service.adjust(bun.id, warehouse.id, tenant.id, "20")
            stock_service.adjust(patty.id, warehouse.id, tenant.id, "7")

        sale = sales_service.create_sale(
            tenant.id, cashier.id, {"total": "360.00"}, [sale_line(combo_product, 3, "120.00")],
        )
        assert _stock(bun, warehouse) == Decimal("14")

        cancellation_service.cancel_sale(sale.id, tenant.id)

        assert _stock(bun, warehouse) == Decimal("20")
        assert _stock(patty, warehouse) == Decimal("7")
        assert _stock(combo_product, warehouse) == Decimal("0")

    def test_recipe_edit_after_sale_does_not_change_reversal(
        self, db_session, tenant, warehouse, cashier, combo, product_a, sale_line,
    ):
        combo_product, bun, patty = combo
        with unit_of_work():
            stock_service.adjust(bun.id, warehouse.id, tenant.id, "20")
            stock_service.adjust(product_a.id, warehouse.id, tenant.id, "5")

        sale = sales_service.create_sale(
            tenant.id, cashier.id, {"total": "360.00"}, [sale_line(combo_product, 3, "120.00")],
        )
        assert _stock(bun, warehouse) == Decimal("14")

        # Bun leaves the recipe and A joins it after the sale
        with unit_of_work():
            component_service.remove_component(combo_product.id, bun.id, tenant.id)
            component_service.add_component(combo_product.id, product_a.id, "1", tenant.id)

        cancellation_service.cancel_sale(sale.id, tenant.id)

        assert _stock(bun, warehouse) == Decimal("20")
        assert _stock(patty, warehouse) == Decimal("0")
        assert _stock(product_a, warehouse) == Decimal("5")
        assert _stock(combo_product, warehouse) == Decimal("0")

    def test_fractional_round_trip(self, db_session, tenant, warehouse, cashier, product_kg, sale_line):
        with unit_of_work():
            stock_service.adjust(product_kg.id, warehouse.id, tenant.id, "3.141")

        sale = sales_service.create_sale(
            tenant.id, cashier.id, {"total": "59.94"}, [sale_line(product_kg, "0.333", "180.00")],
        )
        cancellation_service.cancel_sale(sale.id, tenant.id)

        assert _stock(product_kg, warehouse) == Decimal("3.141")

    def test_split_tender_reverses_only_cash(self, db_session, tenant, cashier, product_a, sale_line):
        session = register_service.open_session(tenant.id, cashier.id, "0")
        sale = sales_service.create_sale(
            tenant.id, cashier.id, {"total": "300.00"}, [sale_line(product_a, 3, "100.00")],
            payments=[{"method": "cash", "amount": "100.00"}, {"method": "card", "amount": "200.00"}],
        )

        cancellation_service.cancel_sale(sale.id, tenant.id)

        amounts = sorted(t.amount for t in db_session.query(CashTransaction).all())
        assert amounts == [Decimal("-100.00"), Decimal("100.00")]
        assert register_service.get_summary(session.id, tenant.id)["expected_balance"] == Decimal("0.00")

    def test_sale_without_warehouse_cancels_cleanly(self, db_session, tenant, unassigned_user, product_a, sale_line):
        sale = sales_service.create_sale(
            tenant.id, unassigned_user.id, {"total": "10"}, [sale_line(product_a, 1, "10")],
        )

        assert cancellation_service.cancel_sale(sale.id, tenant.id) is True
        assert db_session.get(Sale, sale.id).status == "cancelled"
