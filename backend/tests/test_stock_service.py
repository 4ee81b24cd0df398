# Overview: Pytest coverage for the warehouse stock ledger.

"""
Stock Ledger Tests

- Rows are created lazily and hold exactly the first delta (negatives allowed)
- Adjustments accumulate exactly, including fractional quantities
- Zero deltas are no-ops
- Invalid deltas and cross-tenant keys are rejected before any write
"""

from decimal import Decimal

import pytest

from pos_ledger.errors import NotFoundError, ValidationError
from pos_ledger.models import WarehouseStock
from pos_ledger.services import stock_service
from pos_ledger.services.concurrency import unit_of_work


class TestAdjust:

    def test_first_adjustment_creates_row(self, db_session, tenant, warehouse, product_a):
        with unit_of_work():
            qty = stock_service.adjust(product_a.id, warehouse.id, tenant.id, "50")

        assert qty == Decimal("50")
        rows = db_session.query(WarehouseStock).all()
        assert len(rows) == 1
        assert rows[0].quantity == Decimal("50.000")

    def test_negative_first_adjustment_is_recorded(self, db_session, tenant, warehouse, product_a):
        """Overselling is a fact, not an error: no clamping at zero."""
        with unit_of_work():
            qty = stock_service.adjust(product_a.id, warehouse.id, tenant.id, -3)

        assert qty == Decimal("-3")
        assert stock_service.get_quantity(product_a.id, warehouse.id, tenant.id) == Decimal("-3")

    def test_adjustments_accumulate(self, db_session, tenant, warehouse, product_a):
        with unit_of_work():
            stock_service.adjust(product_a.id, warehouse.id, tenant.id, "50")
            stock_service.adjust(product_a.id, warehouse.id, tenant.id, "-1")
            qty = stock_service.adjust(product_a.id, warehouse.id, tenant.id, "-60")

        assert qty == Decimal("-11")
        assert db_session.query(WarehouseStock).count() == 1

    def test_fractional_adjustments_are_exact(self, db_session, tenant, warehouse, product_kg):
        with unit_of_work():
            for delta in ("0.1", "0.1", "0.1", "-0.25", "1.375"):
                stock_service.adjust(product_kg.id, warehouse.id, tenant.id, delta)

        assert stock_service.get_quantity(product_kg.id, warehouse.id, tenant.id) == Decimal("1.425")

    def test_zero_delta_creates_no_row(self, db_session, tenant, warehouse, product_a):
        with unit_of_work():
            qty = stock_service.adjust(product_a.id, warehouse.id, tenant.id, "0")

        assert qty == Decimal("0")
        assert db_session.query(WarehouseStock).count() == 0

    def test_uncommitted_adjustment_rolls_back(self, db_session, tenant, warehouse, product_a):
        with pytest.raises(RuntimeError):
            with unit_of_work():
                stock_service.adjust(product_a.id, warehouse.id, tenant.id, "5")
                raise RuntimeError("boom")

        assert stock_service.get_quantity(product_a.id, warehouse.id, tenant.id) == Decimal("0")


class TestAdjustValidation:

    @pytest.mark.parametrize("delta", [1.5, "abc", "1e3", "0.0001", "NaN", None, True])
    def test_invalid_delta_rejected(self, db_session, tenant, warehouse, product_a, delta):
        with pytest.raises(ValidationError):
            stock_service.adjust(product_a.id, warehouse.id, tenant.id, delta)
        assert db_session.query(WarehouseStock).count() == 0

    def test_product_of_other_tenant_not_found(self, db_session, tenant, other_tenant, warehouse, product_a):
        with pytest.raises(NotFoundError):
            stock_service.adjust(product_a.id, warehouse.id, other_tenant.id, "1")

    def test_unknown_warehouse_not_found(self, db_session, tenant, product_a):
        with pytest.raises(NotFoundError):
            stock_service.adjust(product_a.id, 999999, tenant.id, "1")


class TestReads:

    def test_get_quantity_without_row_is_zero(self, db_session, tenant, warehouse, product_a):
        assert stock_service.get_quantity(product_a.id, warehouse.id, tenant.id) == Decimal("0")

    def test_list_stock_filters(self, db_session, tenant, warehouse, product_a, product_kg):
        with unit_of_work():
            stock_service.adjust(product_a.id, warehouse.id, tenant.id, "10")
            stock_service.adjust(product_kg.id, warehouse.id, tenant.id, "2.5")

        assert len(stock_service.list_stock(tenant.id)) == 2
        rows = stock_service.list_stock(tenant.id, product_id=product_kg.id)
        assert [r.quantity for r in rows] == [Decimal("2.500")]

    def test_list_stock_is_tenant_scoped(self, db_session, tenant, other_tenant, warehouse, product_a):
        with unit_of_work():
            stock_service.adjust(product_a.id, warehouse.id, tenant.id, "10")

        assert stock_service.list_stock(other_tenant.id) == []
