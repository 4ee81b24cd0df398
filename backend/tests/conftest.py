"""
Pytest fixtures for the POS ledger backend tests.

Provides test database setup, tenant/warehouse/user/product fixtures, a
composite product with its recipe, and test client helpers.
"""

from decimal import Decimal

import pytest
from pos_ledger import create_app
from pos_ledger.config import TestConfig
from pos_ledger.extensions import db
from pos_ledger.models import ComponentLink, Product, Tenant, User, Warehouse


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def tenant(db_session):
    """Tenant A (the tenant most tests run in)."""
    t = Tenant(name="Abarrotes Centro", code="CENTRO", is_active=True)
    db_session.add(t)
    db_session.commit()
    return t


@pytest.fixture(scope='function')
def other_tenant(db_session):
    """Tenant B, used for isolation checks."""
    t = Tenant(name="Tienda Norte", code="NORTE", is_active=True)
    db_session.add(t)
    db_session.commit()
    return t


@pytest.fixture(scope='function')
def warehouse(db_session, tenant):
    w = Warehouse(tenant_id=tenant.id, name="Sucursal Centro")
    db_session.add(w)
    db_session.commit()
    return w


@pytest.fixture(scope='function')
def cashier(db_session, tenant, warehouse):
    """Cashier assigned to the main warehouse."""
    user = User(tenant_id=tenant.id, username="cajero1", role="cashier", warehouse_id=warehouse.id)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def second_cashier(db_session, tenant, warehouse):
    user = User(tenant_id=tenant.id, username="cajero2", role="cashier", warehouse_id=warehouse.id)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin(db_session, tenant, warehouse):
    user = User(tenant_id=tenant.id, username="gerente", role="admin", warehouse_id=warehouse.id)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def super_admin(db_session, tenant):
    user = User(tenant_id=tenant.id, username="dueno", role="super_admin")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def unassigned_user(db_session, tenant):
    """User with no warehouse assignment (sales skip stock and cash effects)."""
    user = User(tenant_id=tenant.id, username="sin_sucursal", role="cashier")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def product_a(db_session, tenant):
    """Simple piece product."""
    p = Product(tenant_id=tenant.id, name="Refresco 600ml", sku="REF-600", price=Decimal("100.00"))
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def product_kg(db_session, tenant):
    """Weighted product sold in fractional quantities."""
    p = Product(
        tenant_id=tenant.id,
        name="Queso Oaxaca",
        sku="QSO-KG",
        unit_type="kg",
        allows_fractional_quantity=True,
        price=Decimal("180.00"),
    )
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def combo(db_session, tenant):
    """
    Composite "Combo" = 2 x Bun + 1 x Patty.

    Returns (combo, bun, patty).
    """
    bun = Product(tenant_id=tenant.id, name="Bun", sku="BUN")
    patty = Product(tenant_id=tenant.id, name="Patty", sku="PATTY")
    combo_product = Product(tenant_id=tenant.id, name="Combo", sku="COMBO", is_composite=True, price=Decimal("120.00"))
    db_session.add_all([bun, patty, combo_product])
    db_session.commit()

    db_session.add_all([
        ComponentLink(
            tenant_id=tenant.id,
            parent_product_id=combo_product.id,
            component_product_id=bun.id,
            quantity_per_parent_unit=Decimal("2"),
        ),
        ComponentLink(
            tenant_id=tenant.id,
            parent_product_id=combo_product.id,
            component_product_id=patty.id,
            quantity_per_parent_unit=Decimal("1"),
        ),
    ])
    db_session.commit()
    return combo_product, bun, patty


def tenant_headers(user) -> dict:
    """Headers the auth gateway forwards for an authenticated user."""
    return {'X-Tenant-Id': str(user.tenant_id), 'X-User-Id': str(user.id)}


def line(product, quantity, unit_price) -> dict:
    """Sale item payload with line_total = quantity * unit_price."""
    qty = Decimal(str(quantity))
    price = Decimal(str(unit_price))
    return {
        'product_id': product.id,
        'quantity': str(qty),
        'unit_price': str(price),
        'line_total': str((qty * price).quantize(Decimal("0.01"))),
    }


@pytest.fixture
def headers_for():
    return tenant_headers


@pytest.fixture
def sale_line():
    return line
