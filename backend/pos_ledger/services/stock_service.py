# Overview: Service-layer operations for the stock ledger; per-warehouse signed quantities with atomic adjustment.

"""
Stock Ledger Invariants

- One WarehouseStock row per (product, warehouse, tenant), created lazily on
  the first non-zero adjustment.
- Quantities are signed decimals (3 places). Negative on-hand is recorded,
  never clamped: overselling is a business fact, not an error.
- Every change is a single storage-level increment
  (quantity = quantity + :delta). Python never reads a quantity and writes
  it back, so concurrent sellers of the same product cannot lose updates.
- adjust() does not commit. Callers compose it into a unit_of_work() with
  the rest of their writes.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import literal
from sqlalchemy.dialects import postgresql, sqlite

from ..errors import NotFoundError
from ..extensions import db
from ..models import Product, Warehouse, WarehouseStock
from ..models.types import Quantity
from ..time_utils import utcnow
from ..validation import parse_quantity

ZERO = Decimal("0.000")

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def require_product(product_id: int, tenant_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, tenant_id=tenant_id).first()
    if not product:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def require_warehouse(warehouse_id: int, tenant_id: int) -> Warehouse:
    warehouse = db.session.query(Warehouse).filter_by(id=warehouse_id, tenant_id=tenant_id).first()
    if not warehouse:
        raise NotFoundError("Warehouse not found", details={"warehouse_id": warehouse_id})
    return warehouse


def get_quantity(product_id: int, warehouse_id: int, tenant_id: int) -> Decimal:
    """Current on-hand quantity (0 when no row exists yet)."""
    qty = (
        db.session.query(WarehouseStock.quantity)
        .filter_by(product_id=product_id, warehouse_id=warehouse_id, tenant_id=tenant_id)
        .scalar()
    )
    return ZERO if qty is None else qty


def _upsert_increment(insert_fn, product_id: int, warehouse_id: int, tenant_id: int, delta: Decimal) -> None:
    table = WarehouseStock.__table__
    stmt = insert_fn(table).values(
        product_id=product_id,
        warehouse_id=warehouse_id,
        tenant_id=tenant_id,
        quantity=delta,
        created_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.product_id, table.c.warehouse_id, table.c.tenant_id],
        set_={"quantity": table.c.quantity + stmt.excluded.quantity},
    )
    db.session.execute(stmt)


def _update_or_insert(product_id: int, warehouse_id: int, tenant_id: int, delta: Decimal) -> None:
    table = WarehouseStock.__table__
    result = db.session.execute(
        table.update()
        .where(
            table.c.product_id == product_id,
            table.c.warehouse_id == warehouse_id,
            table.c.tenant_id == tenant_id,
        )
        .values(quantity=table.c.quantity + literal(delta, Quantity()))
    )
    if result.rowcount == 0:
        db.session.execute(
            table.insert().values(
                product_id=product_id,
                warehouse_id=warehouse_id,
                tenant_id=tenant_id,
                quantity=delta,
                created_at=utcnow(),
            )
        )


def adjust(product_id: int, warehouse_id: int, tenant_id: int, delta) -> Decimal:
    """
    Apply a signed delta to one stock row and return the new quantity.

    No row yet -> a row is created holding exactly `delta` (negative allowed).
    A zero delta changes nothing and creates no row.

    Raises:
        ValidationError: delta is not a finite decimal with <= 3 places
        NotFoundError: product or warehouse does not belong to the tenant
    """
    delta = parse_quantity(delta, "delta")
    require_product(product_id, tenant_id)
    require_warehouse(warehouse_id, tenant_id)

    if delta == 0:
        return get_quantity(product_id, warehouse_id, tenant_id)

    insert_fn = _UPSERT_DIALECTS.get(db.session.get_bind().dialect.name)
    if insert_fn is not None:
        _upsert_increment(insert_fn, product_id, warehouse_id, tenant_id, delta)
    else:
        _update_or_insert(product_id, warehouse_id, tenant_id, delta)

    return get_quantity(product_id, warehouse_id, tenant_id)


def list_stock(tenant_id: int, warehouse_id: int | None = None, product_id: int | None = None) -> list[WarehouseStock]:
    query = db.session.query(WarehouseStock).filter(WarehouseStock.tenant_id == tenant_id)
    if warehouse_id is not None:
        query = query.filter(WarehouseStock.warehouse_id == warehouse_id)
    if product_id is not None:
        query = query.filter(WarehouseStock.product_id == product_id)
    return query.order_by(WarehouseStock.warehouse_id.asc(), WarehouseStock.product_id.asc()).all()
