from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .types import Money, Quantity, decimal_str


UNIT_TYPES = ("piece", "kg", "g", "l", "ml", "m", "cm")


class Product(db.Model):
    """
    Product master data.

    MULTI-TENANT: Products are scoped to tenants via tenant_id.

    COMPOSITE PRODUCTS: is_composite products own a recipe of ComponentLink
    rows. Selling one moves the composite's own stock row and every
    component's row.

    FRACTIONAL QUANTITIES: weight/volume goods (unit_type kg, l, ...) set
    allows_fractional_quantity so sale lines may carry e.g. 0.5.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_tenant_name", "tenant_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)

    is_composite = db.Column(db.Boolean, nullable=False, default=False)
    unit_type = db.Column(db.String(16), nullable=False, default="piece")
    allows_fractional_quantity = db.Column(db.Boolean, nullable=False, default=False)

    # Informational only; the pricing engine hands the sale its final unit price
    price = db.Column(Money(), nullable=True)
    cost = db.Column(Money(), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="active")  # active, inactive

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    tenant = db.relationship("Tenant", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} tenant_id={self.tenant_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "sku": self.sku,
            "is_composite": self.is_composite,
            "unit_type": self.unit_type,
            "allows_fractional_quantity": self.allows_fractional_quantity,
            "price": decimal_str(self.price),
            "cost": decimal_str(self.cost),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class ComponentLink(db.Model):
    """
    One line of a composite product's recipe.

    INVARIANTS:
    - component_product_id != parent_product_id
    - (parent, component) is unique
    - the parent -> component graph is acyclic (checked when a link is added)
    """
    __tablename__ = "component_links"
    __table_args__ = (
        db.UniqueConstraint("parent_product_id", "component_product_id", name="uq_component_links_parent_component"),
        db.CheckConstraint("parent_product_id <> component_product_id", name="ck_component_links_not_self"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    parent_product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    component_product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_per_parent_unit = db.Column(Quantity(), nullable=False)
    cost = db.Column(Money(), nullable=True)  # snapshot at link time

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    parent = db.relationship("Product", foreign_keys=[parent_product_id], backref=db.backref("component_links", lazy=True))
    component = db.relationship("Product", foreign_keys=[component_product_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "parent_product_id": self.parent_product_id,
            "component_product_id": self.component_product_id,
            "quantity_per_parent_unit": decimal_str(self.quantity_per_parent_unit),
            "cost": decimal_str(self.cost),
            "created_at": to_utc_z(self.created_at),
        }


class WarehouseStock(db.Model):
    """
    Signed on-hand quantity per (product, warehouse, tenant).

    Rows are created lazily on the first adjustment. Negative quantities are
    representable (oversell is recorded, not blocked).

    CONCURRENCY: quantity is only ever changed through stock_service.adjust,
    which issues a single atomic `quantity = quantity + :delta` statement.
    """
    __tablename__ = "warehouse_stock"
    __table_args__ = (
        db.UniqueConstraint("product_id", "warehouse_id", "tenant_id", name="uq_warehouse_stock_key"),
        db.Index("ix_warehouse_stock_tenant_warehouse", "tenant_id", "warehouse_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False)

    quantity = db.Column(Quantity(), nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    product = db.relationship("Product")
    warehouse = db.relationship("Warehouse")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "tenant_id": self.tenant_id,
            "quantity": decimal_str(self.quantity),
            "created_at": to_utc_z(self.created_at),
        }
