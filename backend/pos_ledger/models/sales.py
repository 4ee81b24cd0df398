from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .types import FixedPoint, Money, Quantity, decimal_str


SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_CANCELLED = "cancelled"


class Sale(db.Model):
    """
    Completed sale header.

    LIFECYCLE:
    - Created once, atomically with its items, payments, stock deltas and
      optional cash transaction (status=completed).
    - Cancellation is a compensating transaction: it flips status to
      cancelled and appends reversing rows. Sales are never deleted.

    Totals are caller-supplied (the pricing engine is upstream) and stored
    as submitted.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_tenant_status_created", "tenant_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Creating user's assigned warehouse at sale time (null = no stock effects)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True, index=True)

    subtotal = db.Column(Money(), nullable=False, default=0)
    tax = db.Column(Money(), nullable=False, default=0)
    discount = db.Column(Money(), nullable=False, default=0)
    total = db.Column(Money(), nullable=False)

    payment_method = db.Column(db.String(32), nullable=False)
    ticket_title = db.Column(db.String(128), nullable=True)
    customer_name = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED, index=True)

    # Session that received this sale's cash (null when no cash hit a drawer)
    cash_register_session_id = db.Column(
        db.Integer, db.ForeignKey("cash_register_sessions.id"), nullable=True, index=True
    )

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    # Cancellation audit trail
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancelled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship("SaleItem", backref="sale", lazy=True, order_by="SaleItem.id")
    payments = db.relationship("SalePayment", backref="sale", lazy=True, order_by="SalePayment.id")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_children: bool = False) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "warehouse_id": self.warehouse_id,
            "subtotal": decimal_str(self.subtotal),
            "tax": decimal_str(self.tax),
            "discount": decimal_str(self.discount),
            "total": decimal_str(self.total),
            "payment_method": self.payment_method,
            "ticket_title": self.ticket_title,
            "customer_name": self.customer_name,
            "notes": self.notes,
            "status": self.status,
            "cash_register_session_id": self.cash_register_session_id,
            "created_at": to_utc_z(self.created_at),
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "cancelled_by_user_id": self.cancelled_by_user_id,
            "version_id": self.version_id,
        }
        if include_children:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class SaleItem(db.Model):
    """Individual line on a sale. Immutable after creation."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(Quantity(), nullable=False)
    unit_price = db.Column(Money(), nullable=False)
    line_total = db.Column(Money(), nullable=False)

    product = db.relationship("Product")
    components = db.relationship(
        "SaleItemComponent", backref="sale_item", lazy=True, order_by="SaleItemComponent.id"
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": decimal_str(self.quantity),
            "unit_price": decimal_str(self.unit_price),
            "line_total": decimal_str(self.line_total),
            "components": [c.to_dict() for c in self.components],
        }


class SaleItemComponent(db.Model):
    """
    Component stock moved by one composite sale line.

    Written with the sale from the recipe in force at that moment. A
    cancellation replays these rows instead of the current recipe, so later
    recipe edits never change what a cancellation restores.
    """
    __tablename__ = "sale_item_components"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_item_id = db.Column(db.Integer, db.ForeignKey("sale_items.id"), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    component_product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Units of the component taken out of stock for the whole line
    quantity = db.Column(Quantity(), nullable=False)

    def to_dict(self) -> dict:
        return {
            "component_product_id": self.component_product_id,
            "quantity": decimal_str(self.quantity),
        }


class SalePayment(db.Model):
    """
    One tender of a sale.

    SPLIT TENDER: a sale may carry several payments (cash + card, ...).
    They are stored exactly as submitted; their sum is not forced to match
    the sale total.
    """
    __tablename__ = "sale_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    method = db.Column(db.String(32), nullable=False, index=True)  # cash, card, transfer, credit, ...
    amount = db.Column(Money(), nullable=False)
    currency = db.Column(db.String(8), nullable=False)
    exchange_rate = db.Column(FixedPoint(4), nullable=False, default=1)
    reference = db.Column(db.String(128), nullable=True)  # authorization number, transfer id, ...

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "method": self.method,
            "amount": decimal_str(self.amount),
            "currency": self.currency,
            "exchange_rate": decimal_str(self.exchange_rate),
            "reference": self.reference,
            "created_at": to_utc_z(self.created_at),
        }
