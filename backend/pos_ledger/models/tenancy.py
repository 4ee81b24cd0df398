from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Tenant(db.Model):
    """
    Multi-tenant root: every warehouse, product, sale and session belongs to one tenant.

    Tenant resolution itself (login, routing) happens upstream; this table only
    anchors foreign keys and the is_active switch.
    """
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Warehouse(db.Model):
    """
    Stock-holding location (branch / sucursal) within a tenant.

    Stock quantities are tracked per (product, warehouse, tenant).
    """
    __tablename__ = "warehouses"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_warehouses_tenant_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    tenant = db.relationship("Tenant", backref=db.backref("warehouses", lazy=True))

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id} name={self.name!r} tenant_id={self.tenant_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
        }


class User(db.Model):
    """
    Cashier / operator identity as seen by the ledger.

    Credentials live with the upstream auth service. The ledger needs only the
    tenant, the role (closure visibility) and the warehouse assignment that
    decides where a user's sales move stock.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "username", name="uq_users_tenant_username"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    username = db.Column(db.String(64), nullable=False)
    role = db.Column(db.String(32), nullable=False, default="cashier")  # cashier, admin, super_admin

    # Assigned warehouse; sales by a user without one skip stock and cash effects
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    tenant = db.relationship("Tenant", backref=db.backref("users", lazy=True))
    warehouse = db.relationship("Warehouse")

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} tenant_id={self.tenant_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "username": self.username,
            "role": self.role,
            "warehouse_id": self.warehouse_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
