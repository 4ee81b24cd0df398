"""
Tenant master data: tenants, warehouses and the users the ledger sees.

MULTI-TENANT: every lookup here takes the tenant id explicitly and filters
on it; a row belonging to another tenant is reported as not found.
"""

from __future__ import annotations

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Tenant, User, Warehouse
from ..validation import clean_text
from .concurrency import unit_of_work

USER_ROLES = ("cashier", "admin", "super_admin")


def require_tenant_row(tenant_id: int) -> Tenant:
    tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()
    if not tenant:
        raise NotFoundError("Tenant not found", details={"tenant_id": tenant_id})
    return tenant


def require_user(user_id: int, tenant_id: int) -> User:
    user = db.session.query(User).filter_by(id=user_id, tenant_id=tenant_id).first()
    if not user:
        raise NotFoundError("User not found", details={"user_id": user_id})
    return user


def create_tenant(name: str, code: str | None = None) -> Tenant:
    name = clean_text(name, "name", max_length=255, required=True)
    code = clean_text(code, "code", max_length=32)

    if code and db.session.query(Tenant).filter_by(code=code).first():
        raise InvalidStateError("Tenant code already exists", details={"code": code})

    with unit_of_work():
        tenant = Tenant(name=name, code=code, is_active=True)
        db.session.add(tenant)
    return tenant


def create_warehouse(tenant_id: int, name: str, address: str | None = None, phone: str | None = None) -> Warehouse:
    name = clean_text(name, "name", max_length=128, required=True)
    address = clean_text(address, "address", max_length=255)
    phone = clean_text(phone, "phone", max_length=32)

    require_tenant_row(tenant_id)
    if db.session.query(Warehouse).filter_by(tenant_id=tenant_id, name=name).first():
        raise InvalidStateError("Warehouse name already exists", details={"name": name})

    with unit_of_work():
        warehouse = Warehouse(tenant_id=tenant_id, name=name, address=address, phone=phone)
        db.session.add(warehouse)
    return warehouse


def list_warehouses(tenant_id: int) -> list[Warehouse]:
    return (
        db.session.query(Warehouse)
        .filter(Warehouse.tenant_id == tenant_id)
        .order_by(Warehouse.name.asc())
        .all()
    )


def create_user(
    tenant_id: int,
    username: str,
    role: str = "cashier",
    warehouse_id: int | None = None,
) -> User:
    username = clean_text(username, "username", max_length=64, required=True)
    if role not in USER_ROLES:
        raise ValidationError("Invalid role", details={"role": role, "allowed": list(USER_ROLES)})

    require_tenant_row(tenant_id)
    if warehouse_id is not None:
        if not db.session.query(Warehouse).filter_by(id=warehouse_id, tenant_id=tenant_id).first():
            raise NotFoundError("Warehouse not found", details={"warehouse_id": warehouse_id})

    if db.session.query(User).filter_by(tenant_id=tenant_id, username=username).first():
        raise InvalidStateError("Username already exists", details={"username": username})

    with unit_of_work():
        user = User(tenant_id=tenant_id, username=username, role=role, warehouse_id=warehouse_id, is_active=True)
        db.session.add(user)
    return user


def assign_warehouse(user_id: int, tenant_id: int, warehouse_id: int | None) -> User:
    """
    Point a user at a warehouse, or clear the assignment with None.

    Sales by the user move stock in this warehouse from the next sale on;
    sales already made keep the warehouse they were recorded against.
    """
    user = require_user(user_id, tenant_id)
    if warehouse_id is not None:
        if not db.session.query(Warehouse).filter_by(id=warehouse_id, tenant_id=tenant_id).first():
            raise NotFoundError("Warehouse not found", details={"warehouse_id": warehouse_id})

    with unit_of_work():
        user.warehouse_id = warehouse_id
    return user
