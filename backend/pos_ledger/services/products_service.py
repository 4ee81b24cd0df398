# Overview: Service-layer operations for product master data.

from __future__ import annotations

from ..errors import ValidationError
from ..extensions import db
from ..models import Product
from ..models.inventory import UNIT_TYPES
from ..validation import clean_text, parse_money
from .concurrency import unit_of_work
from .tenant_service import require_tenant_row


def create_product(
    tenant_id: int,
    name: str,
    sku: str | None = None,
    *,
    is_composite: bool = False,
    unit_type: str = "piece",
    allows_fractional_quantity: bool = False,
    price=None,
    cost=None,
) -> Product:
    """
    Create a product for a tenant.

    Weight and volume units imply fractional quantities; a piece product may
    still opt in explicitly.
    """
    name = clean_text(name, "name", max_length=255, required=True)
    sku = clean_text(sku, "sku", max_length=64)
    if unit_type not in UNIT_TYPES:
        raise ValidationError("Invalid unit_type", details={"unit_type": unit_type, "allowed": list(UNIT_TYPES)})

    price_value = parse_money(price, "price", required=False)
    cost_value = parse_money(cost, "cost", required=False)

    require_tenant_row(tenant_id)

    with unit_of_work():
        product = Product(
            tenant_id=tenant_id,
            name=name,
            sku=sku,
            is_composite=bool(is_composite),
            unit_type=unit_type,
            allows_fractional_quantity=bool(allows_fractional_quantity) or unit_type != "piece",
            price=price_value,
            cost=cost_value,
            status="active",
        )
        db.session.add(product)
    return product


def list_products(tenant_id: int, composite: bool | None = None) -> list[Product]:
    query = db.session.query(Product).filter(Product.tenant_id == tenant_id)
    if composite is not None:
        query = query.filter(Product.is_composite.is_(composite))
    return query.order_by(Product.name.asc()).all()
