# Overview: Service-layer operations for composite products; recipe resolution and maintenance.

"""
Composite product recipes.

A composite ("bundle") product owns ComponentLink rows naming each component
product and how many units of it one parent unit consumes. Selling Q parents
moves the parent's own stock row by -Q and every component row by
-(quantity_per_parent_unit * Q); cancelling reverses both.

INVARIANTS (enforced when a link is added):
- Only composite products may own links.
- A product is never its own component.
- The parent -> component graph stays acyclic.

Resolution is one level deep: the direct components of the recipe as it is
stored at the time of the call.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import ComponentLink
from ..validation import parse_money, parse_quantity, require_positive
from .stock_service import require_product

QUANTITY_STEP = Decimal("0.001")


def resolve(product_id: int, tenant_id: int) -> list[tuple[int, Decimal]]:
    """
    Return [(component_product_id, quantity_per_unit), ...] for a product.

    Simple (non-composite) products resolve to an empty list.
    """
    product = require_product(product_id, tenant_id)
    if not product.is_composite:
        return []

    rows = (
        db.session.query(ComponentLink.component_product_id, ComponentLink.quantity_per_parent_unit)
        .filter(
            ComponentLink.parent_product_id == product_id,
            ComponentLink.tenant_id == tenant_id,
        )
        .order_by(ComponentLink.id.asc())
        .all()
    )
    return [(component_id, qpu) for component_id, qpu in rows]


def get_components(product_id: int, tenant_id: int) -> list[dict]:
    """Recipe lines joined with the component product's details."""
    require_product(product_id, tenant_id)
    links = (
        db.session.query(ComponentLink)
        .filter(
            ComponentLink.parent_product_id == product_id,
            ComponentLink.tenant_id == tenant_id,
        )
        .order_by(ComponentLink.id.asc())
        .all()
    )
    result = []
    for link in links:
        data = link.to_dict()
        data["component"] = {
            "id": link.component.id,
            "name": link.component.name,
            "sku": link.component.sku,
            "unit_type": link.component.unit_type,
            "is_composite": link.component.is_composite,
        }
        result.append(data)
    return result


def _reaches(start_id: int, target_id: int, tenant_id: int) -> bool:
    """True when target_id is reachable from start_id along parent -> component edges."""
    seen: set[int] = set()
    stack = [start_id]
    while stack:
        current = stack.pop()
        if current == target_id:
            return True
        if current in seen:
            continue
        seen.add(current)
        children = (
            db.session.query(ComponentLink.component_product_id)
            .filter(
                ComponentLink.parent_product_id == current,
                ComponentLink.tenant_id == tenant_id,
            )
            .all()
        )
        stack.extend(child_id for (child_id,) in children)
    return False


def add_component(
    parent_id: int,
    component_id: int,
    quantity,
    tenant_id: int,
    cost=None,
) -> ComponentLink:
    """
    Add one component line to a composite product's recipe.

    Does not commit; wrap in unit_of_work().

    Raises:
        ValidationError: bad quantity, self-reference, or a link that would close a cycle
        InvalidStateError: parent is not composite, or the link already exists
        NotFoundError: either product is missing for the tenant
    """
    qty = require_positive(parse_quantity(quantity, "quantity"), "quantity")
    cost_value = parse_money(cost, "cost", required=False)

    if parent_id == component_id:
        raise ValidationError("A product cannot be a component of itself", details={"product_id": parent_id})

    parent = require_product(parent_id, tenant_id)
    require_product(component_id, tenant_id)

    if not parent.is_composite:
        raise InvalidStateError(
            "Only composite products can have components",
            details={"product_id": parent_id},
        )

    existing = (
        db.session.query(ComponentLink)
        .filter_by(parent_product_id=parent_id, component_product_id=component_id, tenant_id=tenant_id)
        .first()
    )
    if existing:
        raise InvalidStateError(
            "Component already linked to this product",
            details={"parent_product_id": parent_id, "component_product_id": component_id},
        )

    if _reaches(component_id, parent_id, tenant_id):
        raise ValidationError(
            "Component link would create a cycle",
            details={"parent_product_id": parent_id, "component_product_id": component_id},
        )

    link = ComponentLink(
        tenant_id=tenant_id,
        parent_product_id=parent_id,
        component_product_id=component_id,
        quantity_per_parent_unit=qty,
        cost=cost_value,
    )
    db.session.add(link)
    db.session.flush()
    return link


def remove_component(parent_id: int, component_id: int, tenant_id: int) -> None:
    link = (
        db.session.query(ComponentLink)
        .filter_by(parent_product_id=parent_id, component_product_id=component_id, tenant_id=tenant_id)
        .first()
    )
    if not link:
        raise NotFoundError(
            "Component link not found",
            details={"parent_product_id": parent_id, "component_product_id": component_id},
        )
    db.session.delete(link)
    db.session.flush()


def component_delta(quantity_per_unit: Decimal, quantity: Decimal) -> Decimal:
    """Stock movement for one component when `quantity` parents move (unsigned, 3 places)."""
    return (quantity_per_unit * quantity).quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)
