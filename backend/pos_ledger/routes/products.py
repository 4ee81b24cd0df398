# Overview: Flask API routes for products and composite product recipes.

# backend/pos_ledger/routes/products.py
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PosLedgerError
from ..services import component_service, products_service, stock_service
from ..services.concurrency import unit_of_work
from ..decorators import require_tenant, require_role
from ..validation import parse_int_id


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_tenant
def list_products_route():
    products = products_service.list_products(g.tenant_id)
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.post("")
@require_tenant
@require_role("admin", "super_admin")
def create_product_route():
    try:
        data = request.get_json(silent=True) or {}
        product = products_service.create_product(
            g.tenant_id,
            data.get("name"),
            data.get("sku"),
            is_composite=bool(data.get("is_composite", False)),
            unit_type=data.get("unit_type") or "piece",
            allows_fractional_quantity=bool(data.get("allows_fractional_quantity", False)),
            price=data.get("price"),
            cost=data.get("cost"),
        )
        return jsonify({"product": product.to_dict()}), 201

    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_tenant
def get_product_route(product_id: int):
    try:
        product = stock_service.require_product(product_id, g.tenant_id)
        return jsonify({"product": product.to_dict()}), 200
    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@products_bp.get("/<int:product_id>/components")
@require_tenant
def list_components_route(product_id: int):
    try:
        components = component_service.get_components(product_id, g.tenant_id)
        return jsonify({"components": components}), 200
    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@products_bp.post("/<int:product_id>/components")
@require_tenant
@require_role("admin", "super_admin")
def add_component_route(product_id: int):
    """Body: {"component_product_id": 2, "quantity": "2", "cost": "5.00"}"""
    try:
        data = request.get_json(silent=True) or {}
        component_id = parse_int_id(data.get("component_product_id"), "component_product_id")
        with unit_of_work():
            link = component_service.add_component(
                product_id,
                component_id,
                data.get("quantity"),
                g.tenant_id,
                cost=data.get("cost"),
            )
        return jsonify({"component": link.to_dict()}), 201

    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to add product component")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>/components/<int:component_id>")
@require_tenant
@require_role("admin", "super_admin")
def remove_component_route(product_id: int, component_id: int):
    try:
        with unit_of_work():
            component_service.remove_component(product_id, component_id, g.tenant_id)
        return jsonify({"removed": True}), 200

    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status
