# Overview: Flask API routes for warehouses and warehouse stock; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PosLedgerError
from ..models.types import decimal_str
from ..services import stock_service, tenant_service
from ..services.concurrency import unit_of_work
from ..decorators import require_tenant, require_role
from ..validation import parse_int_id


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.get("/warehouses")
@require_tenant
def list_warehouses_route():
    warehouses = tenant_service.list_warehouses(g.tenant_id)
    return jsonify({"warehouses": [w.to_dict() for w in warehouses]}), 200


@inventory_bp.post("/warehouses")
@require_tenant
@require_role("admin", "super_admin")
def create_warehouse_route():
    """Body: {"name": "...", "address": "...", "phone": "..."}"""
    try:
        data = request.get_json(silent=True) or {}
        warehouse = tenant_service.create_warehouse(
            g.tenant_id,
            data.get("name"),
            address=data.get("address"),
            phone=data.get("phone"),
        )
        return jsonify({"warehouse": warehouse.to_dict()}), 201

    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create warehouse")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/warehouse-stocks")
@require_tenant
def list_warehouse_stock_route():
    """Query: warehouse_id, product_id"""
    rows = stock_service.list_stock(
        g.tenant_id,
        warehouse_id=request.args.get("warehouse_id", type=int),
        product_id=request.args.get("product_id", type=int),
    )
    return jsonify({"stocks": [r.to_dict() for r in rows], "count": len(rows)}), 200


@inventory_bp.post("/inventory/adjust")
@require_tenant
@require_role("admin", "super_admin")
def adjust_stock_route():
    """
    Manual stock adjustment (receiving, shrinkage, corrections).

    Body: {"product_id": 1, "warehouse_id": 1, "delta": "-2.500"}
    """
    try:
        data = request.get_json(silent=True) or {}
        product_id = parse_int_id(data.get("product_id"), "product_id")
        warehouse_id = parse_int_id(data.get("warehouse_id"), "warehouse_id")

        with unit_of_work():
            quantity = stock_service.adjust(product_id, warehouse_id, g.tenant_id, data.get("delta"))

        current_app.logger.info(
            "Manual stock adjustment: product_id=%s warehouse_id=%s delta=%s by user_id=%s",
            product_id, warehouse_id, data.get("delta"), g.current_user.id,
        )
        return jsonify({
            "product_id": product_id,
            "warehouse_id": warehouse_id,
            "quantity": decimal_str(quantity),
        }), 200

    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500
