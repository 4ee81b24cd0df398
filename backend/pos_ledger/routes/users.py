# Overview: Flask API routes for user warehouse assignment.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PosLedgerError
from ..services import tenant_service
from ..decorators import require_tenant, require_role
from ..validation import parse_int_id


users_bp = Blueprint("users", __name__, url_prefix="/api")


def _assign(user_id: int, warehouse_id: int | None):
    user = tenant_service.assign_warehouse(user_id, g.tenant_id, warehouse_id)
    current_app.logger.info(
        "Warehouse assignment: user_id=%s warehouse_id=%s by user_id=%s",
        user.id, warehouse_id, g.current_user.id,
    )
    return jsonify({"user": user.to_dict()}), 200


@users_bp.patch("/users/<int:user_id>/warehouse")
@require_tenant
@require_role("admin", "super_admin")
def update_user_warehouse_route(user_id: int):
    """Body: {"warehouse_id": 1} or {"warehouse_id": null} to unassign."""
    try:
        data = request.get_json(silent=True) or {}
        warehouse_id = parse_int_id(data.get("warehouse_id"), "warehouse_id", required=False)
        return _assign(user_id, warehouse_id)

    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update user warehouse")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.patch("/users/<int:user_id>/assign-warehouse")
@require_tenant
@require_role("super_admin")
def assign_user_warehouse_route(user_id: int):
    """Body: {"warehouse_id": 1}"""
    try:
        data = request.get_json(silent=True) or {}
        warehouse_id = parse_int_id(data.get("warehouse_id"), "warehouse_id")
        return _assign(user_id, warehouse_id)

    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to assign warehouse")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.get("/user/warehouse")
@require_tenant
def current_user_warehouse_route():
    """The caller's assigned warehouse, or null when unassigned."""
    warehouse = g.current_user.warehouse
    return jsonify({"warehouse": warehouse.to_dict() if warehouse else None}), 200
