# Overview: Flask API routes for cash register sessions; parses input and returns JSON responses.

# backend/pos_ledger/routes/registers.py
"""
Cash register session API routes.

Endpoints:
- GET  /api/cash-register/active              current user's open session
- GET  /api/cash-register/all-active          every open session in the tenant
- POST /api/cash-register/open                open a session
- POST /api/cash-register/<id>/close          close with counted cash
- GET  /api/cash-register/<id>/summary        live reconciliation
- GET  /api/cash-register/closures            closed sessions with fresh balances
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PosLedgerError
from ..services import register_service
from ..decorators import require_tenant, require_role


registers_bp = Blueprint("registers", __name__, url_prefix="/api/cash-register")


@registers_bp.get("/active")
@require_tenant
def get_active_session_route():
    session = register_service.get_active_session(g.tenant_id, g.current_user.id)
    if not session:
        return jsonify({"session": None}), 200
    summary = register_service.get_summary(session.id, g.tenant_id)
    return jsonify(register_service.summary_to_dict(summary)), 200


@registers_bp.get("/all-active")
@require_tenant
@require_role("admin", "super_admin")
def list_active_sessions_route():
    sessions = register_service.list_active_sessions(g.tenant_id)
    return jsonify({"sessions": [s.to_dict() for s in sessions], "count": len(sessions)}), 200


@registers_bp.post("/open")
@require_tenant
def open_session_route():
    """
    Open a cash register session for the current user.

    Body: {"opening_amount": "500.00", "warehouse_id": 1, "name": "Caja 1"}
    """
    try:
        data = request.get_json(silent=True) or {}
        session = register_service.open_session(
            tenant_id=g.tenant_id,
            user_id=g.current_user.id,
            opening_amount=data.get("opening_amount"),
            warehouse_id=data.get("warehouse_id"),
            name=data.get("name"),
        )
        return jsonify({"session": session.to_dict()}), 201

    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to open cash register session")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.post("/<int:session_id>/close")
@require_tenant
def close_session_route(session_id: int):
    """
    Close a session.

    Body: {"closing_amount": "1234.50"}

    Returns expected balance, difference (counted - expected) and per-type totals.
    """
    try:
        data = request.get_json(silent=True) or {}
        result = register_service.close_session(
            session_id=session_id,
            tenant_id=g.tenant_id,
            counted_amount=data.get("closing_amount"),
        )
        return jsonify(register_service.summary_to_dict(result)), 200

    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to close cash register session")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.get("/<int:session_id>/summary")
@require_tenant
def session_summary_route(session_id: int):
    try:
        summary = register_service.get_summary(session_id, g.tenant_id)
        return jsonify(register_service.summary_to_dict(summary)), 200
    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@registers_bp.get("/closures")
@require_tenant
def list_closures_route():
    """
    Closed sessions with freshly recomputed balances.

    super_admin sees every user's closures (optionally ?user_id=); everyone
    else sees only their own.
    """
    if g.current_user.role == "super_admin":
        user_id = request.args.get("user_id", type=int)
    else:
        user_id = g.current_user.id

    closures = register_service.list_closures(g.tenant_id, user_id=user_id)
    return jsonify({
        "closures": [register_service.summary_to_dict(c) for c in closures],
        "count": len(closures),
    }), 200
