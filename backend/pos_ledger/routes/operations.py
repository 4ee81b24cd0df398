# Overview: Flask API routes for drawer cash operations (income, expenses, withdrawals).

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PosLedgerError
from ..models.registers import TX_EXPENSE, TX_INCOME, TX_WITHDRAWAL
from ..services import register_service
from ..decorators import require_tenant
from ..validation import parse_date_range


operations_bp = Blueprint("operations", __name__, url_prefix="/api/operations")

# URL segment -> cash transaction type
OPERATION_TYPES = {
    "income": TX_INCOME,
    "expenses": TX_EXPENSE,
    "withdrawals": TX_WITHDRAWAL,
}


@operations_bp.post("/<operation>")
@require_tenant
def record_operation_route(operation: str):
    """
    Record income, an expense or a withdrawal against the user's open session.

    Body: {"amount": "150.00", "category": "supplies", "description": "...", "reference": "..."}
    """
    tx_type = OPERATION_TYPES.get(operation)
    if tx_type is None:
        return jsonify({"error": "Unknown operation"}), 404

    try:
        data = request.get_json(silent=True) or {}
        tx = register_service.record_cash_movement(
            tenant_id=g.tenant_id,
            user_id=g.current_user.id,
            tx_type=tx_type,
            amount=data.get("amount"),
            category=data.get("category"),
            description=data.get("description"),
            reference=data.get("reference"),
        )
        return jsonify({"transaction": tx.to_dict()}), 201

    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record cash %s", operation)
        return jsonify({"error": "Internal server error"}), 500


@operations_bp.get("/<operation>")
@require_tenant
def list_operations_route(operation: str):
    """
    List cash operations of one type.

    Query: start, end (ISO dates), user_id (super_admin only; others see their own)
    """
    tx_type = OPERATION_TYPES.get(operation)
    if tx_type is None:
        return jsonify({"error": "Unknown operation"}), 404

    try:
        start, end = parse_date_range(request.args.get("start"), request.args.get("end"))
        if g.current_user.role == "super_admin":
            user_id = request.args.get("user_id", type=int)
        else:
            user_id = g.current_user.id

        txs = register_service.list_cash_movements(
            g.tenant_id, tx_type, user_id=user_id, start=start, end=end,
        )
        return jsonify({"transactions": [t.to_dict() for t in txs], "count": len(txs)}), 200

    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status
