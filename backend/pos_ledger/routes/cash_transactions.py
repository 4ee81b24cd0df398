# Overview: Flask API routes for the raw cash transaction ledger.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PosLedgerError, ValidationError
from ..models.registers import CASH_TRANSACTION_TYPES, TX_EXPENSE, TX_INCOME, TX_WITHDRAWAL
from ..services import cash_ledger_service
from ..services.concurrency import unit_of_work
from ..decorators import require_tenant, require_role
from ..validation import parse_date_range, parse_int_id


cash_transactions_bp = Blueprint("cash_transactions", __name__, url_prefix="/api/cash-transactions")

# Sale and cancellation rows are only written by the sale processors
MANUAL_TRANSACTION_TYPES = (TX_INCOME, TX_EXPENSE, TX_WITHDRAWAL)


@cash_transactions_bp.get("")
@require_tenant
def list_cash_transactions_route():
    """Query: session_id, type, start, end"""
    try:
        tx_type = request.args.get("type")
        if tx_type is not None and tx_type not in CASH_TRANSACTION_TYPES:
            return jsonify({"error": "Invalid type"}), 400
        start, end = parse_date_range(request.args.get("start"), request.args.get("end"))

        txs = cash_ledger_service.list_transactions(
            g.tenant_id,
            session_id=request.args.get("session_id", type=int),
            tx_type=tx_type,
            start=start,
            end=end,
        )
        return jsonify({"transactions": [t.to_dict() for t in txs], "count": len(txs)}), 200

    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@cash_transactions_bp.post("")
@require_tenant
@require_role("admin", "super_admin")
def append_cash_transaction_route():
    """
    Append a transaction to an explicit session (still rejected once the session is closed).

    Body: {"cash_register_session_id": 1, "type": "income", "amount": "10.00",
           "reference": "...", "category": "...", "description": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        session_id = parse_int_id(data.get("cash_register_session_id"), "cash_register_session_id")
        if data.get("type") not in MANUAL_TRANSACTION_TYPES:
            raise ValidationError(
                "Invalid type",
                details={"type": data.get("type"), "allowed": list(MANUAL_TRANSACTION_TYPES)},
            )
        with unit_of_work():
            tx = cash_ledger_service.append_transaction(
                session_id,
                g.tenant_id,
                data.get("type"),
                data.get("amount"),
                user_id=g.current_user.id,
                reference=data.get("reference"),
                category=data.get("category"),
                description=data.get("description"),
            )
        return jsonify({"transaction": tx.to_dict()}), 201

    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to append cash transaction")
        return jsonify({"error": "Internal server error"}), 500
