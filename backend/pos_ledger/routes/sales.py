# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/pos_ledger/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PosLedgerError
from ..models.sales import SALE_STATUS_CANCELLED, SALE_STATUS_COMPLETED
from ..services import sales_service, cancellation_service
from ..decorators import require_tenant
from ..validation import parse_date_range


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_tenant
def create_sale_route():
    """
    Create a completed sale.

    Body:
        {"sale": {...header...}, "items": [...], "payments": [...]}

    Stock moves from the cashier's assigned warehouse; cash tenders are
    recorded against the cashier's open register session, if any.
    """
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.create_sale(
            tenant_id=g.tenant_id,
            user_id=g.current_user.id,
            header=data.get("sale") or {},
            items=data.get("items"),
            payments=data.get("payments"),
        )
        return jsonify({"sale": sale.to_dict(include_children=True)}), 201

    except PosLedgerError as e:
        current_app.logger.info("Sale rejected: %s", e)
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_tenant
def list_sales_route():
    """
    List sales for the tenant, newest first.

    Query: status=completed|cancelled, user_id, start, end
    """
    try:
        status = request.args.get("status")
        if status is not None and status not in (SALE_STATUS_COMPLETED, SALE_STATUS_CANCELLED):
            return jsonify({"error": "Invalid status"}), 400
        start, end = parse_date_range(request.args.get("start"), request.args.get("end"))

        sales = sales_service.list_sales(
            g.tenant_id,
            status=status,
            user_id=request.args.get("user_id", type=int),
            start=start,
            end=end,
        )
        return jsonify({"sales": [s.to_dict() for s in sales], "count": len(sales)}), 200

    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_tenant
def get_sale_route(sale_id: int):
    """Get sale with items and payments."""
    try:
        sale = sales_service.get_sale(sale_id, g.tenant_id)
        return jsonify({"sale": sale.to_dict(include_children=True)}), 200
    except PosLedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@sales_bp.post("/<int:sale_id>/cancel")
@sales_bp.delete("/<int:sale_id>")
@require_tenant
def cancel_sale_route(sale_id: int):
    """
    Cancel a completed sale.

    Restores stock and reverses cash; the sale row is kept with
    status=cancelled. DELETE is accepted as an alias for POS clients.
    """
    try:
        cancellation_service.cancel_sale(sale_id, g.tenant_id, user_id=g.current_user.id)
        sale = sales_service.get_sale(sale_id, g.tenant_id)
        return jsonify({"cancelled": True, "sale": sale.to_dict()}), 200

    except PosLedgerError as e:
        current_app.logger.info("Sale cancellation rejected: sale_id=%s %s", sale_id, e)
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify({"error": "Internal server error"}), 500
