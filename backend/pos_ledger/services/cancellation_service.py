"""
Sale Cancellation - compensating transaction for a completed sale

WHY: Sales are never deleted. Cancelling one appends reversing stock
movements and cash rows, then flips the sale's status, so the history of
both ledgers stays intact.

INVARIANTS:
- Only a `completed` sale can be cancelled. The check runs under a row lock
  inside the same unit of work as the reversal, so a second cancellation
  fails and restores nothing.
- Stock restored by a cancellation equals stock removed by the sale. Component
  quantities come from the snapshot written with the sale, never from the
  current recipe.
- Cash is reversed against the session that received it; if that session
  has since closed, the whole cancellation fails and the sale is unchanged.
"""

from __future__ import annotations

from flask import current_app

from ..errors import InvalidStateError, NotFoundError
from ..extensions import db
from ..models import Sale
from ..models.registers import TX_SALE_CANCELLATION
from ..models.sales import SALE_STATUS_CANCELLED, SALE_STATUS_COMPLETED
from ..time_utils import utcnow
from .cash_ledger_service import append_transaction, is_cash_method
from .concurrency import lock_for_update, unit_of_work
from .stock_service import adjust


def cancellation_reference(sale_id: int) -> str:
    return f"CANCEL-{sale_id}"


def cancel_sale(sale_id: int, tenant_id: int, user_id: int | None = None) -> bool:
    """
    Reverse a completed sale's stock and cash effects and mark it cancelled.

    Raises:
        NotFoundError: sale missing for the tenant
        InvalidStateError: sale not completed, or its cash session is closed
    """
    with unit_of_work():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id, tenant_id=tenant_id)).first()
        if not sale:
            raise NotFoundError("Sale not found", details={"sale_id": sale_id})

        if sale.status != SALE_STATUS_COMPLETED:
            raise InvalidStateError(
                "Only completed sales can be cancelled",
                details={"sale_id": sale_id, "status": sale.status},
            )

        if sale.warehouse_id is not None:
            for item in sale.items:
                adjust(item.product_id, sale.warehouse_id, tenant_id, item.quantity)
                for part in item.components:
                    adjust(part.component_product_id, sale.warehouse_id, tenant_id, part.quantity)

        if sale.cash_register_session_id is not None:
            for payment in sale.payments:
                if not is_cash_method(payment.method) or payment.amount <= 0:
                    continue
                append_transaction(
                    sale.cash_register_session_id,
                    tenant_id,
                    TX_SALE_CANCELLATION,
                    -payment.amount,
                    user_id=user_id,
                    reference=cancellation_reference(sale.id),
                    sale_id=sale.id,
                )

        sale.status = SALE_STATUS_CANCELLED
        sale.cancelled_at = utcnow()
        sale.cancelled_by_user_id = user_id

    current_app.logger.info(
        "Sale cancelled: sale_id=%s tenant_id=%s by_user_id=%s",
        sale_id, tenant_id, user_id,
    )
    return True
