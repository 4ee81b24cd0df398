"""
Sales Service - atomic sale persistence with stock and cash effects

WHY: A sale is the point where the product catalogue, the warehouse stock
ledger and the cash drawer meet. Either all of its effects land or none do.

FLOW (one unit of work):
1. Resolve the cashier's warehouse assignment (none -> no stock/cash effects)
2. Persist the Sale header with caller-supplied totals
3. Persist SaleItems verbatim, each with a snapshot of its component deltas
4. Decrement stock for every item, and for every snapshotted component
5. Persist one SalePayment per tender (or one synthesized from the header)
6. If the cashier has an open register session and any tender is cash,
   append a `sale` CashTransaction and link the session to the sale

All input is validated before the first write. Errors propagate typed; the
service never retries.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Sale, SaleItem, SaleItemComponent, SalePayment
from ..models.registers import TX_SALE
from ..models.sales import SALE_STATUS_COMPLETED
from ..validation import (
    clean_text,
    parse_decimal,
    parse_int_id,
    parse_money,
    parse_quantity,
    require_non_negative,
    require_positive,
)
from .cash_ledger_service import append_transaction, is_cash_method
from .component_service import component_delta, resolve
from .concurrency import unit_of_work
from .register_service import get_active_session
from .stock_service import adjust, require_product
from .tenant_service import require_user

ZERO = Decimal("0.00")
EXCHANGE_RATE_PLACES = 4


def sale_reference(sale_id: int) -> str:
    return f"VENTA-{sale_id}"


def _validate_header(header: dict) -> dict:
    if not isinstance(header, dict):
        raise ValidationError("sale must be an object")
    method = clean_text(header.get("payment_method"), "payment_method", max_length=32) or "cash"
    return {
        "subtotal": parse_money(header.get("subtotal"), "subtotal", required=False) or ZERO,
        "tax": parse_money(header.get("tax"), "tax", required=False) or ZERO,
        "discount": parse_money(header.get("discount"), "discount", required=False) or ZERO,
        "total": parse_money(header.get("total"), "total"),
        "payment_method": method.lower(),
        "ticket_title": clean_text(header.get("ticket_title"), "ticket_title", max_length=128),
        "customer_name": clean_text(header.get("customer_name"), "customer_name", max_length=255),
        "notes": clean_text(header.get("notes"), "notes", max_length=2000),
    }


def _validate_items(items, tenant_id: int) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    cleaned = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("item must be an object", details={"index": index})
        product_id = parse_int_id(item.get("product_id"), f"items[{index}].product_id")
        quantity = require_positive(
            parse_quantity(item.get("quantity"), f"items[{index}].quantity"),
            f"items[{index}].quantity",
        )
        unit_price = require_non_negative(
            parse_money(item.get("unit_price"), f"items[{index}].unit_price"),
            f"items[{index}].unit_price",
        )
        line_total = parse_money(item.get("line_total"), f"items[{index}].line_total")

        product = require_product(product_id, tenant_id)
        if not product.allows_fractional_quantity and quantity != quantity.to_integral_value():
            raise ValidationError(
                "Product does not allow fractional quantities",
                details={"index": index, "product_id": product_id, "quantity": str(quantity)},
            )

        cleaned.append({
            "product_id": product_id,
            "quantity": quantity,
            "unit_price": unit_price,
            "line_total": line_total,
        })
    return cleaned


def _validate_payments(payments, header: dict) -> list[dict]:
    default_currency = current_app.config.get("DEFAULT_CURRENCY", "MXN")

    if payments is None or payments == []:
        # No breakdown: one tender for the whole total under the header's method
        return [{
            "method": header["payment_method"],
            "amount": header["total"],
            "currency": default_currency,
            "exchange_rate": Decimal("1.0000"),
            "reference": None,
        }]

    if not isinstance(payments, list):
        raise ValidationError("payments must be a list")

    cleaned = []
    for index, payment in enumerate(payments):
        if not isinstance(payment, dict):
            raise ValidationError("payment must be an object", details={"index": index})
        method = clean_text(payment.get("method"), f"payments[{index}].method", max_length=32, required=True)
        amount = require_non_negative(
            parse_money(payment.get("amount"), f"payments[{index}].amount"),
            f"payments[{index}].amount",
        )
        rate = parse_decimal(
            payment.get("exchange_rate"),
            f"payments[{index}].exchange_rate",
            places=EXCHANGE_RATE_PLACES,
            required=False,
        )
        if rate is None:
            rate = Decimal("1.0000")
        require_positive(rate, f"payments[{index}].exchange_rate")

        currency = clean_text(payment.get("currency"), f"payments[{index}].currency", max_length=8)
        cleaned.append({
            "method": method.lower(),
            "amount": amount,
            "currency": (currency or default_currency).upper(),
            "exchange_rate": rate,
            "reference": clean_text(payment.get("reference"), f"payments[{index}].reference", max_length=128),
        })
    return cleaned


def create_sale(tenant_id: int, user_id: int, header: dict, items, payments=None) -> Sale:
    """
    Persist a completed sale with all of its stock and cash effects.

    Args:
        header: {"total", "subtotal", "tax", "discount", "payment_method",
                 "ticket_title", "customer_name", "notes"}
        items: [{"product_id", "quantity", "unit_price", "line_total"}, ...]
        payments: optional split tender [{"method", "amount", "currency",
                  "exchange_rate", "reference"}, ...]. Stored verbatim; the
                  sum is not checked against the total.

    Returns:
        The committed Sale

    Raises:
        ValidationError: malformed input (nothing written)
        NotFoundError: user or a product missing for the tenant
        InvalidStateError: the cashier's session closed while the sale ran
        PersistenceError: storage failure (nothing written)
    """
    sale_fields = _validate_header(header)
    clean_items = _validate_items(items, tenant_id)
    clean_payments = _validate_payments(payments, sale_fields)

    user = require_user(user_id, tenant_id)
    warehouse_id = user.warehouse_id

    with unit_of_work():
        sale = Sale(
            tenant_id=tenant_id,
            user_id=user_id,
            warehouse_id=warehouse_id,
            status=SALE_STATUS_COMPLETED,
            **sale_fields,
        )
        db.session.add(sale)
        db.session.flush()

        sale_items = []
        for item in clean_items:
            sale_item = SaleItem(sale_id=sale.id, tenant_id=tenant_id, **item)
            for component_id, per_unit in resolve(item["product_id"], tenant_id):
                sale_item.components.append(SaleItemComponent(
                    tenant_id=tenant_id,
                    component_product_id=component_id,
                    quantity=component_delta(per_unit, item["quantity"]),
                ))
            db.session.add(sale_item)
            sale_items.append(sale_item)

        if warehouse_id is not None:
            for sale_item in sale_items:
                adjust(sale_item.product_id, warehouse_id, tenant_id, -sale_item.quantity)
                for part in sale_item.components:
                    adjust(part.component_product_id, warehouse_id, tenant_id, -part.quantity)

        for payment in clean_payments:
            db.session.add(SalePayment(sale_id=sale.id, tenant_id=tenant_id, **payment))

        cash_total = sum(
            (p["amount"] for p in clean_payments if is_cash_method(p["method"])),
            ZERO,
        )
        if warehouse_id is not None and cash_total > 0:
            session = get_active_session(tenant_id, user_id)
            if session is not None:
                append_transaction(
                    session.id,
                    tenant_id,
                    TX_SALE,
                    cash_total,
                    user_id=user_id,
                    reference=sale_reference(sale.id),
                    sale_id=sale.id,
                )
                sale.cash_register_session_id = session.id

    current_app.logger.info(
        "Sale created: sale_id=%s tenant_id=%s user_id=%s total=%s items=%s cash=%s session_id=%s",
        sale.id, tenant_id, user_id, sale_fields["total"], len(clean_items), cash_total,
        sale.cash_register_session_id,
    )
    return sale


def get_sale(sale_id: int, tenant_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id, tenant_id=tenant_id).first()
    if not sale:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def list_sales(
    tenant_id: int,
    *,
    status: str | None = None,
    user_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
) -> list[Sale]:
    query = db.session.query(Sale).filter(Sale.tenant_id == tenant_id)
    if status is not None:
        query = query.filter(Sale.status == status)
    if user_id is not None:
        query = query.filter(Sale.user_id == user_id)
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at < end)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()
