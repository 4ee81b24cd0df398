# Overview: Service-layer operations for the cash transaction ledger; append-only drawer events.

"""
Cash Transaction Ledger

Append-only log of signed cash events per register session. It is the single
source of truth for a drawer's balance: session totals are always recomputed
from these rows, never kept as running counters.

SIGN RULES (validated on append):
- sale              amount > 0
- sale_cancellation amount < 0
- income            amount > 0
- expense           amount > 0 (subtracted when reconciling)
- withdrawal        amount > 0 (subtracted when reconciling)

GUARD: the owning session row is locked and must be open before every
insert, so a session that has been closed never gains another row.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import CashRegisterSession, CashTransaction
from ..models.registers import (
    CASH_TRANSACTION_TYPES,
    TX_SALE_CANCELLATION,
)
from ..time_utils import utcnow
from ..validation import clean_text, parse_money
from .concurrency import lock_for_update

ZERO = Decimal("0.00")


def cash_methods() -> tuple[str, ...]:
    return tuple(current_app.config.get("CASH_PAYMENT_METHODS", ("cash",)))


def is_cash_method(method: str | None) -> bool:
    return (method or "").strip().lower() in cash_methods()


def _check_sign(tx_type: str, amount: Decimal) -> None:
    if tx_type == TX_SALE_CANCELLATION:
        if amount >= 0:
            raise ValidationError("sale_cancellation amount must be negative", details={"amount": str(amount)})
    elif amount <= 0:
        raise ValidationError(f"{tx_type} amount must be positive", details={"amount": str(amount)})


def lock_open_session(session_id: int, tenant_id: int) -> CashRegisterSession:
    """Lock a session row and require it to be open."""
    session = lock_for_update(
        db.session.query(CashRegisterSession).filter_by(id=session_id, tenant_id=tenant_id)
    ).first()
    if not session:
        raise NotFoundError("Cash register session not found", details={"session_id": session_id})
    if not session.is_open:
        raise InvalidStateError(
            "Cash register session is closed",
            details={"session_id": session_id, "status": session.status},
        )
    return session


def append_transaction(
    session_id: int,
    tenant_id: int,
    tx_type: str,
    amount,
    *,
    user_id: int | None = None,
    reference: str | None = None,
    category: str | None = None,
    description: str | None = None,
    sale_id: int | None = None,
) -> CashTransaction:
    """
    Append one cash event to an open session.

    Does not commit; compose inside unit_of_work().

    Raises:
        ValidationError: unknown type, bad amount or wrong sign
        NotFoundError: session missing for the tenant
        InvalidStateError: session is closed
    """
    if tx_type not in CASH_TRANSACTION_TYPES:
        raise ValidationError("Invalid cash transaction type", details={"type": tx_type, "allowed": list(CASH_TRANSACTION_TYPES)})

    amount = parse_money(amount, "amount")
    _check_sign(tx_type, amount)

    reference = clean_text(reference, "reference", max_length=128)
    category = clean_text(category, "category", max_length=64)
    description = clean_text(description, "description", max_length=255)

    session = lock_open_session(session_id, tenant_id)

    tx = CashTransaction(
        tenant_id=tenant_id,
        user_id=user_id,
        cash_register_session_id=session.id,
        type=tx_type,
        amount=amount,
        reference=reference,
        category=category,
        description=description,
        sale_id=sale_id,
        created_at=max(utcnow(), session.opened_at),
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def list_transactions(
    tenant_id: int,
    *,
    session_id: int | None = None,
    tx_type: str | None = None,
    user_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[CashTransaction]:
    """Newest first. `start` is inclusive, `end` exclusive."""
    query = db.session.query(CashTransaction).filter(CashTransaction.tenant_id == tenant_id)
    if session_id is not None:
        query = query.filter(CashTransaction.cash_register_session_id == session_id)
    if tx_type is not None:
        query = query.filter(CashTransaction.type == tx_type)
    if user_id is not None:
        query = query.filter(CashTransaction.user_id == user_id)
    if start is not None:
        query = query.filter(CashTransaction.created_at >= start)
    if end is not None:
        query = query.filter(CashTransaction.created_at < end)
    return query.order_by(CashTransaction.created_at.desc(), CashTransaction.id.desc()).all()


def session_totals(session: CashRegisterSession) -> dict[str, Decimal]:
    """
    Sum of amounts per transaction type within the session's window.

    The window is [opened_at, closed_at) for closed sessions and
    [opened_at, now] for open ones. Every type is present in the result.
    """
    query = (
        db.session.query(CashTransaction.type, func.sum(CashTransaction.amount))
        .filter(
            CashTransaction.cash_register_session_id == session.id,
            CashTransaction.tenant_id == session.tenant_id,
            CashTransaction.created_at >= session.opened_at,
        )
    )
    if session.closed_at is not None:
        query = query.filter(CashTransaction.created_at < session.closed_at)

    totals = {tx_type: ZERO for tx_type in CASH_TRANSACTION_TYPES}
    for tx_type, total in query.group_by(CashTransaction.type).all():
        totals[tx_type] = total if total is not None else ZERO
    return totals


def latest_transaction_at(session_id: int) -> datetime | None:
    return (
        db.session.query(func.max(CashTransaction.created_at))
        .filter(CashTransaction.cash_register_session_id == session_id)
        .scalar()
    )
