"""
Cash Register Session Service

WHY: A session scopes one cashier's drawer from opening count to closing
count. Reconciliation compares what the cashier counted against what the
cash ledger says should be in the drawer.

DESIGN PRINCIPLES:
- At most one open session per (tenant, user)
- Sessions are immutable once closed
- Expected balance is always recomputed from cash_transactions:
    expected = opening + sum(sale + sale_cancellation) + sum(income)
               - sum(expense) - sum(withdrawal)
- Values persisted at close must equal a fresh recomputation
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import CashRegisterSession
from ..models.registers import (
    SESSION_STATUS_CLOSED,
    SESSION_STATUS_OPEN,
    TX_EXPENSE,
    TX_INCOME,
    TX_SALE,
    TX_SALE_CANCELLATION,
    TX_WITHDRAWAL,
)
from ..models.types import decimal_str
from ..time_utils import strictly_after, utcnow
from ..validation import clean_text, parse_money, require_non_negative
from .cash_ledger_service import (
    append_transaction,
    latest_transaction_at,
    list_transactions,
    session_totals,
)
from .concurrency import lock_for_update, unit_of_work
from .stock_service import require_warehouse
from .tenant_service import require_user

CASH_MOVEMENT_LABELS = {
    TX_INCOME: "Income",
    TX_EXPENSE: "Expense",
    TX_WITHDRAWAL: "Withdrawal",
}


def compute_expected(opening_amount: Decimal, totals: dict[str, Decimal]) -> Decimal:
    return (
        opening_amount
        + totals[TX_SALE]
        + totals[TX_SALE_CANCELLATION]
        + totals[TX_INCOME]
        - totals[TX_EXPENSE]
        - totals[TX_WITHDRAWAL]
    )


def _require_session(session_id: int, tenant_id: int, *, lock: bool = False) -> CashRegisterSession:
    query = db.session.query(CashRegisterSession).filter_by(id=session_id, tenant_id=tenant_id)
    if lock:
        query = lock_for_update(query)
    session = query.first()
    if not session:
        raise NotFoundError("Cash register session not found", details={"session_id": session_id})
    return session


# =============================================================================
# SESSION LIFECYCLE
# =============================================================================

def get_active_session(tenant_id: int, user_id: int) -> CashRegisterSession | None:
    return (
        db.session.query(CashRegisterSession)
        .filter_by(tenant_id=tenant_id, user_id=user_id, status=SESSION_STATUS_OPEN)
        .first()
    )


def list_active_sessions(tenant_id: int) -> list[CashRegisterSession]:
    return (
        db.session.query(CashRegisterSession)
        .filter_by(tenant_id=tenant_id, status=SESSION_STATUS_OPEN)
        .order_by(CashRegisterSession.opened_at.asc())
        .all()
    )


def open_session(
    tenant_id: int,
    user_id: int,
    opening_amount,
    warehouse_id: int | None = None,
    name: str | None = None,
) -> CashRegisterSession:
    """
    Open a cash register session for a user.

    Args:
        opening_amount: Cash counted into the drawer (>= 0)
        warehouse_id: Defaults to the user's assigned warehouse
        name: Display name (defaults to "Register - <username>")

    Raises:
        InvalidStateError: the user already has an open session
    """
    opening = require_non_negative(parse_money(opening_amount, "opening_amount"), "opening_amount")
    name = clean_text(name, "name", max_length=128)

    user = require_user(user_id, tenant_id)
    if warehouse_id is None:
        warehouse_id = user.warehouse_id
    else:
        require_warehouse(warehouse_id, tenant_id)

    if get_active_session(tenant_id, user_id):
        raise InvalidStateError("User already has an open cash register session", details={"user_id": user_id})

    try:
        with unit_of_work():
            session = CashRegisterSession(
                tenant_id=tenant_id,
                user_id=user_id,
                warehouse_id=warehouse_id,
                name=name or f"Register - {user.username}",
                opening_amount=opening,
                status=SESSION_STATUS_OPEN,
                opened_at=utcnow(),
            )
            db.session.add(session)
    except IntegrityError as exc:
        # Lost the race against a concurrent open for the same user
        raise InvalidStateError(
            "User already has an open cash register session", details={"user_id": user_id}
        ) from exc

    current_app.logger.info(
        "Cash register session opened: session_id=%s tenant_id=%s user_id=%s opening=%s",
        session.id, tenant_id, user_id, opening,
    )
    return session


def close_session(session_id: int, tenant_id: int, counted_amount) -> dict:
    """
    Close a session against the cashier's counted cash.

    closed_at is stamped strictly after the session's latest transaction so
    that the [opened_at, closed_at) reconciliation window includes all of
    them.

    Returns:
        {"session", "expected_balance", "difference", "totals"}

    Raises:
        InvalidStateError: the session is already closed
    """
    counted = require_non_negative(parse_money(counted_amount, "closing_amount"), "closing_amount")

    with unit_of_work():
        session = _require_session(session_id, tenant_id, lock=True)
        if session.status != SESSION_STATUS_OPEN:
            raise InvalidStateError(
                "Cash register session is already closed",
                details={"session_id": session_id, "status": session.status},
            )

        closed_at = strictly_after(latest_transaction_at(session.id), session.opened_at)

        totals = session_totals(session)
        expected = compute_expected(session.opening_amount, totals)
        difference = counted - expected

        session.status = SESSION_STATUS_CLOSED
        session.closing_amount = counted
        session.closed_at = closed_at
        session.expected_amount = expected
        session.difference = difference

    current_app.logger.info(
        "Cash register session closed: session_id=%s tenant_id=%s expected=%s counted=%s difference=%s",
        session_id, tenant_id, expected, counted, difference,
    )
    return {
        "session": session,
        "expected_balance": expected,
        "difference": difference,
        "totals": totals,
    }


# =============================================================================
# RECONCILIATION READS
# =============================================================================

def _summary(session: CashRegisterSession) -> dict:
    totals = session_totals(session)
    expected = compute_expected(session.opening_amount, totals)
    difference = session.closing_amount - expected if session.closing_amount is not None else None
    return {
        "session": session,
        "expected_balance": expected,
        "difference": difference,
        "totals": totals,
    }


def get_summary(session_id: int, tenant_id: int) -> dict:
    """Live recomputation of a session's totals and expected balance."""
    return _summary(_require_session(session_id, tenant_id))


def list_closures(tenant_id: int, user_id: int | None = None) -> list[dict]:
    """Closed sessions, newest first, each with a freshly recomputed balance."""
    query = db.session.query(CashRegisterSession).filter_by(tenant_id=tenant_id, status=SESSION_STATUS_CLOSED)
    if user_id is not None:
        query = query.filter(CashRegisterSession.user_id == user_id)
    sessions = query.order_by(CashRegisterSession.closed_at.desc(), CashRegisterSession.id.desc()).all()
    return [_summary(session) for session in sessions]


def summary_to_dict(summary: dict) -> dict:
    return {
        "session": summary["session"].to_dict(),
        "expected_balance": decimal_str(summary["expected_balance"]),
        "difference": decimal_str(summary["difference"]),
        "totals": {tx_type: decimal_str(total) for tx_type, total in summary["totals"].items()},
    }


def verify_session_totals(tenant_id: int | None = None) -> list[dict]:
    """
    Compare every closed session's persisted expected_amount / difference
    against a fresh recomputation. Returns the mismatches (empty = consistent).
    """
    query = db.session.query(CashRegisterSession).filter_by(status=SESSION_STATUS_CLOSED)
    if tenant_id is not None:
        query = query.filter(CashRegisterSession.tenant_id == tenant_id)

    mismatches = []
    for session in query.order_by(CashRegisterSession.id.asc()).all():
        fresh = _summary(session)
        if session.expected_amount != fresh["expected_balance"] or session.difference != fresh["difference"]:
            mismatches.append({
                "session_id": session.id,
                "tenant_id": session.tenant_id,
                "stored_expected": decimal_str(session.expected_amount),
                "fresh_expected": decimal_str(fresh["expected_balance"]),
                "stored_difference": decimal_str(session.difference),
                "fresh_difference": decimal_str(fresh["difference"]),
            })
    return mismatches


# =============================================================================
# CASH OPERATIONS (income / expense / withdrawal)
# =============================================================================

def record_cash_movement(
    tenant_id: int,
    user_id: int,
    tx_type: str,
    amount,
    category: str | None = None,
    description: str | None = None,
    reference: str | None = None,
):
    """
    Record drawer income, an expense paid from the drawer, or a withdrawal
    against the user's open session.

    Amounts are positive; the type decides the direction when reconciling.

    Raises:
        InvalidStateError: the user has no open session
    """
    if tx_type not in CASH_MOVEMENT_LABELS:
        raise ValidationError("Invalid cash movement type", details={"type": tx_type, "allowed": list(CASH_MOVEMENT_LABELS)})

    category = clean_text(category, "category", max_length=64)
    if reference is None or not str(reference).strip():
        label = CASH_MOVEMENT_LABELS[tx_type]
        reference = f"{label} - {category}" if category else label

    with unit_of_work():
        session = get_active_session(tenant_id, user_id)
        if not session:
            raise InvalidStateError("No open cash register session for user", details={"user_id": user_id})
        tx = append_transaction(
            session.id,
            tenant_id,
            tx_type,
            amount,
            user_id=user_id,
            reference=reference,
            category=category,
            description=description,
        )

    current_app.logger.info(
        "Cash %s recorded: tx_id=%s session_id=%s amount=%s",
        tx_type, tx.id, tx.cash_register_session_id, tx.amount,
    )
    return tx


def list_cash_movements(
    tenant_id: int,
    tx_type: str,
    *,
    user_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
):
    if tx_type not in CASH_MOVEMENT_LABELS:
        raise ValidationError("Invalid cash movement type", details={"type": tx_type})
    return list_transactions(tenant_id, tx_type=tx_type, user_id=user_id, start=start, end=end)
