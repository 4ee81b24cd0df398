from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .types import Money, decimal_str


SESSION_STATUS_OPEN = "open"
SESSION_STATUS_CLOSED = "closed"

TX_SALE = "sale"
TX_SALE_CANCELLATION = "sale_cancellation"
TX_INCOME = "income"
TX_EXPENSE = "expense"
TX_WITHDRAWAL = "withdrawal"

CASH_TRANSACTION_TYPES = (TX_SALE, TX_SALE_CANCELLATION, TX_INCOME, TX_EXPENSE, TX_WITHDRAWAL)


class CashRegisterSession(db.Model):
    """
    A cashier's drawer between opening and closing.

    LIFECYCLE:
    - open: accepts CashTransaction rows
    - closed: counted, reconciled, immutable; rejects further transactions

    UNIQUENESS: at most one open session per (tenant, user), enforced by the
    partial unique index below rather than by convention.

    expected_amount / difference are written once at close and must always
    equal a fresh recomputation from cash_transactions.
    """
    __tablename__ = "cash_register_sessions"
    __table_args__ = (
        db.Index(
            "uq_cash_register_sessions_one_open",
            "tenant_id",
            "user_id",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        db.Index("ix_cash_register_sessions_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True, index=True)

    name = db.Column(db.String(128), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=SESSION_STATUS_OPEN)

    opening_amount = db.Column(Money(), nullable=False)
    closing_amount = db.Column(Money(), nullable=True)  # counted cash, set on close

    expected_amount = db.Column(Money(), nullable=True)  # ledger-computed at close
    difference = db.Column(Money(), nullable=True)  # closing - expected

    opened_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    closed_at = db.Column(db.DateTime, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("cash_register_sessions", lazy=True))
    warehouse = db.relationship("Warehouse")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == SESSION_STATUS_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "warehouse_id": self.warehouse_id,
            "name": self.name,
            "status": self.status,
            "opening_amount": decimal_str(self.opening_amount),
            "closing_amount": decimal_str(self.closing_amount),
            "expected_amount": decimal_str(self.expected_amount),
            "difference": decimal_str(self.difference),
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "version_id": self.version_id,
        }


class CashTransaction(db.Model):
    """
    Append-only ledger of cash-affecting drawer events.

    SIGN CONVENTION (amount):
    - sale: positive cash received
    - sale_cancellation: negative (reverses a sale's cash)
    - income: positive, added to the drawer
    - expense, withdrawal: positive, subtracted from the drawer

    IMMUTABLE: rows are never updated or deleted.
    """
    __tablename__ = "cash_transactions"
    __table_args__ = (
        db.Index("ix_cash_transactions_session_created", "cash_register_session_id", "created_at"),
        db.Index("ix_cash_transactions_tenant_type_created", "tenant_id", "type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    cash_register_session_id = db.Column(
        db.Integer, db.ForeignKey("cash_register_sessions.id"), nullable=False, index=True
    )

    type = db.Column(db.String(32), nullable=False, index=True)
    amount = db.Column(Money(), nullable=False)

    reference = db.Column(db.String(128), nullable=True)
    category = db.Column(db.String(64), nullable=True)
    description = db.Column(db.String(255), nullable=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    cash_register_session = db.relationship(
        "CashRegisterSession", backref=db.backref("transactions", lazy=True)
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "cash_register_session_id": self.cash_register_session_id,
            "type": self.type,
            "amount": decimal_str(self.amount),
            "reference": self.reference,
            "category": self.category,
            "description": self.description,
            "sale_id": self.sale_id,
            "created_at": to_utc_z(self.created_at),
        }
