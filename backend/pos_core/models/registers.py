from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class RegisterSession(db.Model):
    """
    Cash drawer session for one outlet and one trading day.

    LIFECYCLE:
    - OPEN: drawer is trading, ledger entries may be appended
    - CLOSED: cash counted, theoretical balance and variance frozen

    At most one OPEN session per (outlet_id, business_date), enforced by a
    partial unique index. Once closed, the row cannot be modified.
    """
    __tablename__ = "register_sessions"
    __table_args__ = (
        db.Index(
            "uq_register_sessions_open_outlet_day",
            "outlet_id",
            "business_date",
            unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
        db.Index("ix_register_sessions_outlet_date", "outlet_id", "business_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    business_date = db.Column(db.Date, nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="OPEN", index=True)  # OPEN, CLOSED

    # Cash tracking (minor units)
    opening_float = db.Column(db.BigInteger, nullable=False, default=0)
    closing_count = db.Column(db.BigInteger, nullable=True)  # Set when closing
    theoretical_balance = db.Column(db.BigInteger, nullable=True)  # opening + sales + in - out, frozen at close
    variance = db.Column(db.BigInteger, nullable=True)  # closing_count - theoretical_balance

    opened_by_user_id = db.Column(db.Integer, nullable=True)
    closed_by_user_id = db.Column(db.Integer, nullable=True)
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    opening_notes = db.Column(db.Text, nullable=True)
    closing_notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    outlet = db.relationship("Outlet", backref=db.backref("register_sessions", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == "OPEN"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "business_date": self.business_date.isoformat() if self.business_date else None,
            "status": self.status,
            "opening_float": self.opening_float,
            "closing_count": self.closing_count,
            "theoretical_balance": self.theoretical_balance,
            "variance": self.variance,
            "opened_by_user_id": self.opened_by_user_id,
            "closed_by_user_id": self.closed_by_user_id,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "opening_notes": self.opening_notes,
            "closing_notes": self.closing_notes,
            "version_id": self.version_id,
        }


class RegisterLedgerEntry(db.Model):
    """
    Append-only cash drawer ledger.

    ENTRY TYPES:
    - SALE: settlement of one order (exactly one per order)
    - MANUAL_IN: cash added to the drawer (deposit, change float top-up)
    - MANUAL_OUT: cash taken out (expense, withdrawal to safe)

    Entries are only valid against an OPEN session at append time and are
    never updated or deleted.
    """
    __tablename__ = "register_ledger_entries"
    __table_args__ = (
        db.Index("ix_register_ledger_session_created", "session_id", "created_at"),
        db.Index(
            "uq_register_ledger_sale_reference",
            "reference_type",
            "reference_id",
            unique=True,
            sqlite_where=db.text("entry_type = 'SALE'"),
            postgresql_where=db.text("entry_type = 'SALE'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("register_sessions.id"), nullable=False, index=True)

    entry_type = db.Column(db.String(16), nullable=False, index=True)  # SALE, MANUAL_IN, MANUAL_OUT

    # Always positive; the sign comes from entry_type
    amount = db.Column(db.BigInteger, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, index=True)

    reference_type = db.Column(db.String(16), nullable=True)  # SALE, EXPENSE, ADJUSTMENT, DEPOSIT, WITHDRAWAL
    reference_id = db.Column(db.String(64), nullable=True)
    description = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    session = db.relationship("RegisterSession", backref=db.backref("ledger_entries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "entry_type": self.entry_type,
            "amount": self.amount,
            "payment_method": self.payment_method,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "description": self.description,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
