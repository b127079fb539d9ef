"""
Register Session (Cash Drawer) Service

WHY: One cash drawer per outlet per trading day. The session carries the
opening float; the ledger records every cash movement; close freezes the
theoretical balance and the variance against the physical count.

DESIGN PRINCIPLES:
- CLOSED --open()--> OPEN --close()--> CLOSED (terminal; a later open()
  creates a new session row)
- One OPEN session per (outlet, business_date), enforced by a partial
  unique index rather than a pre-check alone
- Ledger entries are append-only and only accepted while OPEN
- Close is not idempotent: a second close is an error, never a recompute
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import (
    AlreadyClosedError,
    AlreadyOpenError,
    SessionNotFoundError,
    SessionNotOpenError,
    ValidationError,
)
from ..extensions import db
from ..models import RegisterLedgerEntry, RegisterSession
from ..time_utils import business_today, utcnow
from ..validation import clean_text, parse_amount, parse_choice, parse_payment_method
from .catalog_service import get_outlet
from .concurrency import lock_for_update, run_in_transaction


ENTRY_TYPES = ("SALE", "MANUAL_IN", "MANUAL_OUT")
LEDGER_REFERENCE_TYPES = ("SALE", "EXPENSE", "ADJUSTMENT", "DEPOSIT", "WITHDRAWAL")


# =============================================================================
# LOOKUPS
# =============================================================================

def get_session(session_id: int, *, lock: bool = False) -> RegisterSession:
    query = db.session.query(RegisterSession).filter_by(id=session_id)
    if lock:
        query = lock_for_update(query)
    session = query.first()
    if session is None:
        raise SessionNotFoundError("Session not found", details={"session_id": session_id})
    return session


def get_open_session(
    outlet_id: int,
    business_date: date | None = None,
    *,
    lock: bool = False,
) -> RegisterSession | None:
    """Get the OPEN session for an outlet on a trading day (today by default)."""
    query = db.session.query(RegisterSession).filter_by(
        outlet_id=outlet_id,
        business_date=business_date or business_today(),
        status="OPEN",
    )
    if lock:
        query = lock_for_update(query)
    return query.first()


def list_sessions(
    outlet_id: int | None = None,
    *,
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = 100,
) -> list[RegisterSession]:
    query = db.session.query(RegisterSession)
    if outlet_id is not None:
        query = query.filter(RegisterSession.outlet_id == outlet_id)
    if status:
        query = query.filter(RegisterSession.status == status.upper())
    if date_from is not None:
        query = query.filter(RegisterSession.business_date >= date_from)
    if date_to is not None:
        query = query.filter(RegisterSession.business_date <= date_to)
    return query.order_by(
        RegisterSession.business_date.desc(),
        RegisterSession.id.desc(),
    ).limit(limit).all()


def get_session_entries(
    session_id: int,
    *,
    entry_type: str | None = None,
    payment_method: str | None = None,
) -> list[RegisterLedgerEntry]:
    query = db.session.query(RegisterLedgerEntry).filter_by(session_id=session_id)
    if entry_type:
        query = query.filter(RegisterLedgerEntry.entry_type == entry_type.upper())
    if payment_method:
        query = query.filter(RegisterLedgerEntry.payment_method == payment_method.upper())
    return query.order_by(RegisterLedgerEntry.created_at, RegisterLedgerEntry.id).all()


def compute_theoretical_balance(session: RegisterSession) -> int:
    """opening_float + SUM(SALE) + SUM(MANUAL_IN) - SUM(MANUAL_OUT)."""
    rows = (
        db.session.query(
            RegisterLedgerEntry.entry_type,
            func.coalesce(func.sum(RegisterLedgerEntry.amount), 0),
        )
        .filter(RegisterLedgerEntry.session_id == session.id)
        .group_by(RegisterLedgerEntry.entry_type)
        .all()
    )
    totals = {entry_type: int(total or 0) for entry_type, total in rows}
    return (
        session.opening_float
        + totals.get("SALE", 0)
        + totals.get("MANUAL_IN", 0)
        - totals.get("MANUAL_OUT", 0)
    )


# =============================================================================
# OPEN
# =============================================================================

def open_session(
    outlet_id: int,
    opening_float: int,
    opened_by: int | None = None,
    *,
    notes: str | None = None,
) -> RegisterSession:
    """
    Open today's cash drawer for an outlet.

    Raises:
        AlreadyOpenError: an OPEN session exists for (outlet, today)
    """
    opening_float = parse_amount(opening_float, "opening_float")
    notes = clean_text(notes, "notes", max_length=2000)
    get_outlet(outlet_id, require_active=True)

    def _op() -> RegisterSession:
        today = business_today()
        existing = get_open_session(outlet_id, today, lock=True)
        if existing:
            raise AlreadyOpenError(
                f"Outlet already has an open session today (session {existing.id})",
                details={"outlet_id": outlet_id, "session_id": existing.id},
            )

        session = RegisterSession(
            outlet_id=outlet_id,
            business_date=today,
            status="OPEN",
            opening_float=opening_float,
            opened_by_user_id=opened_by,
            opened_at=utcnow(),
            opening_notes=notes,
        )
        db.session.add(session)
        try:
            db.session.flush()
        except IntegrityError as exc:
            # Lost the race to a concurrent open; the partial unique index decided
            raise AlreadyOpenError(
                "Outlet already has an open session today",
                details={"outlet_id": outlet_id},
            ) from exc
        return session

    session = run_in_transaction(_op, description="Register open")
    current_app.logger.info(
        "Register session %s opened for outlet %s with float %s",
        session.id, outlet_id, opening_float,
    )
    return session


# =============================================================================
# LEDGER
# =============================================================================

def _append_entry_locked(
    session: RegisterSession,
    *,
    entry_type: str,
    amount: int,
    payment_method: str,
    reference_type: str | None = None,
    reference_id: str | None = None,
    description: str | None = None,
    user_id: int | None = None,
) -> RegisterLedgerEntry:
    entry = RegisterLedgerEntry(
        session_id=session.id,
        entry_type=entry_type,
        amount=amount,
        payment_method=payment_method,
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        description=description,
        created_by_user_id=user_id,
        created_at=utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def append_ledger_entry(
    session_id: int,
    entry_type: str,
    amount: int,
    payment_method: str,
    *,
    reference_type: str | None = None,
    reference_id: str | None = None,
    description: str | None = None,
    user_id: int | None = None,
    commit: bool = True,
) -> RegisterLedgerEntry:
    """
    Append one immutable cash ledger entry to an OPEN session.

    The session row is locked (never modified) so an append cannot
    interleave with close.

    Raises:
        SessionNotOpenError: session missing or not OPEN
    """
    entry_type = parse_choice(entry_type, "entry_type", ENTRY_TYPES)
    amount = parse_amount(amount, "amount")
    if entry_type != "SALE" and amount == 0:
        raise ValidationError("amount must be > 0 for manual entries")
    payment_method = parse_payment_method(payment_method)
    if reference_type is not None:
        reference_type = parse_choice(reference_type, "reference_type", LEDGER_REFERENCE_TYPES)
    description = clean_text(description, "description", max_length=255)

    def _op() -> RegisterLedgerEntry:
        session = get_session(session_id, lock=True)
        if not session.is_open:
            raise SessionNotOpenError(
                "Session not open",
                details={"session_id": session_id, "status": session.status},
            )
        return _append_entry_locked(
            session,
            entry_type=entry_type,
            amount=amount,
            payment_method=payment_method,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            user_id=user_id,
        )

    if not commit:
        return _op()
    return run_in_transaction(_op, description="Register ledger append")


# =============================================================================
# CLOSE
# =============================================================================

def close_session(
    session_id: int,
    closing_count: int,
    closed_by: int | None = None,
    *,
    notes: str | None = None,
) -> RegisterSession:
    """
    Close a session and freeze its reconciliation figures.

    theoretical_balance = opening_float + sales + manual_in - manual_out
    variance            = closing_count - theoretical_balance

    Raises:
        SessionNotFoundError: unknown session
        AlreadyClosedError: session was closed before (close is not idempotent)
    """
    closing_count = parse_amount(closing_count, "closing_count")
    notes = clean_text(notes, "notes", max_length=2000)

    def _op() -> RegisterSession:
        session = get_session(session_id, lock=True)
        if session.status == "CLOSED":
            raise AlreadyClosedError(
                "Session already closed",
                details={"session_id": session_id, "closed_at": str(session.closed_at)},
            )
        if not session.is_open:
            raise SessionNotOpenError(
                "Session not open",
                details={"session_id": session_id, "status": session.status},
            )

        theoretical = compute_theoretical_balance(session)

        session.status = "CLOSED"
        session.closed_at = utcnow()
        session.closed_by_user_id = closed_by
        session.closing_count = closing_count
        session.theoretical_balance = theoretical
        session.variance = closing_count - theoretical
        session.closing_notes = notes
        return session

    session = run_in_transaction(_op, description="Register close")

    threshold = current_app.config.get("VARIANCE_ALERT_THRESHOLD", 1000)
    if abs(session.variance) > threshold:
        current_app.logger.warning(
            "Register session %s closed with variance %s (threshold %s)",
            session.id, session.variance, threshold,
        )
    else:
        current_app.logger.info(
            "Register session %s closed; theoretical %s, variance %s",
            session.id, session.theoretical_balance, session.variance,
        )
    return session
