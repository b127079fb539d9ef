# Overview: Read-only reporting over the register ledger and inventory; no writes, no caching.

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..models import Order, RegisterLedgerEntry, RegisterSession
from ..time_utils import business_today, to_utc_z
from .catalog_service import get_outlet
from .inventory_service import low_stock
from .register_service import get_session


def _half_up_div(numerator: int, denominator: int) -> int:
    if denominator == 0:
        return 0
    return (2 * numerator + denominator) // (2 * denominator)


def _ledger_totals(session_ids: list[int]) -> dict:
    """Aggregate ledger rows into the summary shape for one or more sessions."""
    totals_by_method: dict[str, int] = {}
    total_sales = 0
    sale_count = 0
    manual_in = 0
    manual_out = 0

    if session_ids:
        rows = (
            db.session.query(
                RegisterLedgerEntry.entry_type,
                RegisterLedgerEntry.payment_method,
                func.coalesce(func.sum(RegisterLedgerEntry.amount), 0).label("total"),
                func.count(RegisterLedgerEntry.id).label("entries"),
            )
            .filter(RegisterLedgerEntry.session_id.in_(session_ids))
            .group_by(RegisterLedgerEntry.entry_type, RegisterLedgerEntry.payment_method)
            .all()
        )
        for row in rows:
            amount = int(row.total or 0)
            if row.entry_type == "SALE":
                total_sales += amount
                sale_count += int(row.entries or 0)
                totals_by_method[row.payment_method] = totals_by_method.get(row.payment_method, 0) + amount
            elif row.entry_type == "MANUAL_IN":
                manual_in += amount
            elif row.entry_type == "MANUAL_OUT":
                manual_out += amount

    other = sum(
        amount for method, amount in totals_by_method.items()
        if method not in ("CASH", "MOBILE_MONEY", "CARD")
    )
    return {
        "total_sales": total_sales,
        "totals_by_payment_method": totals_by_method,
        "cash": totals_by_method.get("CASH", 0),
        "mobile_money": totals_by_method.get("MOBILE_MONEY", 0),
        "card": totals_by_method.get("CARD", 0),
        "other": other,
        "sale_count": sale_count,
        "average_ticket": _half_up_div(total_sales, sale_count),
        "total_manual_in": manual_in,
        "total_manual_out": manual_out,
    }


def summarize_session(session_id: int) -> dict:
    """
    Recompute a session's statistics from its ledger entries.

    average_ticket is total_sales / sale_count rounded half-up (0 when no sales).
    theoretical_balance_now is live for OPEN sessions; for CLOSED sessions it
    equals the frozen theoretical_balance because the ledger no longer grows.
    """
    session = get_session(session_id)
    summary = _ledger_totals([session.id])
    summary["theoretical_balance_now"] = (
        session.opening_float
        + summary["total_sales"]
        + summary["total_manual_in"]
        - summary["total_manual_out"]
    )
    summary.update({
        "session_id": session.id,
        "outlet_id": session.outlet_id,
        "business_date": session.business_date.isoformat(),
        "status": session.status,
        "opening_float": session.opening_float,
        "closing_count": session.closing_count,
        "variance": session.variance,
    })
    return summary


def outlet_daily_summary(outlet_id: int, business_date: date | None = None) -> dict:
    """Day view for an outlet: sales across every session of the day plus drawer and stock status."""
    outlet = get_outlet(outlet_id)
    day = business_date or business_today()

    sessions = (
        db.session.query(RegisterSession)
        .filter_by(outlet_id=outlet.id, business_date=day)
        .order_by(RegisterSession.opened_at, RegisterSession.id)
        .all()
    )
    totals = _ledger_totals([s.id for s in sessions])

    current = next((s for s in sessions if s.is_open), None)
    if current is None and sessions:
        current = sessions[-1]

    current_summary = None
    if current is not None:
        current_summary = {
            "session_id": current.id,
            "status": current.status,
            "opened_at": to_utc_z(current.opened_at),
            "closed_at": to_utc_z(current.closed_at) if current.closed_at else None,
            "theoretical_balance_now": summarize_session(current.id)["theoretical_balance_now"],
        }

    order_count = (
        db.session.query(func.count(Order.id))
        .filter(Order.session_id.in_([s.id for s in sessions]))
        .scalar()
        if sessions else 0
    )

    return {
        "outlet_id": outlet.id,
        "outlet_code": outlet.code,
        "business_date": day.isoformat(),
        "session_count": len(sessions),
        "order_count": int(order_count or 0),
        "current_session": current_summary,
        "low_stock_count": len(low_stock(outlet.id)),
        **totals,
    }
