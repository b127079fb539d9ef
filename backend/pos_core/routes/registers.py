# Overview: Flask API routes for register sessions; parses input and returns JSON responses.

# backend/pos_core/routes/registers.py
"""
Register Session API Routes

WHY: Cash drawer accountability per outlet and trading day.

DESIGN:
- Session lifecycle: open -> close (immutable once closed)
- Manual cash movements are ledger appends (MANUAL_IN / MANUAL_OUT)
- Summary is recomputed from the ledger on every call
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..errors import SettlementError
from ..services import register_service, reporting_service
from ..validation import parse_date, parse_int, require_json_object
from . import error_response


registers_bp = Blueprint("registers", __name__, url_prefix="/api/registers")


# =============================================================================
# SESSION LIFECYCLE
# =============================================================================

@registers_bp.post("/sessions")
@require_actor
def open_session_route():
    """
    Open today's drawer for an outlet.

    Request body:
    {
        "outlet_id": 1,
        "opening_float": 50000,
        "notes": "Morning shift"    (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        session = register_service.open_session(
            parse_int(data.get("outlet_id"), "outlet_id", minimum=1),
            data.get("opening_float"),
            g.actor_id,
            notes=data.get("notes"),
        )
        return jsonify({"session": session.to_dict()}), 201
    except SettlementError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to open register session")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.post("/sessions/<int:session_id>/close")
@require_actor
def close_session_route(session_id: int):
    """
    Request body:
    {
        "closing_count": 1112000,
        "notes": "Counted twice"    (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        session = register_service.close_session(
            session_id,
            data.get("closing_count"),
            g.actor_id,
            notes=data.get("notes"),
        )
        return jsonify({"session": session.to_dict()}), 200
    except SettlementError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to close register session")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.get("/sessions")
def list_sessions_route():
    try:
        sessions = register_service.list_sessions(
            request.args.get("outlet_id", type=int),
            status=request.args.get("status"),
            date_from=parse_date(request.args.get("date_from"), "date_from"),
            date_to=parse_date(request.args.get("date_to"), "date_to"),
            limit=min(request.args.get("limit", 100, type=int), 500),
        )
        return jsonify({"sessions": [s.to_dict() for s in sessions]}), 200
    except SettlementError as e:
        return error_response(e)


@registers_bp.get("/sessions/<int:session_id>")
def get_session_route(session_id: int):
    try:
        session = register_service.get_session(session_id)
        return jsonify({"session": session.to_dict()}), 200
    except SettlementError as e:
        return error_response(e)


@registers_bp.get("/outlets/<int:outlet_id>/current")
def current_session_route(outlet_id: int):
    """Today's OPEN session for an outlet, or 404."""
    session = register_service.get_open_session(outlet_id)
    if session is None:
        return jsonify({"error": "No open session for this outlet today"}), 404
    return jsonify({"session": session.to_dict()}), 200


# =============================================================================
# LEDGER
# =============================================================================

@registers_bp.get("/sessions/<int:session_id>/entries")
def list_entries_route(session_id: int):
    try:
        register_service.get_session(session_id)
        entries = register_service.get_session_entries(
            session_id,
            entry_type=request.args.get("entry_type"),
            payment_method=request.args.get("payment_method"),
        )
        return jsonify({"entries": [e.to_dict() for e in entries]}), 200
    except SettlementError as e:
        return error_response(e)


@registers_bp.post("/sessions/<int:session_id>/entries")
@require_actor
def add_entry_route(session_id: int):
    """
    Manual cash movement. SALE entries are written only by the sale flow.

    Request body:
    {
        "entry_type": "MANUAL_OUT",
        "amount": 2500,
        "payment_method": "CASH",
        "reference_type": "EXPENSE",    (optional)
        "description": "Taxi"           (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        entry_type = data.get("entry_type")
        if isinstance(entry_type, str) and entry_type.strip().upper() == "SALE":
            return jsonify({"error": "SALE entries are created by the sale flow"}), 400

        entry = register_service.append_ledger_entry(
            session_id,
            entry_type,
            data.get("amount"),
            data.get("payment_method"),
            reference_type=data.get("reference_type"),
            reference_id=data.get("reference_id"),
            description=data.get("description"),
            user_id=g.actor_id,
        )
        return jsonify({"entry": entry.to_dict()}), 201
    except SettlementError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to append register ledger entry")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.get("/sessions/<int:session_id>/summary")
def session_summary_route(session_id: int):
    try:
        return jsonify({"summary": reporting_service.summarize_session(session_id)}), 200
    except SettlementError as e:
        return error_response(e)
