from flask import Blueprint, jsonify, request

from ..errors import SettlementError
from ..services import reporting_service
from ..validation import parse_date
from . import error_response


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/daily")
def daily_summary():
    outlet_id = request.args.get("outlet_id", type=int)
    if not outlet_id:
        return jsonify({"error": "outlet_id is required"}), 400

    try:
        business_date = parse_date(request.args.get("date"), "date")
        report = reporting_service.outlet_daily_summary(outlet_id, business_date)
        return jsonify(report), 200
    except SettlementError as e:
        return error_response(e)


@reports_bp.get("/sessions/<int:session_id>")
def session_summary(session_id: int):
    try:
        return jsonify(reporting_service.summarize_session(session_id)), 200
    except SettlementError as e:
        return error_response(e)
