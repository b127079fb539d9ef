# Overview: Flask API routes for counter sales; parses input and returns JSON responses.

# backend/pos_core/routes/sales.py
"""
Sales API Routes

A POST settles the whole sale (order, stock decrement, cash ledger) in one
transaction. Failures return the typed error code with its details, e.g.
the per-product shortfall for INSUFFICIENT_STOCK.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..errors import SettlementError
from ..services import sales_service
from ..validation import parse_int, require_json_object
from . import error_response


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/")
@sales_bp.post("")
@require_actor
def create_sale_route():
    """
    Request body:
    {
        "outlet_id": 1,
        "payment_method": "CASH",
        "items": [
            {"product_id": 3, "quantity": 2, "unit_price": 450000}
        ],
        "tax_rate": 0.18,                        (optional)
        "client": {"name": "Awa Diop", ...},     (optional)
        "notes": "..."                           (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        receipt = sales_service.create_sale(
            parse_int(data.get("outlet_id"), "outlet_id", minimum=1),
            data.get("items"),
            data.get("payment_method"),
            client=data.get("client"),
            tax_rate=data.get("tax_rate"),
            notes=data.get("notes"),
            user_id=g.actor_id,
        )
        order = sales_service.get_order(receipt.order_id)
        return jsonify({
            "receipt": receipt.to_dict(),
            "order": order.to_dict(include_lines=True),
        }), 201
    except SettlementError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/")
@sales_bp.get("")
def list_sales_route():
    orders = sales_service.list_orders(
        request.args.get("outlet_id", type=int),
        session_id=request.args.get("session_id", type=int),
        limit=min(request.args.get("limit", 100, type=int), 500),
    )
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@sales_bp.get("/<int:order_id>")
def get_sale_route(order_id: int):
    try:
        order = sales_service.get_order(order_id)
        return jsonify({"order": order.to_dict(include_lines=True)}), 200
    except SettlementError as e:
        return error_response(e)


@sales_bp.get("/<int:order_id>/settlement")
def get_settlement_route(order_id: int):
    """Order, its inventory movements and its ledger entry, with a consistency flag."""
    try:
        return jsonify(sales_service.get_order_settlement(order_id)), 200
    except SettlementError as e:
        return error_response(e)
