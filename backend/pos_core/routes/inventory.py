# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/pos_core/routes/inventory.py
"""
Inventory API Routes

DESIGN:
- Stock on hand comes from the movement ledger; the materialized counter is
  returned alongside for diagnostics
- Every write is an append (receive, adjust, transfer); nothing is edited
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..errors import SettlementError
from ..services import catalog_service, inventory_service
from ..time_utils import parse_iso_datetime
from ..validation import parse_int, require_json_object
from . import error_response


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/<int:outlet_id>/<int:product_id>")
def get_stock_route(outlet_id: int, product_id: int):
    """
    Query params:
        as_of: ISO-8601 datetime (optional), ledger figure at that instant
    """
    try:
        catalog_service.get_outlet(outlet_id)
        catalog_service.get_product(product_id)
        try:
            as_of = parse_iso_datetime(request.args.get("as_of"))
        except ValueError:
            return jsonify({"error": "as_of must be an ISO-8601 datetime"}), 400

        level = inventory_service.get_stock_level(outlet_id, product_id)
        return jsonify({
            "outlet_id": outlet_id,
            "product_id": product_id,
            "quantity_on_hand": inventory_service.current_stock(outlet_id, product_id, as_of=as_of),
            "as_of": request.args.get("as_of"),
            "stock_level": level.to_dict() if level else None,
        }), 200
    except SettlementError as e:
        return error_response(e)


@inventory_bp.get("/movements")
def list_movements_route():
    movements = inventory_service.list_movements(
        request.args.get("outlet_id", type=int),
        product_id=request.args.get("product_id", type=int),
        movement_type=request.args.get("movement_type"),
        reference_type=request.args.get("reference_type"),
        reference_id=request.args.get("reference_id"),
        limit=min(request.args.get("limit", 200, type=int), 1000),
    )
    return jsonify({"movements": [m.to_dict() for m in movements]}), 200


@inventory_bp.post("/receive")
@require_actor
def receive_route():
    """
    Request body:
    {
        "outlet_id": 1,
        "product_id": 3,
        "quantity": 24,
        "reference_type": "PURCHASE",   (optional)
        "reference_id": "BL-0042",      (optional)
        "note": "Weekly delivery"       (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        movement = inventory_service.receive_stock(
            parse_int(data.get("outlet_id"), "outlet_id", minimum=1),
            parse_int(data.get("product_id"), "product_id", minimum=1),
            data.get("quantity"),
            reference_type=data.get("reference_type") or "PURCHASE",
            reference_id=data.get("reference_id"),
            note=data.get("note"),
            user_id=g.actor_id,
        )
        return jsonify({"movement": movement.to_dict()}), 201
    except SettlementError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to receive stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/adjust")
@require_actor
def adjust_route():
    """
    Request body:
    {
        "outlet_id": 1,
        "product_id": 3,
        "quantity_delta": -2,
        "reason": "Broken in storage",
        "reference_type": "LOSS"        (optional, default MANUAL)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        movement = inventory_service.adjust_stock(
            parse_int(data.get("outlet_id"), "outlet_id", minimum=1),
            parse_int(data.get("product_id"), "product_id", minimum=1),
            data.get("quantity_delta"),
            reason=data.get("reason"),
            reference_type=data.get("reference_type") or "MANUAL",
            user_id=g.actor_id,
        )
        return jsonify({"movement": movement.to_dict()}), 201
    except SettlementError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/transfer")
@require_actor
def transfer_route():
    """
    Request body:
    {
        "from_outlet_id": 1,
        "to_outlet_id": 2,
        "product_id": 3,
        "quantity": 5,
        "note": "Restock branch"        (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        outbound, inbound = inventory_service.transfer_stock(
            parse_int(data.get("from_outlet_id"), "from_outlet_id", minimum=1),
            parse_int(data.get("to_outlet_id"), "to_outlet_id", minimum=1),
            parse_int(data.get("product_id"), "product_id", minimum=1),
            data.get("quantity"),
            reference_id=data.get("reference_id"),
            note=data.get("note"),
            user_id=g.actor_id,
        )
        return jsonify({
            "outbound": outbound.to_dict(),
            "inbound": inbound.to_dict(),
        }), 201
    except SettlementError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to transfer stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/low-stock/<int:outlet_id>")
def low_stock_route(outlet_id: int):
    try:
        catalog_service.get_outlet(outlet_id)
        threshold = request.args.get("threshold", type=int)
        return jsonify({
            "outlet_id": outlet_id,
            "items": inventory_service.low_stock(outlet_id, threshold),
        }), 200
    except SettlementError as e:
        return error_response(e)
