# Overview: Flask API routes for outlets and products (reference data).

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_actor
from ..errors import SettlementError
from ..services import catalog_service
from ..validation import require_json_object
from . import error_response


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


def _flag(name: str) -> bool:
    return request.args.get(name, "false").lower() == "true"


@catalog_bp.post("/outlets")
@require_actor
def create_outlet_route():
    """
    Request body:
    {
        "code": "DKR-01",
        "name": "Dakar Plateau"
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        outlet = catalog_service.create_outlet(data.get("code"), data.get("name"))
        return jsonify({"outlet": outlet.to_dict()}), 201
    except SettlementError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create outlet")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/outlets")
def list_outlets_route():
    outlets = catalog_service.list_outlets(include_inactive=_flag("include_inactive"))
    return jsonify({"outlets": [o.to_dict() for o in outlets]}), 200


@catalog_bp.get("/outlets/<int:outlet_id>")
def get_outlet_route(outlet_id: int):
    try:
        outlet = catalog_service.get_outlet(outlet_id)
        return jsonify({"outlet": outlet.to_dict()}), 200
    except SettlementError as e:
        return error_response(e)


@catalog_bp.post("/products")
@require_actor
def create_product_route():
    """
    Request body:
    {
        "name": "Huile 1L",
        "sku": "HUI-1L",            (optional)
        "price": 1500,              (optional, minor units)
        "is_trackable": true        (optional, default true)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        product = catalog_service.create_product(
            data.get("name"),
            sku=data.get("sku"),
            price=data.get("price"),
            is_trackable=data.get("is_trackable", True),
        )
        return jsonify({"product": product.to_dict()}), 201
    except SettlementError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/products")
def list_products_route():
    products = catalog_service.list_products(include_inactive=_flag("include_inactive"))
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@catalog_bp.get("/products/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except SettlementError as e:
        return error_response(e)
