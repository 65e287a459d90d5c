# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/kaunter/routes/orders.py
"""Order API routes (register screen and transaction log)"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_company_user
from ..services import order_service
from ..services.order_service import (
    AlreadyRefunded,
    ItemNotFound,
    OrderNotFound,
    OrderPersistenceFailed,
)
from ..validation import ValidationError


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("/")
@require_company_user
def create_order_route():
    """
    Ring up a paid order.

    Body: {"items": [{"item_id": 1, "quantity": 2}], "payment_type": "cash"}
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "Request body must be a JSON object"}), 400
        if "items" not in data or "payment_type" not in data:
            return jsonify({"error": "Missing required fields: items or payment_type"}), 400

        order = order_service.create_order(
            company_id=g.company_id,
            actor_id=g.principal.user_id,
            cart_lines=data.get("items"),
            payment_type=data.get("payment_type"),
        )
        return jsonify({"order": order.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ItemNotFound as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except OrderPersistenceFailed as e:
        return jsonify({"error": str(e)}), 500
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/today")
@require_company_user
def list_todays_orders_route():
    """Transaction log: all of today's orders (business-local day), newest first."""
    try:
        orders = order_service.list_todays_orders(g.company_id)
        return jsonify({"orders": [order.to_dict() for order in orders]}), 200
    except Exception:
        current_app.logger.exception("Failed to list today's orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_company_user
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(g.company_id, order_id)
        return jsonify({"order": order.to_dict()}), 200
    except OrderNotFound as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to fetch order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/refund")
@require_company_user
def refund_order_route(order_id: int):
    """Mark a paid order as refunded. A second refund answers 409."""
    try:
        order = order_service.refund_order(
            company_id=g.company_id,
            actor_id=g.principal.user_id,
            order_id=order_id,
        )
        return jsonify({"order": order.to_dict()}), 200

    except OrderNotFound as e:
        return jsonify({"error": str(e)}), 404
    except AlreadyRefunded as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        current_app.logger.exception("Failed to refund order")
        return jsonify({"error": "Internal server error"}), 500
