# Overview: Flask API routes for per-size stock; reads, history, and manual adjustments.

# backend/backoffice/routes/stock.py
"""
Stock routes.

Sales move stock through settlement only; this blueprint exposes the current
per-size quantities, the movement history, and manual adjustments
(receiving, damage, corrections).
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import SettlementError, ValidationError
from ..services import inventory_service


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("/<int:product_id>")
def get_stock_route(product_id: int):
    try:
        rows = inventory_service.get_stock(product_id)
        product = inventory_service.get_product(product_id)
        return jsonify({
            "product_id": product_id,
            "product": product.to_dict(),
            "sizes": [r.to_dict() for r in rows],
            "total_quantity": sum(r.quantity for r in rows),
        }), 200
    except ValidationError as e:
        return jsonify(e.to_dict()), 404
    except Exception:
        current_app.logger.exception("Failed to load stock")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/<int:product_id>/history")
def get_stock_history_route(product_id: int):
    try:
        limit = min(max(request.args.get("limit", default=100, type=int), 1), 500)
        movements = inventory_service.get_stock_history(product_id, limit=limit)
        return jsonify({"product_id": product_id, "movements": [m.to_dict() for m in movements]}), 200
    except ValidationError as e:
        return jsonify(e.to_dict()), 404
    except Exception:
        current_app.logger.exception("Failed to load stock history")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.post("/adjustment")
def adjust_stock_route():
    """
    Manually adjust one size's stock.

    Request body:
    {
        "productId": 1,
        "size": "M",              (ignored for free-size products)
        "type": "ADD" | "REDUCE",
        "quantity": 5,
        "reason": "NEW_STOCK_ARRIVAL",
        "note": "..."             (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        product_id = data.get("productId")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            return jsonify({"error": "productId must be an integer"}), 400

        movement = inventory_service.adjust_stock(
            product_id,
            data.get("size"),
            data.get("type"),
            data.get("quantity"),
            data.get("reason"),
            note=data.get("note"),
        )
        current_app.logger.info(
            "Stock adjusted: product=%s size=%s %s -> %s (%s)",
            movement.product_id,
            movement.size,
            movement.before_quantity,
            movement.after_quantity,
            movement.reason,
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except SettlementError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500
