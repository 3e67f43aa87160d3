# Overview: Flask API routes for sale settlement; parses input and returns JSON responses.

# backend/backoffice/routes/sales.py
"""
Sales API routes

POST settles a whole sale in one call: the body carries the cart, the
payments and the customer, and the response is either the committed sale or
a typed failure after which nothing has changed.
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import SettlementError
from ..services import settlement_service
from ..time_utils import parse_iso_datetime
from ..validation import parse_sale_request


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

MAX_PAGE_SIZE = 500


@sales_bp.post("/")
def create_sale_route():
    """
    Settle a sale.

    Request body:
    {
        "items": [{"productId": 1, "size": "M", "quantity": 2, "price": 50.00,
                   "discount": 10, "discountType": "PERCENTAGE"}],
        "payments": [{"amount": 90.00, "method": "CASH"}],
        "customerId": 7,              (optional)
        "customerName": "Alice",      (optional, with customerPhone creates a customer)
        "customerPhone": "555-0100",  (optional)
        "discount": 5, "discountType": "AMOUNT",  (optional bill discount)
        "tax": 0,                     (optional flat tax; config rate otherwise)
        "notes": "..."                (optional)
    }

    Returns:
        201 with the committed sale, or {error, code, retryable, details} with
        400 (validation / payment), 409 (stock), 422 (size), 503 (busy),
        500 (persistence)
    """
    try:
        sale_request = parse_sale_request(request.get_json(silent=True))
        sale = settlement_service.settle_sale(sale_request)
        return jsonify({"sale": sale.to_dict(include_items=True)}), 201

    except SettlementError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to settle sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    sale = settlement_service.get_sale(sale_id)
    if not sale:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({"sale": sale.to_dict(include_items=True)}), 200


@sales_bp.get("/")
def list_sales_route():
    """
    List sales, newest first.

    Query params: status, startDate, endDate (ISO-8601), page (1-based), limit
    """
    try:
        page = request.args.get("page", default=1, type=int)
        limit = request.args.get("limit", default=100, type=int)
        if page < 1 or limit < 1:
            return jsonify({"error": "page and limit must be positive"}), 400
        limit = min(limit, MAX_PAGE_SIZE)

        start = parse_iso_datetime(request.args.get("startDate"))
        end = parse_iso_datetime(request.args.get("endDate"))

        sales, total = settlement_service.list_sales(
            status=request.args.get("status") or None,
            start=start,
            end=end,
            page=page,
            limit=limit,
        )
        return jsonify({
            "sales": [s.to_dict() for s in sales],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit,
            },
        }), 200

    except ValueError:
        return jsonify({"error": "startDate and endDate must be ISO-8601"}), 400
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500
