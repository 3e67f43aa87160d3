# Overview: Flask API routes for customer balances; read-only view of the balance ledger.

from flask import Blueprint, request, jsonify, current_app

from ..errors import SettlementError
from ..services import customer_service


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("/<int:customer_id>/balance")
def get_customer_balance_route(customer_id: int):
    """Current debt/advance plus the most recent ledger rows."""
    try:
        limit = min(max(request.args.get("limit", default=20, type=int), 1), 200)
        customer = customer_service.get_customer(customer_id)
        transactions = customer_service.get_recent_transactions(customer_id, limit=limit)
        return jsonify({
            "customer": customer.to_dict(),
            "transactions": [t.to_dict() for t in transactions],
        }), 200

    except SettlementError as e:
        # Only "not found" reaches here for a read
        return jsonify(e.to_dict()), 404
    except Exception:
        current_app.logger.exception("Failed to load customer balance")
        return jsonify({"error": "Internal server error"}), 500
