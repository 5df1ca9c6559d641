# Overview: Flask API routes for customers and debt payments; parses input and returns JSON responses.

from flask import Blueprint, jsonify, g, current_app

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import customer_service
from . import error_response, failure_response, json_body


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_actor
def list_customers_route():
    customers = customer_service.list_customers(g.actor)
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@customers_bp.post("")
@require_actor
def create_customer_route():
    """
    Request body:
    {
        "name": "Alisher",
        "phone": "+998 90 000 00 00"  (optional)
    }
    """
    data = json_body()
    result = customer_service.create_customer(g.actor, data.get("name"), data.get("phone"))
    if not result.ok:
        return failure_response(result)
    return jsonify({"customer": result.value}), 201


@customers_bp.get("/<int:customer_id>")
@require_actor
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(g.actor, customer_id)
    except LedgerError as e:
        return error_response(e)
    return jsonify({"customer": customer.to_dict()}), 200


@customers_bp.post("/<int:customer_id>/debt-payments")
@require_actor
def pay_debt_route(customer_id: int):
    """
    Pay down a customer's debt.

    Request body:
    {
        "amount": 15000,
        "tender": "cash"   (cash | card)
    }

    Returns:
        200: {"payment_id": ..., "remaining_debt": ...}
        400: amount <= 0 or larger than the debt
        404: customer not found
    """
    try:
        data = json_body()
        result = customer_service.pay_customer_debt(
            g.actor,
            customer_id,
            data.get("amount"),
            data.get("tender", "cash"),
        )
        if not result.ok:
            return failure_response(result)
        return jsonify(result.value), 200
    except Exception:
        current_app.logger.exception("Failed to record debt payment")
        return jsonify({"error": "Internal server error"}), 500
