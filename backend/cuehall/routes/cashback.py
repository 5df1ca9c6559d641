# Overview: Flask API routes for cashback balances, history and rules; returns JSON responses.

"""
Cashback API Routes

DESIGN:
- Balance and history are read-only views over the ledger
- Settings are one row per account, created with defaults on first read
- Expiry runs on demand (POST /expire) or from the CLI
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..services import cashback_service
from . import failure_response, json_body


cashback_bp = Blueprint("cashback", __name__, url_prefix="/api/cashback")

SETTINGS_FIELDS = (
    "percentage",
    "min_amount",
    "max_usage_percent",
    "apply_on_debt",
    "apply_on_extras",
    "enabled",
)


@cashback_bp.get("/balance")
@require_actor
def balance_route():
    """
    Query params:
        customer_id: one customer (optional; default is the whole account)
    """
    customer_id = request.args.get("customer_id", type=int)
    return jsonify(cashback_service.get_cashback_balance(g.actor, customer_id)), 200


@cashback_bp.get("/history")
@require_actor
def history_route():
    customer_id = request.args.get("customer_id", type=int)
    limit = request.args.get("limit", type=int)
    entries = cashback_service.get_cashback_history(g.actor, customer_id, limit)
    return jsonify({"entries": [e.to_dict() for e in entries]}), 200


@cashback_bp.get("/settings")
@require_actor
def get_settings_route():
    return jsonify({"settings": cashback_service.get_cashback_settings(g.actor)}), 200


@cashback_bp.put("/settings")
@require_actor
def update_settings_route():
    """
    Replace the cashback rules. Omitted fields keep their current value.

    Request body:
    {
        "percentage": 5,
        "min_amount": 1000,
        "max_usage_percent": 30,
        "apply_on_debt": false,
        "apply_on_extras": true,
        "enabled": true
    }
    """
    try:
        data = json_body()
        current = cashback_service.get_cashback_settings(g.actor)
        values = {key: data.get(key, current[key]) for key in SETTINGS_FIELDS}
        result = cashback_service.update_cashback_settings(g.actor, **values)
        if not result.ok:
            return failure_response(result)
        return jsonify({"settings": result.value}), 200
    except Exception:
        current_app.logger.exception("Failed to update cashback settings")
        return jsonify({"error": "Internal server error"}), 500


@cashback_bp.post("/expire")
@require_actor
def expire_route():
    result = cashback_service.expire_cashback(g.actor)
    if not result.ok:
        return failure_response(result)
    return jsonify({"expired": result.value}), 200
