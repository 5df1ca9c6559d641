# Overview: Flask API routes for additional orders; returns JSON responses.

from flask import Blueprint, jsonify, g

from ..decorators import require_actor
from ..services import order_service
from . import failure_response


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.delete("/<int:order_id>")
@require_actor
def remove_order_route(order_id: int):
    result = order_service.remove_additional_order(g.actor, order_id)
    if not result.ok:
        return failure_response(result)
    return jsonify({"success": True}), 200
