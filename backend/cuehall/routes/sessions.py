# Overview: Flask API routes for play sessions and their orders; parses input and returns JSON responses.

"""
Session API Routes

WHY: Front-desk workflow. Open a table for a customer, add drinks and
snacks while the clock runs, then settle.

DESIGN:
- Session lifecycle: open -> close (immutable once closed)
- Live totals are re-computed on every read of an active session
- Orders are only mutable while the session is active
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import order_service, session_service
from . import error_response, failure_response, json_body


sessions_bp = Blueprint("sessions", __name__, url_prefix="/api/sessions")


# =============================================================================
# LIFECYCLE
# =============================================================================

@sessions_bp.post("")
@require_actor
def open_session_route():
    """
    Open a session on a table.

    Request body:
    {
        "table_id": 1,
        "customer_id": 7
    }

    Returns:
        201: {"session": {...}}
        404: table or customer not found
        409: table inactive or already occupied
    """
    try:
        data = json_body()
        result = session_service.open_session(g.actor, data.get("table_id"), data.get("customer_id"))
        if not result.ok:
            return failure_response(result)
        session = session_service.get_session(g.actor, result.value)
        return jsonify({"session": session.to_dict()}), 201
    except Exception:
        current_app.logger.exception("Failed to open session")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.post("/<int:session_id>/close")
@require_actor
def close_session_route(session_id: int):
    """
    Settle an active session.

    Request body:
    {
        "paid_amount": 30000,
        "payment_type": "cash",       (cash | card | debt)
        "cashback_amount": 5000,      (optional, default 0)
        "notes": "regular"            (optional)
    }

    Returns:
        200: {"settlement": {...}, "session": {...}}
        400: invalid amounts or cashback over balance/limit
        404: session not found
        409: session already completed
    """
    try:
        data = json_body()
        result = session_service.close_session(
            g.actor,
            session_id,
            paid_amount=data.get("paid_amount"),
            payment_type=data.get("payment_type"),
            cashback_amount=data.get("cashback_amount", 0),
            notes=data.get("notes"),
        )
        if not result.ok:
            return failure_response(result)
        session = session_service.get_session(g.actor, session_id)
        return jsonify({"settlement": result.value.to_dict(), "session": session.to_dict()}), 200
    except Exception:
        current_app.logger.exception("Failed to close session")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUERIES
# =============================================================================

@sessions_bp.get("/active")
@require_actor
def active_sessions_route():
    projections = session_service.get_active_sessions(g.actor)
    return jsonify({"sessions": [p.to_dict() for p in projections]}), 200


@sessions_bp.get("/history")
@require_actor
def session_history_route():
    """
    Completed sessions, newest first.

    Query params:
        limit: page size (default SESSION_HISTORY_PAGE_SIZE)
        offset: rows to skip (default 0)
    """
    limit = request.args.get("limit", type=int)
    offset = request.args.get("offset", default=0, type=int)
    page = session_service.get_session_history(g.actor, limit=limit, offset=offset)
    return jsonify({
        "sessions": [s.to_dict() for s in page["sessions"]],
        "total": page["total"],
        "has_more": page["has_more"],
    }), 200


@sessions_bp.get("/<int:session_id>")
@require_actor
def get_session_route(session_id: int):
    """Active sessions come back with live totals, completed ones as settled."""
    try:
        session = session_service.get_session(g.actor, session_id)
        if isinstance(session, session_service.OpenSession):
            projection = session_service.project_session(g.actor, session_id)
            return jsonify({"session": session.to_dict(), "projection": projection.to_dict()}), 200
        return jsonify({"session": session.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)


# =============================================================================
# ORDERS
# =============================================================================

@sessions_bp.get("/<int:session_id>/orders")
@require_actor
def list_orders_route(session_id: int):
    try:
        orders = order_service.list_orders(g.actor, session_id)
    except LedgerError as e:
        return error_response(e)
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@sessions_bp.post("/<int:session_id>/orders")
@require_actor
def add_order_route(session_id: int):
    """
    Request body:
    {
        "item_name": "Cola",
        "quantity": 2,
        "unit_price": 5000
    }
    """
    data = json_body()
    result = order_service.add_additional_order(
        g.actor,
        session_id,
        data.get("item_name"),
        data.get("quantity"),
        data.get("unit_price"),
    )
    if not result.ok:
        return failure_response(result)
    return jsonify({"order_id": result.value}), 201
