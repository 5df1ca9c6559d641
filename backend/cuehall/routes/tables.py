# Overview: Flask API routes for tables and the rate ledger; parses input and returns JSON responses.

"""
Table & Rate API Routes

DESIGN:
- Minimal table CRUD (create, list with occupancy, toggle, delete)
- Rate changes always go through the rate ledger (history + update)
"""

from flask import Blueprint, jsonify, g, current_app

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import rate_service, table_service
from . import error_response, failure_response, json_body


tables_bp = Blueprint("tables", __name__, url_prefix="/api/tables")


@tables_bp.get("")
@require_actor
def list_tables_route():
    return jsonify({"tables": table_service.list_tables(g.actor)}), 200


@tables_bp.post("")
@require_actor
def create_table_route():
    """
    Request body:
    {
        "name": "Table 1",
        "hourly_rate": 30000
    }
    """
    data = json_body()
    result = table_service.create_table(g.actor, data.get("name"), data.get("hourly_rate"))
    if not result.ok:
        return failure_response(result)
    return jsonify({"table": result.value}), 201


@tables_bp.patch("/<int:table_id>")
@require_actor
def set_table_active_route(table_id: int):
    """
    Request body:
    {
        "is_active": false
    }
    """
    data = json_body()
    result = table_service.set_table_active(g.actor, table_id, data.get("is_active"))
    if not result.ok:
        return failure_response(result)
    return jsonify({"table": result.value}), 200


@tables_bp.delete("/<int:table_id>")
@require_actor
def delete_table_route(table_id: int):
    result = table_service.delete_table(g.actor, table_id)
    if not result.ok:
        return failure_response(result)
    return jsonify({"success": True}), 200


@tables_bp.post("/<int:table_id>/rate")
@require_actor
def update_rate_route(table_id: int):
    """
    Change the hourly rate. Active sessions keep the rate they opened with.

    Request body:
    {
        "new_rate": 35000
    }
    """
    try:
        data = json_body()
        result = rate_service.update_table_rate(g.actor, table_id, data.get("new_rate"))
        if not result.ok:
            return failure_response(result)
        return jsonify({"rate_change": result.value}), 200
    except Exception:
        current_app.logger.exception("Failed to update table rate")
        return jsonify({"error": "Internal server error"}), 500


@tables_bp.get("/<int:table_id>/rate-history")
@require_actor
def rate_history_route(table_id: int):
    try:
        rows = rate_service.get_rate_history(g.actor, table_id)
    except LedgerError as e:
        return error_response(e)
    return jsonify({"history": [r.to_dict() for r in rows]}), 200
