# Overview: Flask API routes for system health; returns JSON responses.

from flask import Blueprint, jsonify, current_app
from sqlalchemy import text

from ..extensions import db
from cuehall.time_utils import to_utc_z, utcnow


system_bp = Blueprint("system", __name__, url_prefix="/api/system")


@system_bp.get("/health")
def health():
    """Database round-trip check for load balancers."""
    try:
        db.session.execute(text("SELECT 1"))
    except Exception:
        current_app.logger.exception("Database health check failed")
        return jsonify({"status": "error", "database": "unreachable"}), 503
    return jsonify({"status": "ok", "database": "ok", "time": to_utc_z(utcnow())}), 200
