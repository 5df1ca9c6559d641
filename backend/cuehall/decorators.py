# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import AuthorizationError
from .services import tenant_service


def _header_int(name: str) -> int | None:
    raw = request.headers.get(name)
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def require_actor(f):
    """
    Establish the acting operator and tenant context.

    Identity is verified upstream; the gateway forwards the account and
    operator ids in X-Account-Id / X-Operator-Id. Sets:
    - g.actor: the tenant_service.Actor passed to every service call

    SECURITY: Returns 401 if either header is missing or malformed, 403 if
    the operator does not belong to an active account.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        account_id = _header_int("X-Account-Id")
        operator_id = _header_int("X-Operator-Id")

        if account_id is None or operator_id is None:
            return jsonify({"error": "Authentication required", "kind": AuthorizationError.kind}), 401

        try:
            g.actor = tenant_service.make_actor(account_id=account_id, operator_id=operator_id)
        except AuthorizationError as e:
            return jsonify({"error": str(e), "kind": e.kind}), 403

        return f(*args, **kwargs)

    return decorated_function
