# Overview: Shared helpers for turning service results into JSON responses.

from flask import jsonify, request

from ..errors import HTTP_STATUS_BY_KIND, LedgerError
from ..services.results import Failure


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def failure_response(failure: Failure):
    return jsonify(failure.to_dict()), HTTP_STATUS_BY_KIND.get(failure.kind, 400)


def error_response(exc: LedgerError):
    return jsonify({"error": str(exc), "kind": exc.kind}), HTTP_STATUS_BY_KIND.get(exc.kind, 400)
