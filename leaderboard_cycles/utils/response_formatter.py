"""JSON envelopes shared by every route and error handler."""
from flask import jsonify


def success_response(payload=None, message=None, status=200):
    """
    ``{"success": true, ...payload}``. Dict payloads are merged into the
    envelope; lists and scalars are nested under ``data``.
    """
    body = {"success": True}
    if isinstance(payload, dict):
        body.update(payload)
    elif payload is not None:
        body["data"] = payload
    if message:
        body["message"] = message
    return jsonify(body), status


def error_response(code, message, details=None, status=400):
    body = {"code": code, "message": message, "details": details or {}}
    return jsonify({"success": False, "error": body}), status


def service_error_response(error):
    """Render a ``ServiceError`` with the HTTP status its class carries."""
    return error_response(error.code, error.message, error.details, status=error.status)
