# http_utils.py — JSON response helpers used by every blueprint
import re
from typing import Any, Dict, Optional

from flask import jsonify, make_response

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]+")


def header_value(value: Any) -> str:
    """First line of the value with control characters removed, safe for a response header."""
    text = str(value).strip()
    first_line = text.splitlines()[0] if text else ""
    return _CONTROL_CHARS.sub(" ", first_line).strip()


def create_response(body: Any, status: int = 200, headers: Optional[Dict[str, str]] = None):
    """JSON response with optional extra headers. A None body yields an empty response."""
    if body is None:
        resp = make_response("", status)
    else:
        resp = make_response(jsonify(body), status)
    for key, value in (headers or {}).items():
        resp.headers[key] = header_value(value)
    return resp


def _error(message: str, status: int, headers: Optional[Dict[str, str]] = None):
    merged = {"x-error": message}
    merged.update(headers or {})
    return create_response({"message": message}, status, merged)


def ok(body: Any = None, headers: Optional[Dict[str, str]] = None):
    return create_response(body if body is not None else {}, 200, headers)


def created(body: Any):
    return create_response(body, 201)


def accepted(body: Any):
    return create_response(body, 202)


def no_content():
    return create_response(None, 204)


def bad_request(message: str = "Bad Request", headers: Optional[Dict[str, str]] = None):
    return _error(message, 400, headers)


def unauthorized(message: str = "Unauthorized"):
    return _error(message, 401)


def forbidden(message: str = "Forbidden"):
    return _error(message, 403)


def not_found(message: str = "Not Found"):
    return _error(message, 404)


def conflict(message: str = "Conflict"):
    return _error(message, 409)


def internal_server_error(message: str = "Internal Server Error"):
    return _error(message, 500)


def service_unavailable(message: str = "Service Unavailable"):
    return _error(message, 503)
