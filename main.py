# main.py — SpaceCat API (JWT-guarded REST + Slack bot)
from __future__ import annotations
import os
from dotenv import load_dotenv

# Load .env.dev if present (for local dev), otherwise fall back to .env
if os.path.exists('.env.dev'):
    load_dotenv('.env.dev', override=True)
else:
    load_dotenv()

import time

from flask import Flask, g, request, jsonify, make_response
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.exceptions import HTTPException

from http_utils import bad_request

# Initialize logging early (before any logger usage)
from logging_config import get_logger, get_metrics_logger, setup_logging
setup_logging("spacecat-api")
logger = get_logger("spacecat.main")
metrics = get_metrics_logger("spacecat.main")

from config import CONFIG
from data_access import InvalidInputError
from app.routes.audits_routes import audits_bp
from app.routes.consent_banner_routes import consent_banner_bp
from app.routes.preflight_routes import preflight_bp
from app.routes.sites_routes import sites_bp
from app.routes.slack_routes import slack_bp
from app.routes.traffic_tools_routes import traffic_tools_bp
from app.routes.trial_user_routes import trial_users_bp

API_PREFIX = f"/api/{CONFIG.app.api_version}"

app = Flask(__name__)
for bp in (sites_bp, audits_bp, preflight_bp, trial_users_bp, consent_banner_bp, traffic_tools_bp, slack_bp):
    app.register_blueprint(bp, url_prefix=API_PREFIX)

limiter = Limiter(
    get_remote_address,
    app=app,
    default_limits=[CONFIG.security.default_rate],
    storage_uri="memory://",
)
# Slack retries on its own and must not be throttled per IP
limiter.exempt(slack_bp)


# ---------- Global Error Handlers ----------
@app.errorhandler(404)
def handle_404_error(e):
    return make_response(jsonify({"message": "Not Found"}), 404)


@app.errorhandler(405)
def handle_405_error(e):
    return make_response(jsonify({"message": "Method Not Allowed"}), 405)


@app.errorhandler(500)
def handle_500_error(e):
    logger.error("server_error_500", url=request.url, method=request.method, error=str(e))
    return make_response(jsonify({"message": "Internal Server Error"}), 500)


@app.errorhandler(InvalidInputError)
def handle_invalid_input(e):
    logger.warning("invalid_input", url=request.url, method=request.method, error=str(e))
    return bad_request(str(e))


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return make_response(jsonify({"message": e.description}), e.code)
    logger.error("unhandled_exception", url=request.url, method=request.method,
                 error=str(e), exc_info=True)
    return make_response(jsonify({"message": "Internal Server Error"}), 500)


# ---------- CORS ----------
ALLOWED_ORIGINS = CONFIG.app.origins


def _build_cors_response(resp):
    origin = request.headers.get("Origin")
    # If ALLOWED_ORIGINS contains "*" or exact origin, echo it; otherwise omit header
    if "*" in ALLOWED_ORIGINS:
        resp.headers["Access-Control-Allow-Origin"] = "*"
    elif origin and origin in ALLOWED_ORIGINS:
        resp.headers["Access-Control-Allow-Origin"] = origin
    resp.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,DELETE,OPTIONS"
    resp.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization, x-api-key"
    resp.headers["Access-Control-Expose-Headers"] = "x-error"
    return resp


@app.before_request
def _start_timer():
    g.request_started = time.time()
    if request.method == "OPTIONS":
        return _build_cors_response(make_response("", 204))
    return None


@app.after_request
def _after(resp):
    started = getattr(g, "request_started", None)
    if started is not None and request.path.startswith(API_PREFIX):
        metrics.api_request(
            endpoint=request.path,
            method=request.method,
            status_code=resp.status_code,
            duration_ms=int((time.time() - started) * 1000),
            user_email=getattr(g, "user_email", None),
        )
    return _build_cors_response(resp)


# ---------- Health ----------
@app.route("/health", methods=["GET"])
def health_check():
    """Liveness plus a database round-trip when a database is configured."""
    from db_utils import test_connection
    database = test_connection() if CONFIG.database.is_configured else None
    status = "healthy" if database is not False else "degraded"
    body = {
        "status": status,
        "database": database,
        "version": CONFIG.app.api_version,
        "base_url": (CONFIG.app.public_base_url or request.url_root).rstrip("/"),
    }
    return make_response(jsonify(body), 200 if status == "healthy" else 503)


@app.route("/ping", methods=["GET"])
def ping():
    """Simple liveness check."""
    return jsonify({"status": "ok", "message": "pong"})


if __name__ == "__main__":
    port = CONFIG.app.port
    logger.info("starting_server", port=port, env=CONFIG.app.env)
    app.run(host="0.0.0.0", port=port, debug=CONFIG.app.env == "development")
