# auth_utils.py — request authentication and organization access checks

from __future__ import annotations
import hmac
import logging
from functools import wraps
from typing import Any, Dict, Optional

import jwt
from flask import request, g

from config import CONFIG
from http_utils import unauthorized
from models import Organization, Site

logger = logging.getLogger("auth_utils")


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    if not CONFIG.security.jwt_secret:
        logger.error("JWT_SECRET not set; rejecting bearer token")
        return None
    try:
        return jwt.decode(token, CONFIG.security.jwt_secret, algorithms=[CONFIG.security.jwt_algorithm])
    except jwt.PyJWTError as e:
        logger.info("Rejected bearer token: %s", e)
        return None


def _is_admin_key(key: str) -> bool:
    expected = CONFIG.security.admin_api_key
    return bool(expected) and hmac.compare_digest(key, expected)


def login_required(f):
    """Accepts `Authorization: Bearer <jwt>` or the admin `x-api-key` header."""
    @wraps(f)
    def decorated(*args, **kwargs):
        api_key = request.headers.get("x-api-key", "")
        if api_key:
            if not _is_admin_key(api_key):
                return unauthorized("Unauthorized")
            g.user_email = "admin"
            g.user_organizations = []
            g.is_admin = True
            return f(*args, **kwargs)

        auth = request.headers.get("Authorization", "")
        if not auth.startswith("Bearer "):
            return unauthorized("Unauthorized")
        payload = decode_token(auth.split(" ", 1)[1].strip())
        if not payload or payload.get("type") != "access":
            return unauthorized("Unauthorized")
        g.user_email = payload.get("user_email")
        g.user_organizations = [str(o) for o in payload.get("organizations") or []]
        g.is_admin = bool(payload.get("is_admin"))
        return f(*args, **kwargs)
    return decorated


def get_logged_in_email() -> Optional[str]:
    return getattr(g, "user_email", None)


def has_access(entity: Any) -> bool:
    """Admins see everything; other users only entities of their organizations."""
    if getattr(g, "is_admin", False):
        return True
    organizations = getattr(g, "user_organizations", None) or []
    if isinstance(entity, Site):
        return entity.organization_id is not None and entity.organization_id in organizations
    if isinstance(entity, Organization):
        return entity.id in organizations
    return False
