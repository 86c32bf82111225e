"""Shared-secret admin authentication with signed, expiring tokens."""

import hmac

from flask import request
from flask.typing import ResponseReturnValue
from itsdangerous import BadSignature, URLSafeTimedSerializer

from linkshelf.config import ADMIN_TOKEN_MAX_AGE, ADMIN_TOKEN_SALT
from linkshelf.web.context import fail, get_state

TOKEN_COOKIE = "admin_token"


def _serializer() -> URLSafeTimedSerializer | None:
    key = get_state().settings.signing_key
    if not key:
        return None
    return URLSafeTimedSerializer(key, salt=ADMIN_TOKEN_SALT)


def issue_token() -> str:
    serializer = _serializer()
    if serializer is None:
        msg = "Admin password is not configured"
        raise RuntimeError(msg)
    return str(serializer.dumps({"sub": "admin"}))


def verify_token(token: str) -> bool:
    serializer = _serializer()
    if serializer is None or not token:
        return False
    try:
        payload = serializer.loads(token, max_age=ADMIN_TOKEN_MAX_AGE)
    except BadSignature:
        return False
    return isinstance(payload, dict) and payload.get("sub") == "admin"


def password_matches(provided: str) -> bool:
    expected = get_state().settings.admin_password or ""
    return bool(provided) and hmac.compare_digest(provided.encode(), expected.encode())


def _signed_token_from_request() -> str:
    auth = request.headers.get("Authorization", "")
    if auth.startswith("JWT "):
        return auth[4:].strip()
    return (request.headers.get("X-Admin-JWT") or request.cookies.get(TOKEN_COOKIE) or "").strip()


def _password_from_request() -> str:
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth[len("Bearer ") :].strip()
    return (request.headers.get("X-Admin-Token") or "").strip()


def check_admin() -> ResponseReturnValue | None:
    """Return an error response unless the request carries valid admin credentials."""
    if not get_state().settings.admin_password:
        return fail("Admin password is not configured", 503)
    if verify_token(_signed_token_from_request()):
        return None
    if password_matches(_password_from_request()):
        return None
    return fail("Unauthorized admin request", 401, {"WWW-Authenticate": 'Bearer realm="admin"'})
