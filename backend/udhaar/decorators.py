# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require a valid session and establish merchant context.

    Sets on flask.g:
    - g.merchant_id: the tenant every query in the request is scoped to
    - g.session_context: the full SessionContext

    Returns 401 if the Authorization header is missing or the token is
    invalid, expired, revoked or belongs to a deactivated merchant.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.merchant_id = context.merchant_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function
