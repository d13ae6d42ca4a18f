# Overview: Flask API routes for terminal sessions; inspect and end the caller's own session.

# backend/udhaar/routes/auth.py
"""
Session routes.

Tokens are issued out of band by the identity provider
(`flask sessions issue`); a terminal can only look at and end its own.
"""

from flask import Blueprint, current_app, g

from ..decorators import bearer_token, require_auth
from ..services import session_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.get("/session")
@require_auth
def session_route():
    """Merchant profile (the receipt header) and session timestamps for the caller's token."""
    context = g.session_context
    return {
        "merchant": context.merchant.to_dict(),
        "session": context.session.to_dict(),
        "idle_timeout_seconds": int(session_service.SESSION_IDLE_TIMEOUT.total_seconds()),
    }


@auth_bp.post("/logout")
def logout_route():
    token = bearer_token()
    if not token:
        return {"error": "Authorization header required"}, 401

    try:
        revoked = session_service.revoke_session(token, reason="Logout")
    except Exception:
        current_app.logger.exception("Failed to logout")
        return {"error": "Internal server error"}, 500

    if not revoked:
        return {"error": "Invalid or expired token"}, 401
    return {"message": "Logged out"}
