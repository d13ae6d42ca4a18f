# Overview: Terminal session tokens; issues, validates and revokes the bearer tokens that carry merchant context.

"""
Terminal Sessions

WHY: Every invoice must be attributable to a merchant. A counter terminal
holds a bearer token issued for one merchant; the merchant context comes
from the session row, never from the request body.

- Tokens are 32 random bytes, hex encoded; only their SHA-256 is stored
- A session dies 24 h after issue, or after 2 h without a request
- Deactivating a merchant ends its sessions at their next use
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import Merchant, SessionToken
from udhaar.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


class SessionError(Exception):
    """Raised when a session cannot be issued."""
    pass


@dataclass
class SessionContext:
    """What require_auth puts on flask.g for the rest of the request."""
    merchant: Merchant
    session: SessionToken
    merchant_id: int


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # Tokens are high-entropy, so an unsalted fast hash is enough
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _active_session(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter_by(token_hash=hash_token(token), is_revoked=False)
        .first()
    )


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def create_session(merchant_id: int, terminal: str | None = None) -> tuple[SessionToken, str]:
    """
    Issue a token for one terminal of a merchant.

    Returns (session_row, plaintext_token); the plaintext is not kept anywhere.

    Raises:
        SessionError: merchant missing or deactivated
    """
    merchant = db.session.get(Merchant, merchant_id)
    if merchant is None:
        raise SessionError("Merchant not found")
    if not merchant.is_active:
        raise SessionError("Merchant is not active")

    token = generate_token()
    issued = utcnow()
    session = SessionToken(
        merchant_id=merchant.id,
        token_hash=hash_token(token),
        terminal=terminal,
        created_at=issued,
        last_used_at=issued,
        expires_at=issued + SESSION_ABSOLUTE_TIMEOUT,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    current_app.logger.info("Issued session %s for merchant %s (terminal=%s)", session.id, merchant.id, terminal)
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its merchant, or None.

    Idle and deactivated-merchant sessions are revoked on the spot; a
    session past its absolute expiry is simply refused. A valid use
    refreshes last_used_at.
    """
    session = _active_session(token)
    if session is None:
        return None

    now = utcnow()
    if now >= session.expires_at:
        return None

    reason = None
    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        reason = "Idle timeout"
    elif session.merchant is None or not session.merchant.is_active:
        reason = "Merchant deactivated"

    if reason:
        _revoke(session, reason)
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(merchant=session.merchant, session=session, merchant_id=session.merchant_id)


def revoke_session(token: str, reason: str = "Logout") -> bool:
    """False when no live session matches the token."""
    session = _active_session(token)
    if session is None:
        return False
    _revoke(session, reason)
    db.session.commit()
    return True


def revoke_merchant_sessions(merchant_id: int, reason: str) -> int:
    """Revoke every live session of a merchant; returns how many were revoked."""
    sessions = (
        db.session.query(SessionToken)
        .filter_by(merchant_id=merchant_id, is_revoked=False)
        .all()
    )
    for session in sessions:
        _revoke(session, reason)
    db.session.commit()
    return len(sessions)
