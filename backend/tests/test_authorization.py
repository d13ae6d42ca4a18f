"""
Authorization tests for the udhaar API.

Verifies:
- Unauthenticated requests return 401
- Expired, idle and revoked tokens are rejected
- The session endpoint reports the merchant behind the token
- System health and version endpoints are public
"""

from datetime import timedelta

import pytest

from udhaar.models import Merchant, SessionToken
from udhaar.services.ledger_service import record_discrepancy
from udhaar.services.session_service import (
    SessionError,
    create_session,
    hash_token,
    validate_session,
)
from udhaar.time_utils import utcnow


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/session"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/customers"),
            ("GET", "/api/customers/1/outstanding"),
            ("POST", "/api/customers/1/payments"),
            ("POST", "/api/checkout/allocate"),
            ("POST", "/api/checkout"),
            ("GET", "/api/invoices"),
            ("GET", "/api/reports/outstanding"),
            ("GET", "/api/reports/discrepancies"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/products", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    def test_wrong_scheme(self, client, auth_token):
        resp = client.get("/api/products", headers={"Authorization": f"Token {auth_token}"})
        assert resp.status_code == 401


# =============================================================================
# SESSION LIFECYCLE
# =============================================================================


class TestSessionLifecycle:
    def test_token_is_stored_hashed(self, db_session, merchant):
        session, token = create_session(merchant.id)
        assert len(token) == 64
        assert session.token_hash == hash_token(token)
        assert session.token_hash != token

    def test_inactive_merchant_cannot_get_a_session(self, db_session, merchant):
        merchant.is_active = False
        db_session.commit()
        with pytest.raises(SessionError):
            create_session(merchant.id)

    def test_session_endpoint(self, client, auth_headers, merchant):
        resp = client.get("/api/auth/session", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["merchant"]["code"] == "SHARMA"
        assert data["session"]["terminal"] == "counter-1"

    def test_logout_revokes(self, client, auth_headers):
        resp = client.post("/api/auth/logout", headers=auth_headers)
        assert resp.status_code == 200

        resp = client.get("/api/auth/session", headers=auth_headers)
        assert resp.status_code == 401

        resp = client.post("/api/auth/logout", headers=auth_headers)
        assert resp.status_code == 401

    def test_expired_session(self, db_session, merchant):
        session, token = create_session(merchant.id)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()
        assert validate_session(token) is None

    def test_idle_session_is_revoked(self, db_session, merchant):
        session, token = create_session(merchant.id)
        session.last_used_at = utcnow() - timedelta(hours=3)
        db_session.commit()

        assert validate_session(token) is None
        assert db_session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_deactivated_merchant_loses_access(self, client, db_session, merchant, auth_headers):
        merchant = db_session.get(Merchant, merchant.id)
        merchant.is_active = False
        db_session.commit()

        resp = client.get("/api/products", headers=auth_headers)
        assert resp.status_code == 401


# =============================================================================
# PUBLIC ENDPOINTS - NO AUTH REQUIRED
# =============================================================================


class TestPublicEndpoints:
    """System health and version endpoints are public."""

    def test_health(self, client, merchant):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["details"]["merchants"] == 1

    def test_version(self, client, db_session):
        resp = client.get("/version")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["api_version"] in ("1.0.0", "unknown")
        assert data["server_time"].endswith("Z")

    def test_health_flags_open_discrepancies(self, client, merchant):
        record_discrepancy(merchant_id=merchant.id, kind="SETTLEMENT_SHORTFALL", amount_cents=500)
        data = client.get("/health").get_json()
        assert data["status"] == "healthy"
        assert data["checks"]["ledger"] == {"status": "attention", "open_discrepancies": 1}
