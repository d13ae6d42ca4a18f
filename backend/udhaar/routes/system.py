# backend/udhaar/routes/system.py
"""
Public health and version endpoints (no token needed).

/health is what the counter UI polls before opening a sale: the database
must answer, and open ledger discrepancies are reported so an operator
notices them, without marking the service unhealthy.
"""

import sys
import time
from importlib.metadata import PackageNotFoundError, version as package_version

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import LedgerDiscrepancy, Merchant, SessionToken
from udhaar.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def check_database_health() -> dict:
    start = time.perf_counter()
    try:
        db.session.execute(text("SELECT 1"))
        details = {
            "merchants": db.session.query(Merchant).count(),
            "active_sessions": db.session.query(SessionToken).filter_by(is_revoked=False).count(),
        }
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start), "error": "Database error"}

    return {"status": "healthy", "latency_ms": _elapsed_ms(start), "details": details}


def check_ledger_health() -> dict:
    open_count = db.session.query(LedgerDiscrepancy).filter_by(is_resolved=False).count()
    return {
        "status": "attention" if open_count else "clean",
        "open_discrepancies": open_count,
    }


@system_bp.get("/health")
def health():
    """200 when the database answers, 503 otherwise."""
    database = check_database_health()
    healthy = database["status"] == "healthy"

    checks = {"database": database}
    if healthy:
        checks["ledger"] = check_ledger_health()

    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": checks,
    }, 200 if healthy else 503


@system_bp.get("/version")
def version():
    try:
        api_version = package_version("udhaar-pos")
    except PackageNotFoundError:
        api_version = "unknown"

    return {
        "api_version": api_version,
        "environment": "development" if current_app.debug else "production",
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
