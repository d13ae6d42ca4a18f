# backend/udhaar/config.py
from __future__ import annotations
import os


def _csv(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.environ.get(name, default).split(",") if item.strip()]


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Relative sqlite paths resolve inside backend/instance/
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///udhaar.sqlite3")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Origins of the counter UI (Vite dev server and preview by default)
    CORS_ALLOWED_ORIGINS = _csv(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    )

    # Invoice numbering: tag used for walk-in (retail) sales, and how many
    # times a header insert is retried after a duplicate-number conflict.
    DEFAULT_INVOICE_PREFIX = os.environ.get("DEFAULT_INVOICE_PREFIX", "SHOP")
    INVOICE_NUMBER_MAX_ATTEMPTS = int(os.environ.get("INVOICE_NUMBER_MAX_ATTEMPTS", "3"))

    # Retries for a ledger step that lost a race (row lock timeout or version_id mismatch)
    CONFLICT_RETRY_ATTEMPTS = int(os.environ.get("CONFLICT_RETRY_ATTEMPTS", "3"))
    CONFLICT_RETRY_BACKOFF_SECONDS = float(os.environ.get("CONFLICT_RETRY_BACKOFF_SECONDS", "0.05"))

    # Receipt display only; all amounts are stored in minor units
    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "₹")

    # Customers whose total due is at or below this are left off the outstanding report
    OUTSTANDING_REPORT_MIN_DUE_CENTS = int(os.environ.get("OUTSTANDING_REPORT_MIN_DUE_CENTS", "100"))
