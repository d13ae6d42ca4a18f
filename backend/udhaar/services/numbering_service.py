# Overview: Service-layer operations for invoice numbering; prefix resolution and sequence reservation.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, Invoice


INVOICE_NUMBER_CONSTRAINT = "uq_invoices_merchant_prefix_seq"

PREFIX_NAME_LETTERS = 3


class DuplicateInvoiceNumberError(Exception):
    """
    Raised when an invoice header insert collides on
    (merchant_id, invoice_prefix, invoice_sequence).

    WHY: reserve_next() is optimistic (read max, add one). Two terminals
    checking out for the same prefix can both compute the same number; the
    store's unique constraint rejects the second insert and checkout
    re-reserves and retries.
    """
    def __init__(self, merchant_id: int, prefix: str, sequence: int):
        super().__init__(f"Invoice number {format_invoice_number(prefix, sequence)} already taken")
        self.merchant_id = merchant_id
        self.prefix = prefix
        self.sequence = sequence


def default_prefix() -> str:
    return current_app.config.get("DEFAULT_INVOICE_PREFIX", "SHOP")


def resolve_prefix(customer: Customer | None) -> str:
    """
    Invoice prefix for a sale.

    - customer's stored invoice_prefix, if set
    - else the first 3 letters of the customer's name, upper-cased
      ("Google Traders" -> "GOO")
    - else the default walk-in tag (SHOP)
    """
    if customer is not None:
        if customer.invoice_prefix and customer.invoice_prefix.strip():
            return customer.invoice_prefix.strip().upper()
        letters = "".join(ch for ch in (customer.name or "") if ch.isalnum())
        if letters:
            return letters[:PREFIX_NAME_LETTERS].upper()
    return default_prefix()


def format_invoice_number(prefix: str, sequence: int) -> str:
    return f"{prefix}-{sequence}"


def reserve_next(merchant_id: int, prefix: str) -> int:
    """
    Next invoice sequence for (merchant, prefix): highest existing + 1, or 1.

    NOT a lock: two concurrent callers may get the same answer. Callers insert
    under the unique constraint and treat IntegrityError on it as
    DuplicateInvoiceNumberError (see is_invoice_number_conflict).
    """
    last = (
        db.session.query(func.max(Invoice.invoice_sequence))
        .filter(Invoice.merchant_id == merchant_id, Invoice.invoice_prefix == prefix)
        .scalar()
    )
    return (last or 0) + 1


def is_invoice_number_conflict(exc: IntegrityError) -> bool:
    """
    True if the IntegrityError came from the invoice number unique constraint.

    PostgreSQL reports the constraint name; SQLite reports the column list.
    """
    message = str(getattr(exc, "orig", exc))
    if INVOICE_NUMBER_CONSTRAINT in message:
        return True
    return "UNIQUE constraint failed" in message and "invoices.invoice_sequence" in message
