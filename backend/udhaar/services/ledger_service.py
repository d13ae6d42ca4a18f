# Overview: Service-layer operations for the audit ledger and operator-visible discrepancies.

from __future__ import annotations

import json
from typing import Optional
from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import LedgerEvent, LedgerDiscrepancy, Customer, Invoice
from udhaar.time_utils import utcnow
"""
Udhaar Ledger Invariants (authoritative)

- LedgerEvent is an append-only audit log of money movements.
- Events are written inside the same DB transaction as the change they record.
- For every customer at a quiescent point:
      advance_balance = sum(advance_credited) - sum(advance_used)
  over all of the customer's invoices.
- Anything the settlement engine could not place is a LedgerDiscrepancy,
  never a silent loss.
"""

DISCREPANCY_SETTLEMENT_SHORTFALL = "SETTLEMENT_SHORTFALL"
DISCREPANCY_ADVANCE_OVERDRAWN = "ADVANCE_OVERDRAWN"
DISCREPANCY_ADVANCE_UPDATE_FAILED = "ADVANCE_UPDATE_FAILED"


class LedgerError(Exception):
    """Raised for ledger maintenance errors."""
    pass


class DiscrepancyNotFoundError(LedgerError):
    pass


def append_ledger_event(
    *,
    merchant_id: int,
    event_type: str,
    entity_type: str,
    entity_id: int,
    customer_id: int | None = None,
    invoice_id: int | None = None,
    amount_cents: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> LedgerEvent:
    """
    Append-only ledger event. Flushed, not committed: the caller owns the
    transaction so the event lands (or rolls back) with the change it records.
    """
    ev = LedgerEvent(
        merchant_id=merchant_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        customer_id=customer_id,
        invoice_id=invoice_id,
        amount_cents=amount_cents,
        occurred_at=occurred_at or utcnow(),
        note=note,
        payload=json.dumps(payload, sort_keys=True) if payload is not None else None,
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def record_discrepancy(
    *,
    merchant_id: int,
    kind: str,
    amount_cents: int,
    customer_id: int | None = None,
    invoice_id: int | None = None,
    detail: str | None = None,
) -> LedgerDiscrepancy:
    """
    Persist a discrepancy in its own transaction.

    Called from failure paths, so it commits independently of whatever
    the failed step left behind (which the caller has already rolled back).
    """
    discrepancy = LedgerDiscrepancy(
        merchant_id=merchant_id,
        customer_id=customer_id,
        invoice_id=invoice_id,
        kind=kind,
        amount_cents=amount_cents,
        detail=detail[:512] if detail else None,
    )
    db.session.add(discrepancy)
    db.session.commit()

    current_app.logger.error(
        "Ledger discrepancy %s: merchant=%s customer=%s invoice=%s amount=%s (%s)",
        kind, merchant_id, customer_id, invoice_id, amount_cents, detail,
    )
    return discrepancy


def list_discrepancies(merchant_id: int, include_resolved: bool = False) -> list[LedgerDiscrepancy]:
    query = db.session.query(LedgerDiscrepancy).filter_by(merchant_id=merchant_id)
    if not include_resolved:
        query = query.filter_by(is_resolved=False)
    return query.order_by(LedgerDiscrepancy.created_at.desc(), LedgerDiscrepancy.id.desc()).all()


def resolve_discrepancy(merchant_id: int, discrepancy_id: int, note: str) -> LedgerDiscrepancy:
    """Mark a discrepancy as handled by an operator (the fix itself is manual)."""
    discrepancy = (
        db.session.query(LedgerDiscrepancy)
        .filter_by(id=discrepancy_id, merchant_id=merchant_id)
        .first()
    )
    if not discrepancy:
        raise DiscrepancyNotFoundError(f"Discrepancy {discrepancy_id} not found")
    if discrepancy.is_resolved:
        raise LedgerError(f"Discrepancy {discrepancy_id} already resolved")

    discrepancy.is_resolved = True
    discrepancy.resolved_at = utcnow()
    discrepancy.resolution_note = note
    db.session.commit()
    return discrepancy


def audit_customer_ledgers(merchant_id: int) -> list[dict]:
    """
    Recompute the advance invariant for every customer of a merchant.

    Returns one row per customer whose stored advance balance differs from
    sum(advance_credited) - sum(advance_used); empty when the ledger balances.
    """
    totals = dict(
        (row.customer_id, row)
        for row in db.session.query(
            Invoice.customer_id.label("customer_id"),
            func.coalesce(func.sum(Invoice.advance_credited_cents), 0).label("credited"),
            func.coalesce(func.sum(Invoice.advance_used_cents), 0).label("used"),
            func.coalesce(func.sum(Invoice.due_amount_cents), 0).label("due"),
        )
        .filter(Invoice.merchant_id == merchant_id, Invoice.customer_id.isnot(None))
        .group_by(Invoice.customer_id)
        .all()
    )

    mismatches = []
    customers = (
        db.session.query(Customer)
        .filter_by(merchant_id=merchant_id)
        .order_by(Customer.id.asc())
        .all()
    )
    for customer in customers:
        row = totals.get(customer.id)
        expected = (row.credited - row.used) if row else 0
        if expected != customer.advance_balance_cents:
            mismatches.append({
                "customer_id": customer.id,
                "customer_name": customer.name,
                "advance_balance_cents": customer.advance_balance_cents,
                "expected_advance_balance_cents": expected,
                "difference_cents": customer.advance_balance_cents - expected,
                "outstanding_due_cents": row.due if row else 0,
            })
    return mismatches
