# Overview: Ledger reconciliation; settles old dues oldest-first and maintains the customer advance balance.

"""
Ledger Reconciliation Service

WHY: When a wholesale customer pays more than the current bill, the excess
goes to their older unpaid invoices, oldest first (FIFO, the way a
shopkeeper clears a paper udhaar book), and anything beyond that becomes
advance credit for future bills.

DESIGN PRINCIPLES:
- Dues are re-read at settlement time, never taken from the allocation
  preview (another terminal may have settled them in between)
- One committed step per old invoice: a payoff that landed stays landed
- The advance balance is updated last, only after every intended
  settlement succeeded, and from a freshly read balance
- Failures never drop money silently: they become LedgerDiscrepancy rows
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Customer, Invoice
from ..money import add, min_amount, payment_status_for, subtract
from .concurrency import lock_for_update, run_with_retry
from .customers_service import CustomerNotFoundError
from .ledger_service import (
    DISCREPANCY_ADVANCE_OVERDRAWN,
    DISCREPANCY_SETTLEMENT_SHORTFALL,
    append_ledger_event,
    record_discrepancy,
)


@dataclass(frozen=True)
class Outstanding:
    """Allocation inputs for a customer: what they owe and what they have prepaid."""
    prior_due: int
    advance_balance: int

    def to_dict(self) -> dict:
        return {
            "prior_due_cents": self.prior_due,
            "advance_balance_cents": self.advance_balance,
        }


@dataclass(frozen=True)
class SettlementEntry:
    """One old invoice touched by a settlement."""
    invoice_id: int
    full_invoice_number: str
    payoff: int
    due_before: int
    due_after: int
    payment_status: str

    def to_dict(self) -> dict:
        return {
            "invoice_id": self.invoice_id,
            "full_invoice_number": self.full_invoice_number,
            "payoff_cents": self.payoff,
            "due_before_cents": self.due_before,
            "due_after_cents": self.due_after,
            "payment_status": self.payment_status,
        }


@dataclass
class SettlementOutcome:
    requested: int
    leftover: int
    entries: list[SettlementEntry] = field(default_factory=list)

    @property
    def cleared(self) -> int:
        return self.requested - self.leftover


class PartialSettlementFailure(Exception):
    """
    Raised when an old-due update fails partway through the oldest-first walk.

    Payoffs already applied (entries) are kept. The unplaced amount is
    recorded as a SETTLEMENT_SHORTFALL discrepancy and the advance balance
    is left untouched.
    """
    def __init__(self, customer_id: int, entries: list[SettlementEntry], shortfall: int, discrepancy_id: int | None = None):
        super().__init__(
            f"Settlement for customer {customer_id} stopped after {len(entries)} invoice(s); "
            f"{shortfall} unapplied"
        )
        self.customer_id = customer_id
        self.entries = entries
        self.shortfall = shortfall
        self.discrepancy_id = discrepancy_id


def _get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise CustomerNotFoundError(f"Customer {customer_id} not found")
    return customer


def get_outstanding(customer_id: int | None, exclude_invoice_id: int | None = None) -> Outstanding:
    """
    Prior due (sum of positive dues) and advance balance for a customer.

    Walk-in (customer_id None) owes nothing and has no advance.
    """
    if customer_id is None:
        return Outstanding(prior_due=0, advance_balance=0)

    customer = _get_customer(customer_id)

    query = db.session.query(func.coalesce(func.sum(Invoice.due_amount_cents), 0)).filter(
        Invoice.customer_id == customer_id,
        Invoice.due_amount_cents > 0,
    )
    if exclude_invoice_id is not None:
        query = query.filter(Invoice.id != exclude_invoice_id)

    return Outstanding(
        prior_due=int(query.scalar() or 0),
        advance_balance=customer.advance_balance_cents,
    )


def list_open_invoice_ids(customer_id: int, exclude_invoice_id: int | None = None) -> list[int]:
    """Customer's invoices with due > 0, oldest-created first (id breaks ties)."""
    query = db.session.query(Invoice.id).filter(
        Invoice.customer_id == customer_id,
        Invoice.due_amount_cents > 0,
    )
    if exclude_invoice_id is not None:
        query = query.filter(Invoice.id != exclude_invoice_id)
    return [row.id for row in query.order_by(Invoice.created_at.asc(), Invoice.id.asc()).all()]


def _settle_one(invoice_id: int, available: int, source_invoice_id: int | None) -> SettlementEntry | None:
    """
    Apply up to `available` to one invoice, re-reading its current due.

    Commits on success. Returns None if the invoice no longer owes anything.
    """
    invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
    if not invoice or invoice.due_amount_cents <= 0:
        db.session.rollback()
        return None

    due_before = invoice.due_amount_cents
    payoff = min_amount(available, due_before)

    invoice.due_amount_cents = subtract(due_before, payoff)
    invoice.paid_amount_cents = add(invoice.paid_amount_cents, payoff)
    invoice.payment_status = payment_status_for(invoice.due_amount_cents)

    append_ledger_event(
        merchant_id=invoice.merchant_id,
        event_type="invoice.settled",
        entity_type="invoice",
        entity_id=invoice.id,
        customer_id=invoice.customer_id,
        invoice_id=invoice.id,
        amount_cents=payoff,
        note=f"Old due on {invoice.full_invoice_number} settled",
        payload={
            "due_before_cents": due_before,
            "due_after_cents": invoice.due_amount_cents,
            "source_invoice_id": source_invoice_id,
        },
    )

    entry = SettlementEntry(
        invoice_id=invoice.id,
        full_invoice_number=invoice.full_invoice_number,
        payoff=payoff,
        due_before=due_before,
        due_after=invoice.due_amount_cents,
        payment_status=invoice.payment_status,
    )
    db.session.commit()
    return entry


def apply_old_dues_settlement(
    customer_id: int,
    amount: int,
    exclude_invoice_id: int | None = None,
) -> SettlementOutcome:
    """
    Walk the customer's open invoices oldest-first and pay them down.

    Args:
        customer_id: Customer whose old dues are settled
        amount: Cash available for old dues (minor units, >= 0)
        exclude_invoice_id: The invoice just created (never settled against itself)

    Returns:
        SettlementOutcome; leftover is what the caller credits as advance.

    Raises:
        PartialSettlementFailure: a per-invoice update failed; earlier payoffs stand
    """
    customer = _get_customer(customer_id)
    merchant_id = customer.merchant_id

    outcome = SettlementOutcome(requested=amount, leftover=amount)
    if amount <= 0:
        return outcome

    for invoice_id in list_open_invoice_ids(customer_id, exclude_invoice_id):
        if outcome.leftover <= 0:
            break

        def _op(invoice_id=invoice_id, available=outcome.leftover):
            return _settle_one(invoice_id, available, exclude_invoice_id)

        try:
            entry = run_with_retry(_op)
        except SQLAlchemyError as exc:
            db.session.rollback()
            discrepancy = record_discrepancy(
                merchant_id=merchant_id,
                kind=DISCREPANCY_SETTLEMENT_SHORTFALL,
                amount_cents=outcome.leftover,
                customer_id=customer_id,
                invoice_id=exclude_invoice_id,
                detail=f"Settling invoice {invoice_id} failed: {exc}",
            )
            raise PartialSettlementFailure(
                customer_id, outcome.entries, outcome.leftover, discrepancy.id
            ) from exc

        if entry is None:
            continue
        outcome.entries.append(entry)
        outcome.leftover -= entry.payoff

    if outcome.entries:
        current_app.logger.info(
            "Settled %d old invoice(s) for customer %s: cleared=%s leftover=%s",
            len(outcome.entries), customer_id, outcome.cleared, outcome.leftover,
        )
    return outcome


def apply_advance_update(
    customer_id: int,
    invoice_id: int,
    advance_used: int,
    advance_credited: int,
) -> int:
    """
    Final, authoritative ledger step of a checkout.

    new_balance = max(0, current - advance_used + advance_credited), computed
    from a freshly read balance. Also stamps the realized advance_credited on
    the invoice so the per-customer invariant holds.

    Returns the new advance balance.
    """
    def _op():
        customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
        if not customer:
            raise CustomerNotFoundError(f"Customer {customer_id} not found")
        invoice = db.session.query(Invoice).filter_by(id=invoice_id).first()

        before = customer.advance_balance_cents
        raw = before - advance_used + advance_credited
        customer.advance_balance_cents = max(0, raw)
        if invoice is not None:
            invoice.advance_credited_cents = advance_credited

        if advance_used or advance_credited:
            append_ledger_event(
                merchant_id=customer.merchant_id,
                event_type="customer.advance_updated",
                entity_type="customer",
                entity_id=customer.id,
                customer_id=customer.id,
                invoice_id=invoice_id,
                amount_cents=customer.advance_balance_cents - before,
                payload={
                    "before_cents": before,
                    "used_cents": advance_used,
                    "credited_cents": advance_credited,
                    "after_cents": customer.advance_balance_cents,
                },
            )

        result = (customer.merchant_id, customer.advance_balance_cents, max(0, -raw))
        db.session.commit()
        return result

    merchant_id, balance, overdrawn = run_with_retry(_op)

    if overdrawn:
        record_discrepancy(
            merchant_id=merchant_id,
            kind=DISCREPANCY_ADVANCE_OVERDRAWN,
            amount_cents=overdrawn,
            customer_id=customer_id,
            invoice_id=invoice_id,
            detail="Advance drawn by concurrent checkouts exceeded the balance; clamped to zero",
        )
    return balance
