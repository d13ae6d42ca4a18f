# backend/udhaar/services/customers_service.py
"""
Customers Service

MULTI-TENANT: every operation is scoped to the caller's merchant_id.

Customers carry the udhaar account: their invoices' due amounts are the
outstanding debt and advance_balance_cents is prepaid credit. Profile edits
never touch the advance balance (the settlement service owns it), and a
customer referenced by any invoice cannot be deleted.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Invoice
from ..validation import ConflictError

CUSTOMER_MUTABLE_FIELDS = {"name", "phone", "business_name", "address", "gstin", "invoice_prefix"}


class CustomerNotFoundError(Exception):
    """Raised when a customer does not exist for the merchant."""
    pass


def apply_customer_patch(c: Customer, patch: dict) -> None:
    for k, v in patch.items():
        if k not in CUSTOMER_MUTABLE_FIELDS:
            continue
        setattr(c, k, v)


def get_customer(merchant_id: int, customer_id: int) -> Customer:
    customer = (
        db.session.query(Customer)
        .filter_by(id=customer_id, merchant_id=merchant_id)
        .first()
    )
    if not customer:
        raise CustomerNotFoundError(f"Customer {customer_id} not found")
    return customer


def list_customers(merchant_id: int, search: str | None = None) -> list[Customer]:
    """Customers ordered by name; optional case-insensitive match on name or phone."""
    query = db.session.query(Customer).filter_by(merchant_id=merchant_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(Customer.name.ilike(term), Customer.phone.ilike(term)))
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def create_customer(merchant_id: int, patch: dict) -> Customer:
    customer = Customer(merchant_id=merchant_id, advance_balance_cents=0)
    apply_customer_patch(customer, patch)
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(merchant_id: int, customer_id: int, patch: dict) -> Customer:
    customer = get_customer(merchant_id, customer_id)
    apply_customer_patch(customer, patch)
    db.session.commit()
    return customer


def delete_customer(merchant_id: int, customer_id: int) -> None:
    """
    Delete a customer with no invoice history.

    Raises:
        ConflictError: invoices reference the customer (ledger history must stay intact)
    """
    customer = get_customer(merchant_id, customer_id)

    invoice_count = db.session.query(Invoice).filter_by(customer_id=customer.id).count()
    if invoice_count:
        raise ConflictError(
            f"Customer has {invoice_count} invoice(s) and cannot be deleted"
        )
    if customer.advance_balance_cents:
        raise ConflictError("Customer has an advance balance and cannot be deleted")

    db.session.delete(customer)
    db.session.commit()


def get_customer_ledger(merchant_id: int, customer_id: int) -> dict:
    """
    Customer statement: invoices newest-first with a running balance.

    The running balance is accumulated oldest-first over due amounts, so each
    row shows what the customer owed after that invoice. Stats cover all
    invoices: total due, total sales, total paid and last visit.
    """
    customer = get_customer(merchant_id, customer_id)

    invoices = (
        db.session.query(Invoice)
        .filter_by(customer_id=customer.id)
        .order_by(Invoice.created_at.asc(), Invoice.id.asc())
        .all()
    )

    rows = []
    running = 0
    total_sales = 0
    total_paid = 0
    for inv in invoices:
        running += inv.due_amount_cents
        total_sales += inv.total_amount_cents
        total_paid += inv.paid_amount_cents
        row = inv.to_dict(include_items=True)
        row["running_balance_cents"] = running
        rows.append(row)
    rows.reverse()

    return {
        "customer": customer.to_dict(),
        "invoices": rows,
        "stats": {
            "total_due_cents": running,
            "total_sales_cents": total_sales,
            "total_paid_cents": total_paid,
            "advance_balance_cents": customer.advance_balance_cents,
            "last_visit_at": rows[0]["created_at"] if rows else None,
        },
    }
