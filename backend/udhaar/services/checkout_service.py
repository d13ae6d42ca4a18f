# Overview: Checkout orchestrator; writes the invoice, settles old dues and updates the advance balance.

"""
Checkout Service

WHY: A sale touches three things that must stay consistent: the invoice
number sequence, product stock and the customer's udhaar ledger. They are
updated in a strict order:

1. Invoice header + items + stock decrement, one transaction. A number
   collision retries the whole transaction with a fresh number; a stock
   shortfall rolls it all back (nothing persisted).
2. Old-dues settlement, oldest first, one committed step per old invoice.
3. Advance balance update, last, from a freshly read balance.

Once step 1 has committed the sale is real. A failure in step 2 or 3 does not
undo it: the result comes back incomplete and the gap is a LedgerDiscrepancy.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Customer, Invoice, Merchant, Product
from ..validation import ValidationError
from . import numbering_service
from .allocation_service import AllocationResult, allocate_payment, is_fully_settled
from .cart_service import Cart, build_cart
from .concurrency import run_with_retry
from .customers_service import get_customer
from .invoice_builder import Receipt, build_invoice, build_receipt
from .ledger_service import (
    DISCREPANCY_ADVANCE_UPDATE_FAILED,
    append_ledger_event,
    record_discrepancy,
)
from .numbering_service import DuplicateInvoiceNumberError
from .settlement_service import (
    Outstanding,
    PartialSettlementFailure,
    SettlementEntry,
    apply_advance_update,
    apply_old_dues_settlement,
    get_outstanding,
)

PAYMENT_METHODS = ("Cash", "UPI", "Card", "Advance", "Credit")


class CheckoutError(Exception):
    """Raised for checkout errors that leave nothing persisted."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class StockExhaustedError(CheckoutError):
    """A product's stock dropped below the cart quantity before the sale committed."""
    pass


class InvoiceCreationFailed(CheckoutError):
    """Every invoice number tried was taken by a concurrent sale."""
    pass


class _AdvanceUpdateFailed(Exception):
    def __init__(self, message: str, discrepancy_id: int):
        super().__init__(message)
        self.discrepancy_id = discrepancy_id


@dataclass
class CheckoutResult:
    invoice: Invoice
    receipt: Receipt
    settled_invoices: list[SettlementEntry] = field(default_factory=list)
    advance_balance: int | None = None
    complete: bool = True
    discrepancy_id: int | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "invoice": self.invoice.to_dict(include_items=True),
            "receipt": self.receipt.to_dict(),
            "settled_invoices": [entry.to_dict() for entry in self.settled_invoices],
            "advance_balance_cents": self.advance_balance,
            "complete": self.complete,
            "discrepancy_id": self.discrepancy_id,
            "error": self.error,
        }


def preview_allocation(
    merchant_id: int,
    customer_id: int | None,
    cart_lines: list[dict] | None,
    tendered: int | None,
    use_advance: bool = False,
    mode: str | None = None,
) -> tuple[Cart, Outstanding, AllocationResult]:
    """
    Price the cart, read the customer's outstanding and run the allocation.

    Nothing is written; the operator confirms the returned allocation and
    sends it back with the checkout.
    """
    if customer_id is not None:
        get_customer(merchant_id, customer_id)
    cart = build_cart(merchant_id, cart_lines, customer_id=customer_id, mode=mode)
    outstanding = get_outstanding(customer_id)
    allocation = allocate_payment(
        bill_total=cart.total,
        prior_due=outstanding.prior_due,
        advance_balance=outstanding.advance_balance,
        use_advance=use_advance,
        tendered=tendered,
    )
    return cart, outstanding, allocation


def _validate_checkout(
    cart: Cart,
    customer: Customer | None,
    allocation: AllocationResult,
    payment_method: str,
) -> None:
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment_method: {payment_method}. Must be one of {list(PAYMENT_METHODS)}"
        )
    if not allocation.is_consistent():
        raise ValidationError("Allocation does not match its own inputs; re-run the preview")
    if allocation.bill_total != cart.total:
        raise ValidationError(
            "Cart total changed since the allocation preview; re-run the preview"
        )

    if cart.is_empty:
        if customer is None:
            raise ValidationError("Cart is empty")
        if allocation.cash_received <= 0 and allocation.advance_used <= 0:
            raise ValidationError("A payment receipt needs an amount received or advance applied")

    if customer is None:
        if allocation.prior_due or allocation.advance_balance or allocation.advance_used:
            raise ValidationError("Walk-in sales carry no dues or advance")
        if not is_fully_settled(allocation):
            raise ValidationError("Walk-in sales must be paid in full; select a customer for credit")
        return

    current = get_outstanding(customer.id)
    if allocation.advance_used > current.advance_balance:
        raise ValidationError(
            "Advance balance changed since the allocation preview; re-run the preview"
        )


def _write_invoice(
    *,
    merchant_id: int,
    cart: Cart,
    customer_id: int | None,
    allocation: AllocationResult,
    prefix: str,
    payment_method: str,
    session_id: int | None,
) -> int:
    """
    Transaction 1: number, header, items and stock, committed together.

    Returns the new invoice id.

    Raises:
        DuplicateInvoiceNumberError: the reserved number was taken concurrently
        StockExhaustedError: a conditional stock decrement matched no row
    """
    customer = db.session.get(Customer, customer_id) if customer_id is not None else None
    sequence = numbering_service.reserve_next(merchant_id, prefix)

    invoice = build_invoice(
        merchant_id=merchant_id,
        cart=cart,
        customer=customer,
        allocation=allocation,
        prefix=prefix,
        sequence=sequence,
        payment_method=payment_method,
        session_id=session_id,
    )
    db.session.add(invoice)
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        if numbering_service.is_invoice_number_conflict(exc):
            raise DuplicateInvoiceNumberError(merchant_id, prefix, sequence) from exc
        raise

    for line in cart.lines:
        result = db.session.execute(
            update(Product)
            .where(
                Product.id == line.product_id,
                Product.merchant_id == merchant_id,
                Product.stock >= line.quantity,
            )
            .values(stock=Product.stock - line.quantity, version_id=Product.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            raise StockExhaustedError(
                f"Stock limit reached for {line.product_name}",
                details={"product_id": line.product_id, "requested_quantity": line.quantity},
            )
        append_ledger_event(
            merchant_id=merchant_id,
            event_type="stock.decremented",
            entity_type="product",
            entity_id=line.product_id,
            invoice_id=invoice.id,
            payload={"quantity": line.quantity},
        )

    append_ledger_event(
        merchant_id=merchant_id,
        event_type="invoice.created",
        entity_type="invoice",
        entity_id=invoice.id,
        customer_id=customer_id,
        invoice_id=invoice.id,
        amount_cents=invoice.total_amount_cents,
        occurred_at=invoice.created_at,
        note=f"Invoice {invoice.full_invoice_number}",
        payload={
            "paid_cents": invoice.paid_amount_cents,
            "due_cents": invoice.due_amount_cents,
            "cash_received_cents": invoice.cash_received_cents,
            "advance_used_cents": invoice.advance_used_cents,
            "payment_method": payment_method,
        },
    )

    invoice_id = invoice.id
    db.session.commit()
    return invoice_id


def _create_invoice_with_retry(**kwargs) -> int:
    max_attempts = current_app.config.get("INVOICE_NUMBER_MAX_ATTEMPTS", 3)
    merchant_id = kwargs["merchant_id"]
    prefix = kwargs["prefix"]

    for attempt in range(1, max_attempts + 1):
        try:
            return run_with_retry(lambda: _write_invoice(**kwargs))
        except DuplicateInvoiceNumberError as exc:
            current_app.logger.warning(
                "Invoice number conflict for merchant %s (attempt %d/%d): %s",
                merchant_id, attempt, max_attempts, exc,
            )

    raise InvoiceCreationFailed(
        f"Could not assign an invoice number for prefix {prefix} after {max_attempts} attempts",
        details={"prefix": prefix, "attempts": max_attempts},
    )


def checkout(
    merchant_id: int,
    customer_id: int | None,
    cart_lines: list[dict] | None,
    payment_method: str,
    allocation: AllocationResult | dict,
    mode: str | None = None,
    session_id: int | None = None,
) -> CheckoutResult:
    """
    Finalize a sale (or a payment-only receipt for a customer).

    Raises (nothing persisted):
        ValidationError, CustomerNotFoundError, StockExhaustedError,
        InvoiceCreationFailed

    After the invoice commits, settlement failures are reported on the
    returned result (complete=False) rather than raised.
    """
    if not isinstance(allocation, AllocationResult):
        allocation = AllocationResult.from_dict(allocation)

    customer = get_customer(merchant_id, customer_id) if customer_id is not None else None
    cart = build_cart(merchant_id, cart_lines, customer_id=customer_id, mode=mode)
    _validate_checkout(cart, customer, allocation, payment_method)

    prefix = numbering_service.resolve_prefix(customer)
    invoice_id = _create_invoice_with_retry(
        merchant_id=merchant_id,
        cart=cart,
        customer_id=customer_id,
        allocation=allocation,
        prefix=prefix,
        payment_method=payment_method,
        session_id=session_id,
    )

    settled: list[SettlementEntry] = []
    advance_balance = None
    complete = True
    discrepancy_id = None
    error = None

    if customer_id is not None:
        try:
            outcome = apply_old_dues_settlement(
                customer_id,
                allocation.paid_toward_old_dues + allocation.new_advance_credit,
                exclude_invoice_id=invoice_id,
            )
            settled = outcome.entries
            advance_balance = _update_advance(
                merchant_id, customer_id, invoice_id, allocation.advance_used, outcome.leftover,
            )
        except PartialSettlementFailure as exc:
            settled = exc.entries
            complete = False
            discrepancy_id = exc.discrepancy_id
            error = str(exc)
        except _AdvanceUpdateFailed as exc:
            complete = False
            discrepancy_id = exc.discrepancy_id
            error = str(exc)

    invoice = db.session.get(Invoice, invoice_id)
    if customer_id is not None:
        total_outstanding = get_outstanding(customer_id).prior_due
    else:
        total_outstanding = invoice.due_amount_cents

    receipt = build_receipt(
        invoice,
        merchant=db.session.get(Merchant, merchant_id),
        total_outstanding=total_outstanding,
        settled_invoices=[entry.to_dict() for entry in settled],
    )

    current_app.logger.info(
        "Checkout %s: merchant=%s customer=%s total=%s received=%s complete=%s",
        invoice.full_invoice_number, merchant_id, customer_id,
        invoice.total_amount_cents, invoice.cash_received_cents, complete,
    )

    return CheckoutResult(
        invoice=invoice,
        receipt=receipt,
        settled_invoices=settled,
        advance_balance=advance_balance,
        complete=complete,
        discrepancy_id=discrepancy_id,
        error=error,
    )


def _update_advance(merchant_id: int, customer_id: int, invoice_id: int, used: int, credited: int) -> int:
    try:
        return apply_advance_update(customer_id, invoice_id, used, credited)
    except SQLAlchemyError as exc:
        db.session.rollback()
        discrepancy = record_discrepancy(
            merchant_id=merchant_id,
            kind=DISCREPANCY_ADVANCE_UPDATE_FAILED,
            amount_cents=credited - used,
            customer_id=customer_id,
            invoice_id=invoice_id,
            detail=f"Advance update failed (used={used}, credited={credited}): {exc}",
        )
        raise _AdvanceUpdateFailed(
            f"Advance balance for customer {customer_id} was not updated", discrepancy.id
        ) from exc


def collect_payment(
    merchant_id: int,
    customer_id: int,
    amount: int,
    payment_method: str = "Cash",
    session_id: int | None = None,
    use_advance: bool = False,
) -> CheckoutResult:
    """
    Dues collection: a payment-only receipt (empty cart) for a customer.

    The amount clears old invoices oldest-first; any excess becomes advance.
    With use_advance, advance already on account is netted against the dues
    too, so amount may be 0.
    """
    customer = get_customer(merchant_id, customer_id)
    outstanding = get_outstanding(customer.id)
    allocation = allocate_payment(
        bill_total=0,
        prior_due=outstanding.prior_due,
        advance_balance=outstanding.advance_balance,
        use_advance=use_advance,
        tendered=amount,
    )
    return checkout(
        merchant_id,
        customer.id,
        [],
        payment_method,
        allocation,
        session_id=session_id,
    )
