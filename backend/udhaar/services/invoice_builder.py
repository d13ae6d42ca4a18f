# Overview: Invoice record builder; assembles the invoice header, items and printable receipt.

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..models import Customer, Invoice, InvoiceItem, Merchant
from ..money import add, format_money, subtract
from udhaar.time_utils import to_utc_z, utcnow
from .allocation_service import AllocationResult
from .cart_service import Cart
from .numbering_service import format_invoice_number

WALK_IN_CUSTOMER_NAME = "Walk-in Customer"


def build_invoice(
    *,
    merchant_id: int,
    cart: Cart,
    customer: Customer | None,
    allocation: AllocationResult,
    prefix: str,
    sequence: int,
    payment_method: str,
    session_id: int | None = None,
) -> Invoice:
    """
    Build an unsaved Invoice with one InvoiceItem per cart line.

    Customer name/phone and product name/unit/price are copied in as
    snapshots. For a walk-in sale any excess tender is change, not advance.
    advance_credited_cents is the allocation's preliminary figure; the
    settlement step overwrites it with the realized amount.
    """
    walk_in = customer is None
    invoice = Invoice(
        merchant_id=merchant_id,
        customer_id=None if walk_in else customer.id,
        customer_name=WALK_IN_CUSTOMER_NAME if walk_in else customer.name,
        customer_phone=None if walk_in else customer.phone,
        invoice_prefix=prefix,
        invoice_sequence=sequence,
        full_invoice_number=format_invoice_number(prefix, sequence),
        sale_mode=cart.mode,
        payment_method=payment_method,
        payment_status=allocation.payment_status,
        total_amount_cents=cart.total,
        paid_amount_cents=allocation.paid_toward_current_bill,
        due_amount_cents=allocation.current_bill_due,
        cash_received_cents=allocation.cash_received,
        advance_used_cents=allocation.advance_used,
        advance_credited_cents=0 if walk_in else allocation.new_advance_credit,
        previous_balance_cents=allocation.prior_due,
        change_due_cents=allocation.new_advance_credit if walk_in else 0,
        created_at=utcnow(),
        created_by_session_id=session_id,
    )
    invoice.items = [
        InvoiceItem(
            product_id=line.product_id,
            product_name=line.product_name,
            unit=line.unit,
            quantity=line.quantity,
            price_cents=line.price_cents,
            total_cents=line.line_total,
        )
        for line in cart.lines
    ]
    return invoice


@dataclass
class Receipt:
    """
    What the print/PDF renderer needs: items, subtotal, prior outstanding,
    net payable, amount paid this transaction, advance movements and the
    total still outstanding across all invoices.
    """
    invoice_number: str
    issued_at: str | None
    seller: dict
    customer: dict | None
    payment_method: str
    items: list[dict]
    subtotal: int
    previous_outstanding: int
    net_payable: int
    paid: int
    advance_used: int
    advance_credited: int
    change_due: int
    total_outstanding: int
    settled_invoices: list[dict] = field(default_factory=list)
    currency_symbol: str = ""

    def to_dict(self) -> dict:
        def money(amount: int) -> str:
            return format_money(amount, self.currency_symbol)

        return {
            "invoice_number": self.invoice_number,
            "issued_at": self.issued_at,
            "seller": self.seller,
            "customer": self.customer,
            "payment_method": self.payment_method,
            "items": self.items,
            "subtotal_cents": self.subtotal,
            "previous_outstanding_cents": self.previous_outstanding,
            "net_payable_cents": self.net_payable,
            "paid_cents": self.paid,
            "advance_used_cents": self.advance_used,
            "advance_credited_cents": self.advance_credited,
            "change_due_cents": self.change_due,
            "total_outstanding_cents": self.total_outstanding,
            "settled_invoices": self.settled_invoices,
            "display": {
                "subtotal": money(self.subtotal),
                "previous_outstanding": money(self.previous_outstanding),
                "net_payable": money(self.net_payable),
                "paid": money(self.paid),
                "advance_used": money(self.advance_used),
                "advance_credited": money(self.advance_credited),
                "change_due": money(self.change_due),
                "total_outstanding": money(self.total_outstanding),
            },
        }


def build_receipt(
    invoice: Invoice,
    merchant: Merchant | None = None,
    total_outstanding: int | None = None,
    settled_invoices: list[dict] | None = None,
) -> Receipt:
    """
    Printable summary of a finalized invoice.

    total_outstanding defaults to what the invoice itself implies:
    (bill + previous outstanding) - (cash + advance used), floored at zero.
    Checkout passes the re-read figure instead.
    """
    if total_outstanding is None:
        total_outstanding = subtract(
            add(invoice.total_amount_cents, invoice.previous_balance_cents),
            add(invoice.cash_received_cents, invoice.advance_used_cents),
        )

    seller = {}
    if merchant is not None:
        seller = {
            "name": merchant.business_name or merchant.name,
            "address": merchant.business_address,
            "phone": merchant.business_phone,
            "gstin": merchant.gstin,
        }

    customer = None
    if invoice.customer_id is not None:
        customer = {"name": invoice.customer_name, "phone": invoice.customer_phone}

    return Receipt(
        invoice_number=invoice.full_invoice_number,
        issued_at=to_utc_z(invoice.created_at),
        seller=seller,
        customer=customer,
        payment_method=invoice.payment_method,
        items=[item.to_dict() for item in invoice.items],
        subtotal=invoice.total_amount_cents,
        previous_outstanding=invoice.previous_balance_cents,
        net_payable=add(invoice.total_amount_cents, invoice.previous_balance_cents),
        paid=invoice.cash_received_cents,
        advance_used=invoice.advance_used_cents,
        advance_credited=invoice.advance_credited_cents,
        change_due=invoice.change_due_cents,
        total_outstanding=total_outstanding,
        settled_invoices=settled_invoices or [],
        currency_symbol=current_app.config.get("CURRENCY_SYMBOL", ""),
    )
