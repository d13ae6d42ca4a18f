from __future__ import annotations

from ..extensions import db
from udhaar.time_utils import to_utc_z, utcnow


class Invoice(db.Model):
    """
    Finalized sale invoice (header).

    NUMBERING: full_invoice_number = "{invoice_prefix}-{invoice_sequence}".
    The (merchant_id, invoice_prefix, invoice_sequence) unique constraint is
    what turns the optimistic read-max-then-increment numbering into a safe
    one: a concurrent duplicate fails the insert and checkout retries.

    MONEY (all minor units):
    - total_amount_cents: sum of line totals, immutable once created
    - paid_amount_cents / due_amount_cents: portion of THIS invoice settled /
      still owed; due = total - paid, never negative
    - cash_received_cents: everything tendered in the transaction, which may
      exceed paid_amount_cents when the excess cleared older dues or became advance
    - advance_used_cents / advance_credited_cents: drawn from / added to the
      customer's advance balance by this transaction
    - previous_balance_cents: prior outstanding at checkout (receipt display)
    - change_due_cents: walk-in overpayment handed back as change

    MUTATION: after creation only the settlement service may touch
    paid/due/payment_status (when a newer invoice's payment clears this one).
    Customer name/phone are snapshots, not live joins.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint(
            "merchant_id", "invoice_prefix", "invoice_sequence",
            name="uq_invoices_merchant_prefix_seq",
        ),
        db.Index("ix_invoices_full_number", "merchant_id", "full_invoice_number"),
        # Settlement scan: a customer's open invoices, oldest first
        db.Index("ix_invoices_customer_due_created", "customer_id", "due_amount_cents", "created_at"),
        db.CheckConstraint("due_amount_cents >= 0", name="ck_invoices_due_non_negative"),
        db.CheckConstraint("paid_amount_cents >= 0", name="ck_invoices_paid_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=False, index=True)

    # NULL = walk-in / retail sale
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True)

    invoice_prefix = db.Column(db.String(16), nullable=False)
    invoice_sequence = db.Column(db.Integer, nullable=False)
    full_invoice_number = db.Column(db.String(64), nullable=False)

    sale_mode = db.Column(db.String(16), nullable=False, default="retail")  # retail, wholesale
    payment_method = db.Column(db.String(16), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, index=True)  # paid, partial

    total_amount_cents = db.Column(db.Integer, nullable=False)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    due_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    cash_received_cents = db.Column(db.Integer, nullable=False, default=0)
    advance_used_cents = db.Column(db.Integer, nullable=False, default=0)
    advance_credited_cents = db.Column(db.Integer, nullable=False, default=0)
    previous_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    change_due_cents = db.Column(db.Integer, nullable=False, default=0)

    # Assigned by the application (microsecond precision) so oldest-first
    # settlement order is stable for invoices created within the same second
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    created_by_session_id = db.Column(db.Integer, db.ForeignKey("session_tokens.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    items = db.relationship(
        "InvoiceItem",
        backref="invoice",
        lazy=True,
        order_by="InvoiceItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<Invoice id={self.id} number={self.full_invoice_number!r} "
            f"total={self.total_amount_cents} due={self.due_amount_cents}>"
        )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "invoice_prefix": self.invoice_prefix,
            "invoice_sequence": self.invoice_sequence,
            "full_invoice_number": self.full_invoice_number,
            "sale_mode": self.sale_mode,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "total_amount_cents": self.total_amount_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "due_amount_cents": self.due_amount_cents,
            "cash_received_cents": self.cash_received_cents,
            "advance_used_cents": self.advance_used_cents,
            "advance_credited_cents": self.advance_credited_cents,
            "previous_balance_cents": self.previous_balance_cents,
            "change_due_cents": self.change_due_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class InvoiceItem(db.Model):
    """
    Line item on an invoice. Immutable snapshot of the product at time of sale.

    product_name / unit / price_cents are copied, not joined, so historical
    invoices do not change when the product record is edited later.
    """
    __tablename__ = "invoice_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit": self.unit,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "total_cents": self.total_cents,
        }
