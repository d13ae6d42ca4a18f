from __future__ import annotations

from ..extensions import db
from udhaar.time_utils import to_utc_z


class Customer(db.Model):
    """
    Wholesale customer with a running udhaar (credit) account.

    MULTI-TENANT: Customers are scoped to merchants via merchant_id.

    LEDGER: advance_balance_cents is the customer's prepaid credit. It is
    mutated only by the settlement service (and version-checked), never by
    profile edits. Outstanding debt is not stored here; it is the sum of
    due_amount_cents across the customer's invoices.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_merchant_name", "merchant_id", "name"),
        db.Index("ix_customers_merchant_phone", "merchant_id", "phone"),
        db.CheckConstraint("advance_balance_cents >= 0", name="ck_customers_advance_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    business_name = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(512), nullable=True)
    gstin = db.Column(db.String(32), nullable=True)

    # Overrides the name-derived invoice prefix (e.g. "GOO" for "Google")
    invoice_prefix = db.Column(db.String(16), nullable=True)

    advance_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    merchant = db.relationship("Merchant", backref=db.backref("customers", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r} phone={self.phone!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "name": self.name,
            "phone": self.phone,
            "business_name": self.business_name,
            "address": self.address,
            "gstin": self.gstin,
            "invoice_prefix": self.invoice_prefix,
            "advance_balance_cents": self.advance_balance_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
