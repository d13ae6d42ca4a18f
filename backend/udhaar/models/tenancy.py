from __future__ import annotations

from ..extensions import db
from udhaar.time_utils import to_utc_z

class Merchant(db.Model):
    """
    Tenant root: every shop using the system is a Merchant.

    WHY: Invoice numbering, customers, products and the udhaar ledger are all
    scoped per merchant. Nothing crosses merchant boundaries.

    The business_* fields are the seller profile printed on receipts.
    """
    __tablename__ = "merchants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)  # Short code for lookups

    business_name = db.Column(db.String(255), nullable=True)
    business_address = db.Column(db.String(512), nullable=True)
    business_phone = db.Column(db.String(32), nullable=True)
    gstin = db.Column(db.String(32), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Merchant id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "business_name": self.business_name,
            "business_address": self.business_address,
            "business_phone": self.business_phone,
            "gstin": self.gstin,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
