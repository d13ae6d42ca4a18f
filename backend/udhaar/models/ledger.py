from __future__ import annotations

from ..extensions import db
from udhaar.time_utils import to_utc_z, utcnow


class LedgerEvent(db.Model):
    """
    Append-only audit trail for money movements.

    Written in the same DB transaction as the change it records:
    invoice.created, stock.decremented, invoice.settled,
    customer.advance_updated. Never updated or deleted.
    """
    __tablename__ = "ledger_events"
    __table_args__ = (
        db.Index("ix_ledger_events_merchant_occurred", "merchant_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=False, index=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)
    amount_cents = db.Column(db.Integer, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "event_type": self.event_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "customer_id": self.customer_id,
            "invoice_id": self.invoice_id,
            "amount_cents": self.amount_cents,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "note": self.note,
            "payload": self.payload,
        }


class LedgerDiscrepancy(db.Model):
    """
    Operator-visible record of money the ledger could not place.

    KINDS:
    - SETTLEMENT_SHORTFALL: old-dues settlement stopped partway; amount is
      the cash that was neither applied to old invoices nor credited as advance
    - ADVANCE_OVERDRAWN: concurrent checkouts spent the same advance; amount
      is how far below zero the balance would have gone before clamping
    - ADVANCE_UPDATE_FAILED: the final advance update did not commit; amount
      is the net change (credited - used) still to apply
    """
    __tablename__ = "ledger_discrepancies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)

    kind = db.Column(db.String(32), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    detail = db.Column(db.String(512), nullable=True)

    is_resolved = db.Column(db.Boolean, nullable=False, default=False, index=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolution_note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "customer_id": self.customer_id,
            "invoice_id": self.invoice_id,
            "kind": self.kind,
            "amount_cents": self.amount_cents,
            "detail": self.detail,
            "is_resolved": self.is_resolved,
            "resolved_at": to_utc_z(self.resolved_at) if self.resolved_at else None,
            "resolution_note": self.resolution_note,
            "created_at": to_utc_z(self.created_at),
        }
