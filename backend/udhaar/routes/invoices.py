# Overview: Flask API routes for invoice operations; parses input and returns JSON responses.

from flask import Blueprint, request, g
from ..extensions import db
from ..models import Invoice, Merchant
from ..services.invoice_builder import build_receipt
from ..decorators import require_auth

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _get_invoice(invoice_id: int) -> Invoice | None:
    return db.session.query(Invoice).filter_by(id=invoice_id, merchant_id=g.merchant_id).first()


@invoices_bp.get("")
@require_auth
def list_invoices():
    """
    Recent invoices, newest first.

    Query params:
    - customer_id: only this customer's invoices
    - status: paid | partial
    - limit: default 50, clamped to 1..200
    """
    query = db.session.query(Invoice).filter_by(merchant_id=g.merchant_id)
    customer_id = request.args.get("customer_id", type=int)
    if customer_id is not None:
        query = query.filter_by(customer_id=customer_id)
    status = request.args.get("status")
    if status:
        query = query.filter_by(payment_status=status)

    limit = max(1, min(request.args.get("limit", default=50, type=int), 200))
    invoices = query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).limit(limit).all()
    return {"items": [inv.to_dict() for inv in invoices], "count": len(invoices)}


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    invoice = _get_invoice(invoice_id)
    if not invoice:
        return {"error": "Invoice not found"}, 404
    return invoice.to_dict(include_items=True)


@invoices_bp.get("/<int:invoice_id>/receipt")
@require_auth
def receipt_route(invoice_id: int):
    """Printable receipt summary for reprinting."""
    invoice = _get_invoice(invoice_id)
    if not invoice:
        return {"error": "Invoice not found"}, 404
    merchant = db.session.get(Merchant, g.merchant_id)
    return build_receipt(invoice, merchant=merchant).to_dict()
