# Overview: Flask API routes for reports operations; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..decorators import require_auth
from ..services import ledger_service, reporting_service
from ..services.ledger_service import DiscrepancyNotFoundError, LedgerError
from ..services.reporting_service import ReportError

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/outstanding")
@require_auth
def outstanding_report_route():
    """Customers owing more than 1.00, highest due first, with the market total."""
    return reporting_service.outstanding_report(
        g.merchant_id,
        min_due_cents=request.args.get("min_due_cents", type=int),
    )


@reports_bp.get("/sales")
@require_auth
def sales_report_route():
    try:
        return reporting_service.sales_report(
            g.merchant_id,
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
    except ReportError as e:
        return {"error": str(e)}, 400


@reports_bp.get("/inventory")
@require_auth
def inventory_report_route():
    return reporting_service.inventory_summary(g.merchant_id)


@reports_bp.get("/ledger-audit")
@require_auth
def ledger_audit_route():
    """Customers whose advance balance disagrees with their invoices' advance movements."""
    mismatches = ledger_service.audit_customer_ledgers(g.merchant_id)
    return {"ok": not mismatches, "mismatches": mismatches}


@reports_bp.get("/discrepancies")
@require_auth
def discrepancies_route():
    include_resolved = request.args.get("include_resolved", "false").lower() == "true"
    rows = ledger_service.list_discrepancies(g.merchant_id, include_resolved=include_resolved)
    return {"items": [d.to_dict() for d in rows], "count": len(rows)}


@reports_bp.post("/discrepancies/<int:discrepancy_id>/resolve")
@require_auth
def resolve_discrepancy_route(discrepancy_id: int):
    payload = request.get_json(silent=True) or {}
    note = (payload.get("note") or "").strip()
    if not note:
        return {"error": "note is required"}, 400
    try:
        discrepancy = ledger_service.resolve_discrepancy(g.merchant_id, discrepancy_id, note)
    except DiscrepancyNotFoundError as e:
        return {"error": str(e)}, 404
    except LedgerError as e:
        return {"error": str(e)}, 409
    return discrepancy.to_dict()
