# Overview: Flask API routes for customers operations; parses input and returns JSON responses.

# backend/udhaar/routes/customers.py
"""
Customer routes: profile CRUD, the udhaar account (outstanding, ledger
statement) and dues collection.

MULTI-TENANT: every lookup is scoped to g.merchant_id.
"""
from flask import Blueprint, request, g, current_app
from ..services import customers_service
from ..services.checkout_service import CheckoutError, collect_payment
from ..services.customers_service import CustomerNotFoundError
from ..services.settlement_service import get_outstanding
from ..models import Customer
from ..money import require_amount
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_customer,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "business_name", "address", "gstin", "invoice_prefix"},
    required_on_create={"name", "phone"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers():
    customers = customers_service.list_customers(g.merchant_id, search=request.args.get("search"))
    return {"items": [c.to_dict() for c in customers], "count": len(customers)}


@customers_bp.post("")
@require_auth
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return customers_service.create_customer(g.merchant_id, patch).to_dict(), 201


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        return customers_service.get_customer(g.merchant_id, customer_id).to_dict()
    except CustomerNotFoundError:
        return {"error": "Customer not found"}, 404


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        return customers_service.update_customer(g.merchant_id, customer_id, patch).to_dict()
    except CustomerNotFoundError:
        return {"error": "Customer not found"}, 404


@customers_bp.delete("/<int:customer_id>")
@require_auth
def delete_customer_route(customer_id: int):
    try:
        customers_service.delete_customer(g.merchant_id, customer_id)
    except CustomerNotFoundError:
        return {"error": "Customer not found"}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return {"ok": True}, 200


@customers_bp.get("/<int:customer_id>/outstanding")
@require_auth
def outstanding_route(customer_id: int):
    """Allocation inputs for checkout: {prior_due_cents, advance_balance_cents}."""
    try:
        customer = customers_service.get_customer(g.merchant_id, customer_id)
    except CustomerNotFoundError:
        return {"error": "Customer not found"}, 404
    return get_outstanding(customer.id).to_dict()


@customers_bp.get("/<int:customer_id>/ledger")
@require_auth
def ledger_route(customer_id: int):
    try:
        return customers_service.get_customer_ledger(g.merchant_id, customer_id)
    except CustomerNotFoundError:
        return {"error": "Customer not found"}, 404


@customers_bp.post("/<int:customer_id>/payments")
@require_auth
def collect_payment_route(customer_id: int):
    """
    Dues collection: record a payment-only receipt.

    Body: {"amount_cents": int, "payment_method": "Cash", "use_advance": false}
    Returns 201, or 207 if the receipt was written but the ledger update is incomplete.
    """
    payload = request.get_json(silent=True) or {}
    try:
        amount = require_amount("amount_cents", payload.get("amount_cents"))
        result = collect_payment(
            g.merchant_id,
            customer_id,
            amount,
            payment_method=payload.get("payment_method", "Cash"),
            session_id=g.session_context.session.id,
            use_advance=payload.get("use_advance", False),
        )
    except CustomerNotFoundError:
        return {"error": "Customer not found"}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except CheckoutError as e:
        return {"error": str(e), "details": e.details}, 409
    except Exception:
        current_app.logger.exception("Failed to collect payment")
        return {"error": "Internal server error"}, 500

    return result.to_dict(), 201 if result.complete else 207
