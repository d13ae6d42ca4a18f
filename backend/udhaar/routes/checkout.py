# Overview: Flask API routes for checkout operations; parses input and returns JSON responses.

# backend/udhaar/routes/checkout.py
"""
Checkout routes.

Flow:
1. POST /api/checkout/allocate: price the cart and preview how the tender
   splits across the bill, old dues and advance. Nothing is written.
2. POST /api/checkout: the operator confirms; the allocation preview is
   sent back verbatim and the sale is finalized.

Status codes for POST /api/checkout:
- 201: invoice written and ledger fully updated
- 207: invoice written but the ledger update is incomplete (see discrepancy_id)
- 400/404/409: nothing written
"""
from flask import Blueprint, request, g, current_app
from ..services import checkout_service
from ..services.checkout_service import CheckoutError
from ..services.customers_service import CustomerNotFoundError
from ..validation import ValidationError
from ..decorators import require_auth

checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


def _optional_int(payload: dict, key: str) -> int | None:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    return value


@checkout_bp.post("/allocate")
@require_auth
def allocate_route():
    """
    Body: {"customer_id": int|null, "mode": "retail"|"wholesale",
           "lines": [{"product_id", "quantity"}], "tendered_cents": int,
           "use_advance": bool}
    """
    payload = request.get_json(silent=True) or {}
    try:
        cart, outstanding, allocation = checkout_service.preview_allocation(
            g.merchant_id,
            _optional_int(payload, "customer_id"),
            payload.get("lines"),
            payload.get("tendered_cents"),
            use_advance=payload.get("use_advance", False),
            mode=payload.get("mode"),
        )
    except CustomerNotFoundError:
        return {"error": "Customer not found"}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {
        "cart": cart.to_dict(),
        "outstanding": outstanding.to_dict(),
        "allocation": allocation.to_dict(),
    }


@checkout_bp.post("")
@require_auth
def checkout_route():
    """
    Body: {"customer_id": int|null, "mode": ..., "lines": [...],
           "payment_method": "Cash"|"UPI"|"Card"|"Advance"|"Credit",
           "allocation": <allocation from /allocate>}
    """
    payload = request.get_json(silent=True) or {}
    try:
        result = checkout_service.checkout(
            g.merchant_id,
            _optional_int(payload, "customer_id"),
            payload.get("lines"),
            payload.get("payment_method"),
            payload.get("allocation"),
            mode=payload.get("mode"),
            session_id=g.session_context.session.id,
        )
    except CustomerNotFoundError:
        return {"error": "Customer not found"}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except CheckoutError as e:
        return {"error": str(e), "details": e.details}, 409
    except Exception:
        current_app.logger.exception("Checkout failed")
        return {"error": "Internal server error"}, 500

    return result.to_dict(), 201 if result.complete else 207
