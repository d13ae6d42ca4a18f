# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/udhaar/routes/products.py
"""
Product management routes.

MULTI-TENANT: All product operations are scoped to g.merchant_id (set by
@require_auth). SKU conflicts surface as a 409 on save.
"""
from flask import Blueprint, request, g
from ..services import products_service
from ..services.products_service import ProductNotFoundError
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "category", "unit",
        "price_cents", "cost_price_cents", "stock",
    },
    required_on_create={"name", "category", "price_cents", "stock"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products.

    Query params:
    - search: matches name or SKU (case-insensitive)
    - category: exact category
    - page / per_page: optional pagination (default 20, max 100)
    """
    return products_service.list_products(
        g.merchant_id,
        search=request.args.get("search"),
        category=request.args.get("category"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.get("/lookup")
@require_auth
def lookup_product():
    """Barcode scan: exact SKU match."""
    try:
        product = products_service.find_by_sku(g.merchant_id, request.args.get("sku", ""))
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    return product.to_dict()


@products_bp.get("/low-stock")
@require_auth
def low_stock():
    threshold = request.args.get("threshold", default=products_service.LOW_STOCK_THRESHOLD, type=int)
    products = products_service.low_stock_products(g.merchant_id, threshold=threshold)
    return {"items": [p.to_dict() for p in products], "threshold": threshold}


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        return products_service.get_product(g.merchant_id, product_id).to_dict()
    except ProductNotFoundError:
        return {"error": "Product not found"}, 404


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = products_service.create_product(g.merchant_id, patch)
    except ConflictError as e:
        return {"error": str(e), "field": "sku"}, 409

    return created.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = products_service.update_product(g.merchant_id, product_id, patch)
    except ProductNotFoundError:
        return {"error": "Product not found"}, 404
    except ConflictError as e:
        return {"error": str(e), "field": "sku"}, 409

    return updated.to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(g.merchant_id, product_id)
    except ProductNotFoundError:
        return {"error": "Product not found"}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"ok": True}, 200
