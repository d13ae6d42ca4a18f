# backend/udhaar/services/products_service.py
"""
Products Service

MULTI-TENANT: All product operations are scoped to the merchant.
SKU is optional but unique per merchant; a duplicate is a ConflictError
(surfaced as a field-level 409 on product save, never a checkout concern).
"""
from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InvoiceItem, Product
from ..validation import ConflictError

PRODUCT_MUTABLE_FIELDS = {
    "sku", "name", "description", "category", "unit",
    "price_cents", "cost_price_cents", "stock",
}

LOW_STOCK_THRESHOLD = 10


class ProductNotFoundError(Exception):
    """Raised when a product does not exist for the merchant."""
    pass


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_sku_available(merchant_id: int, sku: str | None, exclude_id: int | None = None) -> None:
    if not sku:
        return
    query = db.session.query(Product).filter_by(merchant_id=merchant_id, sku=sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"SKU {sku!r} already exists")


def _commit_or_conflict(sku: str | None) -> None:
    # The unique constraint is the real guard; the pre-check only gives a nicer message
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"SKU {sku!r} already exists")


def get_product(merchant_id: int, product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, merchant_id=merchant_id).first()
    if not product:
        raise ProductNotFoundError(f"Product {product_id} not found")
    return product


def list_products(
    merchant_id: int,
    search: str | None = None,
    category: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Merchant-scoped product listing with optional search and pagination.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product).filter(Product.merchant_id == merchant_id)
    if search:
        term = f"%{search.strip()}%"
        base_query = base_query.filter(or_(Product.name.ilike(term), Product.sku.ilike(term)))
    if category:
        base_query = base_query.filter(Product.category == category)
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)  # Default 20, max 100
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def find_by_sku(merchant_id: int, sku: str) -> Product:
    """Exact barcode / SKU lookup; scanner input is trimmed and upper-cased like stored SKUs."""
    sku = (sku or "").strip().upper()
    product = db.session.query(Product).filter_by(merchant_id=merchant_id, sku=sku).first() if sku else None
    if not product:
        raise ProductNotFoundError(f"No product with SKU {sku!r}")
    return product


def low_stock_products(merchant_id: int, threshold: int = LOW_STOCK_THRESHOLD) -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.merchant_id == merchant_id, Product.stock <= threshold)
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )


def create_product(merchant_id: int, patch: dict) -> Product:
    """
    Create product from a validated patch dict.

    Raises:
        ConflictError: If SKU already exists for the merchant
    """
    _ensure_sku_available(merchant_id, patch.get("sku"))

    product = Product(merchant_id=merchant_id)
    apply_product_patch(product, patch)
    db.session.add(product)
    _commit_or_conflict(patch.get("sku"))
    return product


def update_product(merchant_id: int, product_id: int, patch: dict) -> Product:
    product = get_product(merchant_id, product_id)
    if "sku" in patch:
        _ensure_sku_available(merchant_id, patch["sku"], exclude_id=product.id)

    apply_product_patch(product, patch)
    _commit_or_conflict(patch.get("sku"))
    return product


def delete_product(merchant_id: int, product_id: int) -> None:
    """
    Delete a product that has never been sold.

    Raises:
        ConflictError: invoice items reference the product (sold lines are never rewritten)
    """
    product = get_product(merchant_id, product_id)

    sold_lines = db.session.query(InvoiceItem).filter_by(product_id=product.id).count()
    if sold_lines:
        raise ConflictError(
            f"Product appears on {sold_lines} invoice line(s) and cannot be deleted; set its stock to 0 instead"
        )

    db.session.delete(product)
    db.session.commit()
