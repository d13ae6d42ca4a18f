# Overview: Cart value objects; a checkout's explicit, session-scoped sale state.

"""
Cart

WHY: The sale mode, the chosen customer and the cart lines are passed into
checkout explicitly as one value object instead of living in screen state.
Lines are priced from the product record at the moment the cart is built.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Customer, Product
from ..validation import ValidationError

SALE_MODE_RETAIL = "retail"
SALE_MODE_WHOLESALE = "wholesale"
SALE_MODES = (SALE_MODE_RETAIL, SALE_MODE_WHOLESALE)


@dataclass(frozen=True)
class CartLine:
    product_id: int
    product_name: str
    unit: str
    price_cents: int
    quantity: int

    @property
    def line_total(self) -> int:
        return self.quantity * self.price_cents

    @classmethod
    def from_product(cls, product: Product, quantity: int) -> "CartLine":
        return cls(
            product_id=product.id,
            product_name=product.name,
            unit=product.unit,
            price_cents=product.price_cents,
            quantity=quantity,
        )

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit": self.unit,
            "price_cents": self.price_cents,
            "quantity": self.quantity,
            "line_total_cents": self.line_total,
        }


@dataclass(frozen=True)
class Cart:
    mode: str
    customer_id: int | None
    lines: tuple[CartLine, ...] = ()

    @property
    def total(self) -> int:
        return sum(line.line_total for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def quantities(self) -> dict[int, int]:
        return {line.product_id: line.quantity for line in self.lines}

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "customer_id": self.customer_id,
            "lines": [line.to_dict() for line in self.lines],
            "total_cents": self.total,
        }


def _parse_quantity(raw) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValidationError("quantity must be a positive integer")
    if raw < 1:
        raise ValidationError("quantity must be a positive integer")
    return raw


def build_cart(
    merchant_id: int,
    raw_lines: list[dict] | None,
    customer_id: int | None = None,
    mode: str | None = None,
) -> Cart:
    """
    Validate requested lines against current products and price them.

    - Repeated product_ids are merged into one line
    - quantity must be >= 1 and <= current stock
    - wholesale needs a customer; retail sales are walk-in (no customer)

    Raises:
        ValidationError: bad mode/lines, unknown product, quantity over stock
    """
    mode = mode or (SALE_MODE_WHOLESALE if customer_id is not None else SALE_MODE_RETAIL)
    if mode not in SALE_MODES:
        raise ValidationError(f"Invalid sale mode: {mode}. Must be one of {list(SALE_MODES)}")
    if mode == SALE_MODE_WHOLESALE and customer_id is None:
        raise ValidationError("Please select a customer for wholesale")
    if mode == SALE_MODE_RETAIL and customer_id is not None:
        raise ValidationError("Retail sales are walk-in; use wholesale mode for a customer")

    if customer_id is not None:
        exists = db.session.query(Customer.id).filter_by(id=customer_id, merchant_id=merchant_id).first()
        if not exists:
            raise ValidationError(f"Customer {customer_id} not found")

    if raw_lines is None:
        raw_lines = []
    if not isinstance(raw_lines, list):
        raise ValidationError("lines must be a list")

    requested: dict[int, int] = {}
    for raw in raw_lines:
        if not isinstance(raw, dict):
            raise ValidationError("each line must be an object")
        product_id = raw.get("product_id")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError("product_id must be an integer")
        requested[product_id] = requested.get(product_id, 0) + _parse_quantity(raw.get("quantity"))

    lines = []
    for product_id, quantity in requested.items():
        product = (
            db.session.query(Product)
            .filter_by(id=product_id, merchant_id=merchant_id)
            .first()
        )
        if not product:
            raise ValidationError(f"Product {product_id} not found")
        if quantity > product.stock:
            raise ValidationError(
                f"Stock limit reached for {product.name}. Only {product.stock} available."
            )
        lines.append(CartLine.from_product(product, quantity))

    return Cart(mode=mode, customer_id=customer_id, lines=tuple(lines))
