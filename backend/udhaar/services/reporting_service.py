# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func

from udhaar.extensions import db
from udhaar.models import Customer, Invoice, InvoiceItem, Product
from udhaar.services.products_service import LOW_STOCK_THRESHOLD
from udhaar.time_utils import parse_iso_datetime, to_utc_z


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end, end_of_day=True) if end else None
    except ValueError as exc:
        raise ReportError(f"Invalid date: {exc}") from exc
    if start_dt and end_dt and start_dt > end_dt:
        raise ReportError("start must be before end")
    return start_dt, end_dt


def outstanding_report(merchant_id: int, min_due_cents: int | None = None) -> dict:
    """
    Customers who owe more than the threshold (default 1.00), highest due first.

    Customers with nothing due (or only advance credit) are left off; the
    market total is the sum over the listed rows.
    """
    if min_due_cents is None:
        min_due_cents = current_app.config.get("OUTSTANDING_REPORT_MIN_DUE_CENTS", 100)

    total_due = func.coalesce(func.sum(Invoice.due_amount_cents), 0)
    rows = (
        db.session.query(
            Customer.id.label("customer_id"),
            Customer.name.label("name"),
            Customer.phone.label("phone"),
            Customer.advance_balance_cents.label("advance_balance_cents"),
            total_due.label("total_due_cents"),
            func.max(Invoice.created_at).label("last_invoice_at"),
        )
        .join(Invoice, Invoice.customer_id == Customer.id)
        .filter(Customer.merchant_id == merchant_id)
        .group_by(Customer.id, Customer.name, Customer.phone, Customer.advance_balance_cents)
        .having(total_due > min_due_cents)
        .order_by(total_due.desc(), Customer.name.asc())
        .all()
    )

    customers = [
        {
            "customer_id": row.customer_id,
            "name": row.name,
            "phone": row.phone,
            "total_due_cents": int(row.total_due_cents),
            "advance_balance_cents": row.advance_balance_cents,
            "last_invoice_at": to_utc_z(row.last_invoice_at),
        }
        for row in rows
    ]
    return {
        "min_due_cents": min_due_cents,
        "total_outstanding_cents": sum(c["total_due_cents"] for c in customers),
        "customers": customers,
    }


def sales_report(
    merchant_id: int,
    start: str | None = None,
    end: str | None = None,
    top: int = 5,
) -> dict:
    """Sales totals, average bill and best-selling products over a date range."""
    start_dt, end_dt = _parse_range(start, end)

    def _in_range(query):
        if start_dt:
            query = query.filter(Invoice.created_at >= start_dt)
        if end_dt:
            query = query.filter(Invoice.created_at <= end_dt)
        return query

    totals = _in_range(
        db.session.query(
            func.count(Invoice.id).label("orders"),
            func.coalesce(func.sum(Invoice.total_amount_cents), 0).label("sales"),
        ).filter(Invoice.merchant_id == merchant_id, Invoice.total_amount_cents > 0)
    ).one()

    # Money kept in the drawer: dues-collection receipts count, change handed back does not
    received = _in_range(
        db.session.query(
            func.coalesce(
                func.sum(Invoice.cash_received_cents - Invoice.change_due_cents), 0
            )
        ).filter(Invoice.merchant_id == merchant_id)
    ).scalar()

    top_rows = _in_range(
        db.session.query(
            InvoiceItem.product_name.label("product_name"),
            func.sum(InvoiceItem.quantity).label("quantity"),
            func.sum(InvoiceItem.total_cents).label("revenue"),
        )
        .join(Invoice, Invoice.id == InvoiceItem.invoice_id)
        .filter(Invoice.merchant_id == merchant_id)
    ).group_by(InvoiceItem.product_name).order_by(
        func.sum(InvoiceItem.quantity).desc(), InvoiceItem.product_name.asc()
    ).limit(top).all()

    orders = int(totals.orders or 0)
    sales = int(totals.sales or 0)
    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "total_orders": orders,
        "total_sales_cents": sales,
        "total_received_cents": int(received or 0),
        "average_bill_cents": sales // orders if orders else 0,
        "top_products": [
            {
                "product_name": row.product_name,
                "quantity": int(row.quantity or 0),
                "revenue_cents": int(row.revenue or 0),
            }
            for row in top_rows
        ],
    }


def inventory_summary(merchant_id: int, threshold: int = LOW_STOCK_THRESHOLD) -> dict:
    """Stock on hand valued at selling price, plus the low-stock list."""
    products = (
        db.session.query(Product)
        .filter(Product.merchant_id == merchant_id)
        .order_by(Product.name.asc())
        .all()
    )
    low_stock = [p for p in products if p.stock <= threshold]
    return {
        "product_count": len(products),
        "total_stock": sum(p.stock for p in products),
        "total_value_cents": sum(p.stock * p.price_cents for p in products),
        "low_stock_threshold": threshold,
        "low_stock": [p.to_dict() for p in low_stock],
    }
