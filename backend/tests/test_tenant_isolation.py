# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that one merchant's terminal cannot read or write
another merchant's products, customers, invoices or discrepancies.
Cross-tenant lookups answer 404 (never revealing that the row exists).
"""

import pytest

from udhaar.models import Customer, Product
from udhaar.services.session_service import create_session


@pytest.fixture
def other_headers(db_session, other_merchant):
    _, token = create_session(other_merchant.id, terminal="gupta-1")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def foreign_data(db_session, other_merchant):
    """A customer and a product that belong to the other merchant."""
    c = Customer(merchant_id=other_merchant.id, name="Other Buyer", phone="9822222222")
    p = Product(
        merchant_id=other_merchant.id, sku="RICE-5KG", name="Other Rice", category="Grocery",
        unit="bag", price_cents=48000, stock=10,
    )
    db_session.add_all([c, p])
    db_session.commit()
    return c, p


class TestProductsIsolation:
    def test_listing_shows_only_own_products(self, client, auth_headers, products, foreign_data):
        resp = client.get("/api/products", headers=auth_headers)
        names = {p["name"] for p in resp.get_json()["items"]}
        assert names == {"Rice 5kg", "Sugar 1kg"}

    def test_cannot_read_foreign_product(self, client, auth_headers, foreign_data):
        _, foreign_product = foreign_data
        resp = client.get(f"/api/products/{foreign_product.id}", headers=auth_headers)
        assert resp.status_code == 404

    def test_cannot_update_foreign_product(self, client, auth_headers, db_session, foreign_data):
        _, foreign_product = foreign_data
        resp = client.put(
            f"/api/products/{foreign_product.id}",
            json={"price_cents": 1},
            headers=auth_headers,
        )
        assert resp.status_code == 404
        assert db_session.get(Product, foreign_product.id).price_cents == 48000

    def test_same_sku_allowed_across_merchants(self, client, auth_headers, products, foreign_data):
        resp = client.get("/api/products/lookup?sku=RICE-5KG", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.get_json()["name"] == "Rice 5kg"


class TestCustomersIsolation:
    def test_cannot_read_foreign_customer(self, client, auth_headers, foreign_data):
        foreign_customer, _ = foreign_data
        for path in ("", "/outstanding", "/ledger"):
            resp = client.get(f"/api/customers/{foreign_customer.id}{path}", headers=auth_headers)
            assert resp.status_code == 404, path

    def test_cannot_collect_for_foreign_customer(self, client, auth_headers, foreign_data):
        foreign_customer, _ = foreign_data
        resp = client.post(
            f"/api/customers/{foreign_customer.id}/payments",
            json={"amount_cents": 1000},
            headers=auth_headers,
        )
        assert resp.status_code == 404


class TestCheckoutIsolation:
    def test_cannot_sell_foreign_product(self, client, auth_headers, foreign_data):
        _, foreign_product = foreign_data
        resp = client.post(
            "/api/checkout/allocate",
            json={"lines": [{"product_id": foreign_product.id, "quantity": 1}], "tendered_cents": 48000},
            headers=auth_headers,
        )
        assert resp.status_code == 400

    def test_cannot_bill_foreign_customer(self, client, auth_headers, products, foreign_data):
        foreign_customer, _ = foreign_data
        rice, _ = products
        resp = client.post(
            "/api/checkout/allocate",
            json={
                "customer_id": foreign_customer.id,
                "lines": [{"product_id": rice.id, "quantity": 1}],
                "tendered_cents": 0,
            },
            headers=auth_headers,
        )
        assert resp.status_code == 404

    def test_invoices_are_not_visible_across_merchants(
        self, client, auth_headers, other_headers, customer, make_invoice
    ):
        invoice = make_invoice(customer, 1000, 1000)

        resp = client.get(f"/api/invoices/{invoice.id}", headers=other_headers)
        assert resp.status_code == 404
        resp = client.get("/api/invoices", headers=other_headers)
        assert resp.get_json()["count"] == 0

        resp = client.get(f"/api/invoices/{invoice.id}", headers=auth_headers)
        assert resp.status_code == 200
