# Overview: Pytest coverage for reports, the ledger audit and discrepancy handling.

import pytest

from udhaar.models import Customer
from udhaar.services.checkout_service import checkout, collect_payment, preview_allocation
from udhaar.services.ledger_service import record_discrepancy


@pytest.fixture
def more_customers(db_session, merchant):
    zed = Customer(merchant_id=merchant.id, name="Zed Wholesale", phone="9844444444")
    tiny = Customer(merchant_id=merchant.id, name="Tiny Tab", phone="9855555555")
    db_session.add_all([zed, tiny])
    db_session.commit()
    return zed, tiny


class TestOutstandingReport:
    def test_highest_due_first_and_small_dues_left_off(
        self, client, auth_headers, customer, more_customers, make_invoice
    ):
        zed, tiny = more_customers
        make_invoice(customer, 10000, 10000)
        make_invoice(customer, 5000, 5000)
        make_invoice(zed, 20000, 20000)
        make_invoice(tiny, 5000, 50)

        resp = client.get("/api/reports/outstanding", headers=auth_headers)
        data = resp.get_json()

        assert [c["name"] for c in data["customers"]] == ["Zed Wholesale", "Google Traders"]
        assert [c["total_due_cents"] for c in data["customers"]] == [20000, 15000]
        assert data["total_outstanding_cents"] == 35000

    def test_threshold_override(self, client, auth_headers, customer, make_invoice):
        make_invoice(customer, 5000, 50)
        resp = client.get("/api/reports/outstanding?min_due_cents=0", headers=auth_headers)
        assert resp.get_json()["total_outstanding_cents"] == 50


class TestSalesAndInventory:
    def test_sales_report(self, client, auth_headers, merchant, products):
        rice, sugar = products
        for product, quantity in ((rice, 2), (sugar, 1)):
            lines = [{"product_id": product.id, "quantity": quantity}]
            _, _, allocation = preview_allocation(merchant.id, None, lines, product.price_cents * quantity)
            checkout(merchant.id, None, lines, "Cash", allocation)

        resp = client.get("/api/reports/sales", headers=auth_headers)
        data = resp.get_json()

        assert data["total_orders"] == 2
        assert data["total_sales_cents"] == 104500
        assert data["average_bill_cents"] == 52250
        assert data["top_products"][0] == {
            "product_name": "Rice 5kg", "quantity": 2, "revenue_cents": 100000,
        }

    @pytest.mark.parametrize("query", [
        "start=2024-02-01T00:00:00Z&end=2024-01-01T00:00:00Z",
        "start=yesterday",
    ])
    def test_sales_report_bad_range(self, client, auth_headers, query):
        resp = client.get(f"/api/reports/sales?{query}", headers=auth_headers)
        assert resp.status_code == 400

    def test_inventory_summary(self, client, auth_headers, products):
        data = client.get("/api/reports/inventory", headers=auth_headers).get_json()
        assert data["product_count"] == 2
        assert data["total_stock"] == 105
        assert data["total_value_cents"] == 100 * 50000 + 5 * 4500
        assert [p["name"] for p in data["low_stock"]] == ["Sugar 1kg"]


class TestLedgerAuditAndDiscrepancies:
    def test_audit_is_clean_after_normal_checkouts(self, client, auth_headers, customer, make_invoice):
        make_invoice(customer, 1000, 1000)
        resp = client.get("/api/reports/ledger-audit", headers=auth_headers)
        assert resp.get_json() == {"ok": True, "mismatches": []}

    def test_resolve_discrepancy(self, client, auth_headers, merchant, customer):
        discrepancy = record_discrepancy(
            merchant_id=merchant.id,
            kind="SETTLEMENT_SHORTFALL",
            amount_cents=3000,
            customer_id=customer.id,
            detail="test",
        )
        discrepancy_id = discrepancy.id

        resp = client.post(
            f"/api/reports/discrepancies/{discrepancy_id}/resolve", json={}, headers=auth_headers
        )
        assert resp.status_code == 400

        resp = client.post(
            f"/api/reports/discrepancies/{discrepancy_id}/resolve",
            json={"note": "Applied 30.00 to GOO-1 by hand"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["is_resolved"] is True

        resp = client.post(
            f"/api/reports/discrepancies/{discrepancy_id}/resolve",
            json={"note": "again"},
            headers=auth_headers,
        )
        assert resp.status_code == 409

        assert client.get("/api/reports/discrepancies", headers=auth_headers).get_json()["count"] == 0
        resp = client.get("/api/reports/discrepancies?include_resolved=true", headers=auth_headers)
        assert resp.get_json()["count"] == 1

    def test_unknown_discrepancy(self, client, auth_headers):
        resp = client.post(
            "/api/reports/discrepancies/9999/resolve", json={"note": "x"}, headers=auth_headers
        )
        assert resp.status_code == 404


def test_date_only_end_bound_covers_the_whole_day(client, auth_headers, merchant, products):
    rice, _ = products
    lines = [{"product_id": rice.id, "quantity": 1}]
    _, _, allocation = preview_allocation(merchant.id, None, lines, rice.price_cents)
    invoice = checkout(merchant.id, None, lines, "Cash", allocation).invoice
    day = invoice.created_at.date().isoformat()

    data = client.get(f"/api/reports/sales?start={day}&end={day}", headers=auth_headers).get_json()

    assert data["total_orders"] == 1
    assert data["end"] == f"{day}T23:59:59Z"


class TestReceivedTotal:
    def test_change_handed_back_is_not_received(self, client, auth_headers, merchant, products):
        rice, _ = products
        lines = [{"product_id": rice.id, "quantity": 1}]
        _, _, allocation = preview_allocation(merchant.id, None, lines, 100000)
        result = checkout(merchant.id, None, lines, "Cash", allocation)
        assert result.invoice.change_due_cents == 50000

        data = client.get("/api/reports/sales", headers=auth_headers).get_json()

        assert data["total_sales_cents"] == 50000
        assert data["total_received_cents"] == 50000

    def test_dues_collection_is_received_but_not_a_sale(
        self, client, auth_headers, merchant, customer, make_invoice
    ):
        make_invoice(customer, 20000, 20000)
        collect_payment(merchant.id, customer.id, 20000)

        data = client.get("/api/reports/sales", headers=auth_headers).get_json()

        assert data["total_orders"] == 1
        assert data["total_sales_cents"] == 20000
        assert data["total_received_cents"] == 20000
