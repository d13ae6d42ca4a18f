# Overview: Pytest coverage for the checkout HTTP flow (allocate, confirm, reprint).

import pytest
from sqlalchemy.exc import InternalError

from udhaar.models import Invoice, Product
from udhaar.services import settlement_service


def _allocate(client, headers, lines, tendered, customer_id=None, use_advance=False):
    resp = client.post(
        "/api/checkout/allocate",
        json={
            "customer_id": customer_id,
            "lines": lines,
            "tendered_cents": tendered,
            "use_advance": use_advance,
        },
        headers=headers,
    )
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()


def _confirm(client, headers, lines, allocation, customer_id=None, payment_method="Cash"):
    return client.post(
        "/api/checkout",
        json={
            "customer_id": customer_id,
            "lines": lines,
            "payment_method": payment_method,
            "allocation": allocation,
        },
        headers=headers,
    )


class TestAllocate:
    def test_preview_writes_nothing(self, client, auth_headers, db_session, customer, products, make_invoice):
        rice, _ = products
        make_invoice(customer, 20000, 20000)
        lines = [{"product_id": rice.id, "quantity": 1}]

        data = _allocate(client, auth_headers, lines, 80000, customer_id=customer.id)

        assert data["cart"]["mode"] == "wholesale"
        assert data["cart"]["total_cents"] == 50000
        assert data["outstanding"] == {"prior_due_cents": 20000, "advance_balance_cents": 0}
        assert data["allocation"]["paid_toward_old_dues_cents"] == 20000
        assert data["allocation"]["new_advance_credit_cents"] == 10000
        assert db_session.query(Invoice).count() == 1
        assert db_session.get(Product, rice.id).stock == 100

    def test_wholesale_without_customer(self, client, auth_headers, products):
        rice, _ = products
        resp = client.post(
            "/api/checkout/allocate",
            json={"mode": "wholesale", "lines": [{"product_id": rice.id, "quantity": 1}], "tendered_cents": 0},
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert "select a customer" in resp.get_json()["error"]

    def test_float_tender_is_rejected(self, client, auth_headers, products):
        rice, _ = products
        resp = client.post(
            "/api/checkout/allocate",
            json={"lines": [{"product_id": rice.id, "quantity": 1}], "tendered_cents": 500.5},
            headers=auth_headers,
        )
        assert resp.status_code == 400


class TestConfirm:
    def test_walk_in_sale(self, client, auth_headers, db_session, products):
        rice, sugar = products
        lines = [{"product_id": rice.id, "quantity": 1}, {"product_id": sugar.id, "quantity": 2}]
        preview = _allocate(client, auth_headers, lines, 60000)

        resp = _confirm(client, auth_headers, lines, preview["allocation"])

        assert resp.status_code == 201
        data = resp.get_json()
        assert data["complete"] is True
        assert data["invoice"]["full_invoice_number"] == "SHOP-1"
        assert data["invoice"]["change_due_cents"] == 1000
        assert len(data["invoice"]["items"]) == 2
        assert data["receipt"]["display"]["change_due"] == "₹10.00"
        assert db_session.get(Product, sugar.id).stock == 3

    def test_missing_allocation(self, client, auth_headers, products):
        rice, _ = products
        resp = _confirm(client, auth_headers, [{"product_id": rice.id, "quantity": 1}], None)
        assert resp.status_code == 400

    def test_sale_is_attributed_to_the_session(self, client, auth_headers, db_session, products):
        rice, _ = products
        lines = [{"product_id": rice.id, "quantity": 1}]
        preview = _allocate(client, auth_headers, lines, 50000)
        data = _confirm(client, auth_headers, lines, preview["allocation"]).get_json()

        invoice = db_session.get(Invoice, data["invoice"]["id"])
        assert invoice.created_by_session_id is not None

    def test_incomplete_ledger_update_returns_207(
        self, client, auth_headers, db_session, customer, products, make_invoice, monkeypatch
    ):
        rice, _ = products
        make_invoice(customer, 20000, 20000)
        lines = [{"product_id": rice.id, "quantity": 1}]
        preview = _allocate(client, auth_headers, lines, 80000, customer_id=customer.id)

        def broken(invoice_id, available, source_invoice_id):
            raise InternalError("UPDATE invoices", {}, Exception("database is locked"))

        monkeypatch.setattr(settlement_service, "_settle_one", broken)

        resp = _confirm(client, auth_headers, lines, preview["allocation"], customer_id=customer.id)

        assert resp.status_code == 207
        data = resp.get_json()
        assert data["complete"] is False
        assert data["discrepancy_id"] is not None

        resp = client.get("/api/reports/discrepancies", headers=auth_headers)
        assert resp.get_json()["count"] == 1


class TestReceiptReprint:
    def test_reprint_derives_outstanding_from_the_invoice(
        self, client, auth_headers, customer, products, make_invoice
    ):
        _, sugar = products
        make_invoice(customer, 20000, 20000)
        lines = [{"product_id": sugar.id, "quantity": 2}]
        preview = _allocate(client, auth_headers, lines, 5000, customer_id=customer.id)
        invoice_id = _confirm(
            client, auth_headers, lines, preview["allocation"], customer_id=customer.id
        ).get_json()["invoice"]["id"]

        resp = client.get(f"/api/invoices/{invoice_id}/receipt", headers=auth_headers)

        assert resp.status_code == 200
        receipt = resp.get_json()
        assert receipt["subtotal_cents"] == 9000
        assert receipt["previous_outstanding_cents"] == 20000
        assert receipt["paid_cents"] == 5000
        assert receipt["total_outstanding_cents"] == 24000
        assert receipt["customer"]["name"] == "Google Traders"

    def test_invoice_list_filters_by_status(self, client, auth_headers, customer, make_invoice):
        make_invoice(customer, 1000, 0)
        make_invoice(customer, 1000, 500)
        resp = client.get("/api/invoices?status=partial", headers=auth_headers)
        assert resp.get_json()["count"] == 1

    @pytest.mark.parametrize("limit,expected", [("-1", 1), ("0", 1), ("2", 2), ("500", 3)])
    def test_invoice_list_limit_is_clamped(self, client, auth_headers, customer, make_invoice, limit, expected):
        for _ in range(3):
            make_invoice(customer, 1000, 0)
        resp = client.get(f"/api/invoices?limit={limit}", headers=auth_headers)
        assert resp.get_json()["count"] == expected
