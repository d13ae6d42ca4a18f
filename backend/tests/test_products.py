# Overview: Pytest coverage for product management, barcode lookup and low-stock listing.

from udhaar.models import Invoice, InvoiceItem, Product


def _new_product(**overrides):
    payload = {
        "name": "Toor Dal 1kg",
        "category": "Grocery",
        "unit": "kg",
        "sku": "DAL-1KG",
        "price_cents": 14000,
        "cost_price_cents": 12000,
        "stock": 40,
    }
    payload.update(overrides)
    return payload


class TestCreateProduct:
    def test_create(self, client, auth_headers, merchant):
        resp = client.post("/api/products", json=_new_product(), headers=auth_headers)
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["merchant_id"] == merchant.id
        assert data["price_cents"] == 14000
        assert data["stock"] == 40

    def test_duplicate_sku_is_a_field_conflict(self, client, auth_headers, products):
        resp = client.post("/api/products", json=_new_product(sku="RICE-5KG"), headers=auth_headers)
        assert resp.status_code == 409
        assert resp.get_json()["field"] == "sku"

    def test_missing_sku_never_conflicts(self, client, auth_headers, db_session):
        for name in ("Loose Salt", "Loose Jaggery"):
            resp = client.post(
                "/api/products", json=_new_product(name=name, sku=None), headers=auth_headers
            )
            assert resp.status_code == 201
        assert db_session.query(Product).filter(Product.sku.is_(None)).count() == 2

    def test_missing_required_fields(self, client, auth_headers, db_session):
        resp = client.post("/api/products", json={"name": "Dal"}, headers=auth_headers)
        assert resp.status_code == 400
        assert "Missing required fields" in resp.get_json()["error"]

    def test_decimal_price_is_rejected(self, client, auth_headers, db_session):
        resp = client.post("/api/products", json=_new_product(price_cents=140.5), headers=auth_headers)
        assert resp.status_code == 400

    def test_negative_stock_is_rejected(self, client, auth_headers, db_session):
        resp = client.post("/api/products", json=_new_product(stock=-1), headers=auth_headers)
        assert resp.status_code == 400

    def test_unknown_field_is_rejected(self, client, auth_headers, db_session):
        resp = client.post("/api/products", json=_new_product(merchant_id=99), headers=auth_headers)
        assert resp.status_code == 400
        assert "not allowed" in resp.get_json()["error"]


class TestUpdateProduct:
    def test_update_price_and_stock(self, client, auth_headers, products):
        rice, _ = products
        resp = client.put(
            f"/api/products/{rice.id}",
            json={"price_cents": 52000, "stock": 80},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["price_cents"] == 52000
        assert resp.get_json()["stock"] == 80

    def test_sku_taken_by_another_product(self, client, auth_headers, products):
        rice, sugar = products
        resp = client.put(f"/api/products/{sugar.id}", json={"sku": rice.sku}, headers=auth_headers)
        assert resp.status_code == 409

    def test_keeping_own_sku_is_fine(self, client, auth_headers, products):
        rice, _ = products
        resp = client.put(f"/api/products/{rice.id}", json={"sku": "RICE-5KG"}, headers=auth_headers)
        assert resp.status_code == 200


class TestLookupAndLowStock:
    def test_lookup_by_scanned_sku(self, client, auth_headers, products):
        resp = client.get("/api/products/lookup?sku=%20SUGAR-1KG%20", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.get_json()["name"] == "Sugar 1kg"

    def test_lookup_unknown_sku(self, client, auth_headers, products):
        resp = client.get("/api/products/lookup?sku=NOPE", headers=auth_headers)
        assert resp.status_code == 404

    def test_low_stock(self, client, auth_headers, products):
        resp = client.get("/api/products/low-stock", headers=auth_headers)
        names = [p["name"] for p in resp.get_json()["items"]]
        assert names == ["Sugar 1kg"]

    def test_search_and_pagination(self, client, auth_headers, products):
        resp = client.get("/api/products?search=rice", headers=auth_headers)
        assert [p["sku"] for p in resp.get_json()["items"]] == ["RICE-5KG"]

        resp = client.get("/api/products?page=1&per_page=1", headers=auth_headers)
        data = resp.get_json()
        assert data["count"] == 1
        assert data["pagination"]["total"] == 2
        assert data["pagination"]["has_next"] is True


class TestDeleteProduct:
    def test_unsold_product_is_deleted(self, client, auth_headers, db_session, products):
        _, sugar = products
        sugar_id = sugar.id

        resp = client.delete(f"/api/products/{sugar_id}", headers=auth_headers)

        assert resp.status_code == 200
        assert db_session.get(Product, sugar_id) is None

    def test_sold_product_cannot_be_deleted(self, client, auth_headers, db_session, customer, products, make_invoice):
        rice, _ = products
        rice_id = rice.id
        invoice = make_invoice(customer, 50000, 0)
        db_session.add(InvoiceItem(
            invoice_id=invoice.id, product_id=rice_id, product_name=rice.name,
            unit=rice.unit, quantity=1, price_cents=rice.price_cents, total_cents=rice.price_cents,
        ))
        db_session.commit()
        invoice_id = invoice.id

        resp = client.delete(f"/api/products/{rice_id}", headers=auth_headers)

        assert resp.status_code == 409
        assert db_session.get(Product, rice_id) is not None
        item = db_session.get(Invoice, invoice_id).items[0]
        assert item.product_id == rice_id
        assert item.product_name == "Rice 5kg"
