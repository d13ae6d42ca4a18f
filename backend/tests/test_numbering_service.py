# Overview: Pytest coverage for invoice numbering and duplicate-number retry.

import pytest

from udhaar.models import Customer, Invoice, Product
from udhaar.services import numbering_service
from udhaar.services.checkout_service import (
    InvoiceCreationFailed,
    checkout,
    preview_allocation,
)
from udhaar.services.numbering_service import (
    format_invoice_number,
    reserve_next,
    resolve_prefix,
)


def _walk_in_sale(merchant, product, quantity=1):
    lines = [{"product_id": product.id, "quantity": quantity}]
    _, _, allocation = preview_allocation(
        merchant.id, None, lines, tendered=product.price_cents * quantity
    )
    return checkout(merchant.id, None, lines, "Cash", allocation)


class TestResolvePrefix:
    def test_stored_prefix_wins(self, db_session, merchant):
        c = Customer(merchant_id=merchant.id, name="Google Traders", phone="1", invoice_prefix="gt")
        assert resolve_prefix(c) == "GT"

    def test_first_three_letters_of_name(self, db_session, merchant):
        c = Customer(merchant_id=merchant.id, name="Google Traders", phone="1")
        assert resolve_prefix(c) == "GOO"

    def test_short_and_punctuated_names(self, db_session, merchant):
        assert resolve_prefix(Customer(merchant_id=merchant.id, name="Al", phone="1")) == "AL"
        assert resolve_prefix(Customer(merchant_id=merchant.id, name="A.B. Stores", phone="1")) == "ABS"

    def test_walk_in_uses_default_tag(self, db_session):
        assert resolve_prefix(None) == "SHOP"

    def test_default_tag_is_configurable(self, app, db_session):
        app.config["DEFAULT_INVOICE_PREFIX"] = "RTL"
        try:
            assert resolve_prefix(None) == "RTL"
        finally:
            app.config["DEFAULT_INVOICE_PREFIX"] = "SHOP"


class TestReserveNext:
    def test_starts_at_one(self, db_session, merchant):
        assert reserve_next(merchant.id, "GOO") == 1

    def test_follows_highest_sequence_per_prefix(self, db_session, merchant, customer, make_invoice):
        make_invoice(customer, 1000, 0, prefix="GOO")
        make_invoice(customer, 1000, 0, prefix="GOO")
        assert reserve_next(merchant.id, "GOO") == 3
        assert reserve_next(merchant.id, "SHOP") == 1

    def test_scoped_per_merchant(self, db_session, merchant, other_merchant, customer, make_invoice):
        make_invoice(customer, 1000, 0, prefix="GOO")
        assert reserve_next(other_merchant.id, "GOO") == 1

    def test_format(self):
        assert format_invoice_number("GOO", 12) == "GOO-12"


class TestDuplicateNumberRetry:
    def test_stale_sequence_is_retried_with_a_fresh_number(self, db_session, merchant, products, monkeypatch):
        rice, _ = products
        first = _walk_in_sale(merchant, rice)
        assert first.invoice.full_invoice_number == "SHOP-1"

        real_reserve = numbering_service.reserve_next
        calls = []

        def stale_then_real(merchant_id, prefix):
            calls.append(prefix)
            # Simulates a concurrent terminal: the first read is stale
            return 1 if len(calls) == 1 else real_reserve(merchant_id, prefix)

        monkeypatch.setattr(numbering_service, "reserve_next", stale_then_real)

        second = _walk_in_sale(merchant, rice)
        assert len(calls) == 2
        assert second.invoice.full_invoice_number == "SHOP-2"
        assert db_session.query(Invoice).count() == 2
        assert db_session.get(Product, rice.id).stock == 98

    def test_gives_up_after_max_attempts(self, db_session, merchant, products, monkeypatch):
        rice, _ = products
        _walk_in_sale(merchant, rice)

        calls = []

        def always_stale(merchant_id, prefix):
            calls.append(prefix)
            return 1

        monkeypatch.setattr(numbering_service, "reserve_next", always_stale)

        with pytest.raises(InvoiceCreationFailed):
            _walk_in_sale(merchant, rice)

        assert len(calls) == 3
        assert db_session.query(Invoice).count() == 1
        # the failed sale decremented nothing
        assert db_session.get(Product, rice.id).stock == 99
