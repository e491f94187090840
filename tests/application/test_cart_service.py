"""Redis-backed cart."""

from decimal import Decimal

import pytest

from order_service.domain.errors import NotFound, UpstreamUnavailable, ValidationFailed


class TestAddItem:
    def test_adds_and_computes_totals(self, cart_service, redis_client):
        cart = cart_service.add_item(7, 1, 2)

        assert cart["total_items"] == 2
        assert cart["total_amount"] == Decimal("200000.00")
        assert cart["items"][0]["title"] == "Dune"
        assert redis_client.ttls["cart:7"] == 86400

    def test_merges_quantity_of_same_book(self, cart_service):
        cart_service.add_item(7, 1, 2)
        cart = cart_service.add_item(7, 1, 3)

        assert len(cart["items"]) == 1
        assert cart["items"][0]["quantity"] == 5

    def test_unknown_book(self, cart_service):
        with pytest.raises(NotFound) as exc_info:
            cart_service.add_item(7, 999, 1)
        assert exc_info.value.code == "BOOK_NOT_FOUND"

    def test_insufficient_stock_counts_what_is_already_in_cart(self, cart_service):
        cart_service.add_item(7, 2, 4)
        with pytest.raises(ValidationFailed) as exc_info:
            cart_service.add_item(7, 2, 2)
        assert exc_info.value.code == "INSUFFICIENT_STOCK"
        assert exc_info.value.message == "Insufficient stock. Available: 5"

    def test_zero_quantity(self, cart_service):
        with pytest.raises(ValidationFailed) as exc_info:
            cart_service.add_item(7, 1, 0)
        assert exc_info.value.code == "INVALID_QUANTITY"

    def test_catalog_outage_is_an_upstream_error(self, cart_service, catalog):
        catalog.down = True
        with pytest.raises(UpstreamUnavailable):
            cart_service.add_item(7, 1, 1)


class TestUpdateAndRemove:
    def test_update_sets_quantity(self, cart_service):
        cart_service.add_item(7, 1, 1)
        cart = cart_service.update_item(7, 1, 4)
        assert cart["items"][0]["quantity"] == 4
        assert cart["total_amount"] == Decimal("400000.00")

    def test_update_to_zero_removes(self, cart_service):
        cart_service.add_item(7, 1, 1)
        cart = cart_service.update_item(7, 1, 0)
        assert cart["items"] == []
        assert cart["total_items"] == 0

    def test_update_missing_item(self, cart_service):
        with pytest.raises(NotFound) as exc_info:
            cart_service.update_item(7, 1, 2)
        assert exc_info.value.code == "CART_ITEM_NOT_FOUND"

    def test_remove_and_clear(self, cart_service, redis_client):
        cart_service.add_item(7, 1, 1)
        cart_service.add_item(7, 2, 1)

        cart = cart_service.remove_item(7, 1)
        assert [i["book_id"] for i in cart["items"]] == [2]

        cart_service.clear(7)
        assert "cart:7" not in redis_client.store


class TestGetCart:
    def test_empty_cart_for_new_user(self, cart_service):
        cart = cart_service.get_cart(42)
        assert cart["items"] == []
        assert cart["total_amount"] == Decimal("0.00")

    def test_refreshes_prices_from_catalog(self, cart_service, catalog):
        cart_service.add_item(7, 1, 1)
        catalog.books[1]["price"] = Decimal("120000")

        cart = cart_service.get_cart(7)

        assert cart["items"][0]["unit_price"] == Decimal("120000.00")
        assert cart["total_amount"] == Decimal("120000.00")

    def test_drops_missing_and_out_of_stock_books(self, cart_service, catalog):
        cart_service.add_item(7, 1, 1)
        cart_service.add_item(7, 2, 1)
        del catalog.books[1]
        catalog.books[2]["stock_quantity"] = 0

        cart = cart_service.get_cart(7)

        assert cart["items"] == []
        assert cart["total_items"] == 0

    def test_keeps_items_when_catalog_is_down(self, cart_service, catalog):
        cart_service.add_item(7, 1, 1)
        catalog.down = True

        cart = cart_service.get_cart(7)

        assert [i["book_id"] for i in cart["items"]] == [1]

    def test_drops_book_whose_price_disappeared(self, cart_service, catalog):
        cart_service.add_item(7, 1, 1)
        cart_service.add_item(7, 2, 1)
        catalog.books[1]["price"] = None

        cart = cart_service.get_cart(7)

        assert [i["book_id"] for i in cart["items"]] == [2]
        assert cart["total_amount"] == Decimal("50000.00")

    def test_unpriced_book_cannot_be_added(self, cart_service, catalog):
        catalog.books[1]["price"] = "n/a"
        with pytest.raises(NotFound) as exc_info:
            cart_service.add_item(7, 1, 1)
        assert exc_info.value.code == "BOOK_NOT_FOUND"


class TestValidateForCheckout:
    def test_clean_cart(self, cart_service):
        cart_service.add_item(7, 1, 1)
        assert cart_service.validate_for_checkout(7) == {"valid": True, "issues": []}

    def test_reports_price_drift_over_ten_percent(self, cart_service, catalog):
        cart_service.add_item(7, 1, 1)
        catalog.books[1]["price"] = Decimal("111000")

        report = cart_service.validate_for_checkout(7)

        assert not report["valid"]
        assert report["issues"][0]["issue"] == "price_changed"
        assert report["issues"][0]["current_price"] == "111000.00"

    def test_small_drift_is_fine(self, cart_service, catalog):
        cart_service.add_item(7, 1, 1)
        catalog.books[1]["price"] = Decimal("109000")
        assert cart_service.validate_for_checkout(7)["valid"]

    def test_reports_stock_and_missing_books(self, cart_service, catalog):
        cart_service.add_item(7, 1, 3)
        cart_service.add_item(7, 2, 1)
        catalog.books[1]["stock_quantity"] = 2
        del catalog.books[2]

        issues = {i["book_id"]: i for i in cart_service.validate_for_checkout(7)["issues"]}

        assert issues[1]["issue"] == "insufficient_stock"
        assert issues[1]["available"] == 2
        assert issues[2]["issue"] == "unavailable"
