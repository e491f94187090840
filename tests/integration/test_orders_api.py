"""Checkout and order endpoints through the FastAPI app."""

import requests


def _fill_cart(client, headers, book_id=1, quantity=2):
    resp = client.post("/cart/items", json={"book_id": book_id, "quantity": quantity}, headers=headers)
    assert resp.status_code == 200


def _checkout(client, headers, method="bank_transfer"):
    return client.post(
        "/orders/checkout",
        json={"payment_method": method, "shipping_address": "12 Le Loi, District 1"},
        headers=headers,
    )


class TestAuth:
    def test_missing_identity_headers(self, client):
        resp = client.get("/orders/my-orders")
        assert resp.status_code == 401
        assert resp.json()["detail"]["code"] == "UNAUTHORIZED"

    def test_non_numeric_user_id(self, client):
        resp = client.get("/orders/my-orders", headers={"x-user-id": "abc"})
        assert resp.status_code == 401


class TestCheckout:
    def test_bank_transfer(self, client, user_headers):
        _fill_cart(client, user_headers)

        resp = _checkout(client, user_headers)

        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "pending"
        assert body["payment_status"] == "awaiting_confirmation"
        assert body["total_amount"] == "220001.99"
        assert body["payment"]["transfer_content"] == f"DH{body['order_id']:06d}"
        assert body["payment"]["bank_info"]["bank_name"] == "MB Bank"

    def test_empty_cart(self, client, user_headers):
        resp = _checkout(client, user_headers)
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == "EMPTY_CART"

    def test_gateway_down_is_retryable_and_keeps_order(self, client, user_headers, qr_provider):
        _fill_cart(client, user_headers)
        qr_provider.fail_always(requests.ConnectionError("down"))

        resp = _checkout(client, user_headers)

        assert resp.status_code == 503
        detail = resp.json()["detail"]
        assert detail["code"] == "PAYMENT_SERVICE_ERROR"
        order = client.get(f"/orders/{detail['details']['order_id']}", headers=user_headers).json()
        assert (order["status"], order["payment_status"]) == ("pending", "pending")
        assert order["payment_session"] is None

    def test_card_payment(self, client, user_headers):
        _fill_cart(client, user_headers)
        resp = _checkout(client, user_headers, method="credit_card")
        assert resp.status_code == 201
        assert resp.json()["status"] == "confirmed"
        assert resp.json()["payment"] is None

    def test_unknown_payment_method(self, client, user_headers):
        _fill_cart(client, user_headers)
        resp = _checkout(client, user_headers, method="cash")
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == "VALIDATION_ERROR"


class TestQR:
    def test_same_session_on_repeat(self, client, user_headers):
        _fill_cart(client, user_headers)
        order_id = _checkout(client, user_headers).json()["order_id"]

        first = client.get(f"/orders/{order_id}/qr", headers=user_headers).json()
        second = client.get(f"/orders/{order_id}/qr", headers=user_headers).json()

        assert first["qr_data_url"] == second["qr_data_url"]
        assert first["session_id"] == second["session_id"]
        assert second["is_regenerated"] is False

    def test_other_user_is_denied(self, client, user_headers, other_user_headers):
        _fill_cart(client, user_headers)
        order_id = _checkout(client, user_headers).json()["order_id"]

        resp = client.get(f"/orders/{order_id}/qr", headers=other_user_headers)
        assert resp.status_code == 403
        assert resp.json()["detail"]["code"] == "ACCESS_DENIED"

    def test_unknown_order(self, client, user_headers):
        resp = client.get("/orders/999/qr", headers=user_headers)
        assert resp.status_code == 404
        assert resp.json()["detail"]["code"] == "ORDER_NOT_FOUND"


class TestCancel:
    def test_cancel_then_qr_is_refused(self, client, user_headers, publisher):
        _fill_cart(client, user_headers)
        order_id = _checkout(client, user_headers).json()["order_id"]

        resp = client.request("DELETE", f"/orders/{order_id}/cancel", json={"reason": "oops"}, headers=user_headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"
        assert publisher.topics()[-1] == "order.updated"

        resp = client.get(f"/orders/{order_id}/qr", headers=user_headers)
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == "ORDER_CANCELLED"

    def test_cancel_twice(self, client, user_headers):
        _fill_cart(client, user_headers)
        order_id = _checkout(client, user_headers).json()["order_id"]
        client.delete(f"/orders/{order_id}/cancel", headers=user_headers)

        resp = client.delete(f"/orders/{order_id}/cancel", headers=user_headers)
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == "CANCEL_NOT_ALLOWED"


class TestMyOrders:
    def test_lists_own_orders(self, client, user_headers, other_user_headers):
        _fill_cart(client, user_headers)
        _checkout(client, user_headers)

        mine = client.get("/orders/my-orders", headers=user_headers).json()
        theirs = client.get("/orders/my-orders", headers=other_user_headers).json()

        assert mine["total"] == 1
        assert mine["orders"][0]["items"][0]["title"] == "Dune"
        assert theirs["total"] == 0
