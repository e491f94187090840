"""Background expiry of unpaid bank-transfer orders."""

import time

from order_service.data.models.order import OrderModel
from order_service.data.models.payment_session import PaymentSessionModel
from order_service.domain.enums import PaymentMethod
from order_service.repos.order_repo import OrderRepo


def _place(checkout_service, cart_service, book_id=1):
    cart_service.add_item(7, book_id, 1)
    return checkout_service.checkout(7, "a@example.com", PaymentMethod.BANK_TRANSFER, "addr")["order_id"]


def _state(session_factory, order_id):
    with session_factory() as s:
        order = s.get(OrderModel, order_id)
        sessions = s.query(PaymentSessionModel).filter_by(order_id=order_id).all()
        return order.status, order.payment_status, [x.status for x in sessions]


class TestRunOnce:
    def test_nothing_expired_is_a_noop(self, sweeper, checkout_service, cart_service, session_factory, publisher):
        order_id = _place(checkout_service, cart_service)
        publisher.sent.clear()

        assert sweeper.run_once() == 0
        assert sweeper.run_once() == 0
        assert _state(session_factory, order_id) == ("pending", "awaiting_confirmation", ["active"])
        assert publisher.sent == []

    def test_cancels_expired_orders(self, sweeper, checkout_service, cart_service, session_factory, publisher, clock):
        order_id = _place(checkout_service, cart_service)
        publisher.sent.clear()
        clock.advance(minutes=16)

        assert sweeper.run_once() == 1

        assert _state(session_factory, order_id) == ("cancelled", "failed", ["expired"])
        topic, message = publisher.sent[0]
        assert topic == "order.updated"
        assert message["old_status"] == "pending"
        assert message["new_status"] == "cancelled"
        assert message["service"] == "order-service"
        assert "timestamp" in message

    def test_second_run_is_idempotent(self, sweeper, checkout_service, cart_service, clock, publisher):
        _place(checkout_service, cart_service)
        clock.advance(minutes=16)

        assert sweeper.run_once() == 1
        published = len(publisher.sent)
        assert sweeper.run_once() == 0
        assert len(publisher.sent) == published

    def test_writes_history_with_system_actor(self, sweeper, checkout_service, cart_service, clock, session_factory):
        order_id = _place(checkout_service, cart_service)
        clock.advance(minutes=16)
        sweeper.run_once()

        with session_factory() as s:
            history = OrderRepo(s).get_status_history(order_id)
        assert (history[-1].from_status, history[-1].to_status, history[-1].changed_by) == (
            "pending",
            "cancelled",
            None,
        )

    def test_one_failing_order_does_not_stop_the_batch(
        self, sweeper, checkout_service, cart_service, clock, session_factory, monkeypatch
    ):
        first = _place(checkout_service, cart_service, book_id=1)
        second = _place(checkout_service, cart_service, book_id=2)
        clock.advance(minutes=16)

        original = OrderRepo.transition

        def flaky(self, order, *args, **kwargs):
            if order.id == first:
                raise RuntimeError("row is broken")
            return original(self, order, *args, **kwargs)

        monkeypatch.setattr(OrderRepo, "transition", flaky)

        assert sweeper.run_once() == 1
        assert _state(session_factory, first) == ("pending", "awaiting_confirmation", ["active"])
        assert _state(session_factory, second) == ("cancelled", "failed", ["expired"])

    def test_locked_order_is_left_for_next_sweep(self, sweeper, checkout_service, cart_service, clock, lock_service, session_factory):
        order_id = _place(checkout_service, cart_service)
        clock.advance(minutes=16)
        lock_service.acquire_order_lock(order_id, "regenerating")

        assert sweeper.run_once() == 0
        assert _state(session_factory, order_id)[0] == "pending"

        lock_service.release_order_lock(order_id, "regenerating")
        assert sweeper.run_once() == 1

    def test_publish_failure_does_not_undo_cancellation(self, sweeper, checkout_service, cart_service, clock, publisher, session_factory):
        order_id = _place(checkout_service, cart_service)
        clock.advance(minutes=16)
        publisher.fail = True

        assert sweeper.run_once() == 1
        assert _state(session_factory, order_id)[0] == "cancelled"

    def test_regenerated_session_is_not_swept(self, sweeper, checkout_service, cart_service, payment_sessions, clock):
        order_id = _place(checkout_service, cart_service)
        clock.advance(minutes=16)
        payment_sessions.get_or_create_qr(order_id, 7)

        assert sweeper.run_once() == 0


class TestScheduling:
    def test_start_runs_immediately_and_stop_joins(self, sweeper, checkout_service, cart_service, clock, session_factory):
        order_id = _place(checkout_service, cart_service)
        clock.advance(minutes=16)

        sweeper.start()
        try:
            deadline = time.monotonic() + 5
            while _state(session_factory, order_id)[0] != "cancelled" and time.monotonic() < deadline:
                time.sleep(0.02)
        finally:
            sweeper.stop(timeout=5)

        assert not sweeper.running
        assert _state(session_factory, order_id)[0] == "cancelled"

    def test_start_twice_keeps_one_thread(self, sweeper):
        sweeper.start()
        try:
            thread = sweeper._thread
            sweeper.start()
            assert sweeper._thread is thread
        finally:
            sweeper.stop(timeout=5)
