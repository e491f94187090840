"""Shared fixtures: in-memory collaborators and a file-backed SQLite database."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest
import redis
from fastapi.testclient import TestClient

from order_service.data.database import create_schema, make_engine, make_session_factory
from order_service.domain.errors import UpstreamUnavailable
from order_service.main import create_app
from order_service.repos.cart_repo import CartRepo
from order_service.resources import Resources
from order_service.services.admin_order_service import AdminOrderService
from order_service.services.cart_service import CartService
from order_service.services.checkout_service import CheckoutService
from order_service.services.enrichment import book_enricher, customer_enricher
from order_service.services.event_publisher import EventPublisher
from order_service.services.expiry_sweeper import ExpirySweeper
from order_service.services.lock_service import LockService
from order_service.services.mock_payment_processor import MockPaymentProcessor
from order_service.services.order_service import OrderService
from order_service.services.order_stats_service import OrderStatsService
from order_service.services.payment_gateway import PaymentGateway, QRCode, QRProvider
from order_service.services.payment_session_service import PaymentSessionService
from order_service.utils.settings import Settings


def pytest_collection_modifyitems(config, items):
    """Mark tests after the directory they live in."""
    for item in items:
        path = str(Path(item.fspath))
        if "/domain/" in path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in path:
            item.add_marker(pytest.mark.integration)


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------
class FakeRedis:
    """The handful of redis commands the service uses."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.down = False

    def _check(self):
        if self.down:
            raise redis.ConnectionError("redis is down")

    def get(self, key):
        self._check()
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self._check()
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def set(self, name, value, nx=False, ex=None):
        self._check()
        if nx and name in self.store:
            return None
        self.store[name] = value
        if ex is not None:
            self.ttls[name] = ex
        return True

    def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def ttl(self, key):
        return self.ttls.get(key, -2) if key in self.store else -2

    def eval(self, script, numkeys, *args):
        # only the compare-and-delete release script is ever evaluated
        self._check()
        key, token = args[0], args[1]
        if self.store.get(key) == token:
            return self.delete(key)
        return 0

    def ping(self):
        self._check()
        return True

    def close(self):
        pass


class FakeCatalog:
    def __init__(self, books: dict[int, dict]):
        self.books = books
        self.down = False
        self.calls: list[int] = []

    def get_book(self, book_id):
        self.calls.append(book_id)
        if self.down:
            raise UpstreamUnavailable("Book service unavailable", code="CATALOG_UNAVAILABLE")
        book = self.books.get(book_id)
        return dict(book) if book else None

    def close(self):
        pass


class FakeIdentity:
    def __init__(self, users: dict[int, dict]):
        self.users = users
        self.down = False

    def get_user(self, user_id):
        if self.down:
            raise UpstreamUnavailable("User service unavailable", code="IDENTITY_UNAVAILABLE")
        user = self.users.get(user_id)
        return dict(user) if user else None

    def close(self):
        pass


class ScriptedQRProvider(QRProvider):
    """
    Plays back `outcomes` one per call (an exception instance is raised,
    anything else is returned). With no script every call succeeds.
    """

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.payloads: list[dict] = []

    def generate(self, payload):
        self.payloads.append(payload)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        n = len(self.payloads)
        return QRCode(qr_code=f"000201-{payload['addInfo']}-{n}", qr_data_url=f"data:image/png;base64,QR{n}")

    def fail_always(self, error: BaseException):
        self.outcomes = [error] * 100


class RecordingPublisher(EventPublisher):
    def __init__(self):
        super().__init__(None, "orders.exchange", "order-service")
        self.sent: list[tuple[str, dict]] = []
        self.fail = False

    def _send(self, routing_key, message):
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.sent.append((routing_key, message))

    def topics(self) -> list[str]:
        return [topic for topic, _ in self.sent]


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


BOOKS = {
    1: {"id": 1, "title": "Dune", "author": "Frank Herbert", "price": Decimal("100000"), "stock_quantity": 10, "cover_image_url": None},
    2: {"id": 2, "title": "Emma", "author": "Jane Austen", "price": Decimal("50000"), "stock_quantity": 5, "cover_image_url": None},
    3: {"id": 3, "title": "Sold Out", "author": "Nobody", "price": Decimal("20000"), "stock_quantity": 0, "cover_image_url": None},
}

USERS = {
    7: {"full_name": "Nguyen Van A", "email": "a@example.com", "phone": "0900000000"},
}

USER_ID = 7
OTHER_USER_ID = 8
ADMIN_ID = 1


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+pysqlite:///{tmp_path / 'orders.db'}",
        bank_account_no="0123456789",
        bank_account_name="BOOKSTORE CO",
        bank_acq_id="970422",
        mock_payment_success_rate=1.0,
        expiry_sweeper_mode="off",
    )


@pytest.fixture
def engine(settings):
    engine = make_engine(settings.database_url, connect_args={"check_same_thread": False})
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def redis_client():
    return FakeRedis()


@pytest.fixture
def catalog():
    return FakeCatalog({k: dict(v) for k, v in BOOKS.items()})


@pytest.fixture
def identity():
    return FakeIdentity({k: dict(v) for k, v in USERS.items()})


@pytest.fixture
def qr_provider():
    return ScriptedQRProvider()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def gateway(qr_provider, settings, sleeps):
    return PaymentGateway(qr_provider, settings, sleep=sleeps.append)


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def lock_service(redis_client):
    return LockService(redis_client, ttl_seconds=60)


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def processor():
    return MockPaymentProcessor(success_rate=1.0)


@pytest.fixture
def cart_service(redis_client, catalog, settings):
    return CartService(CartRepo(redis_client, settings.cart_ttl_seconds), book_enricher(catalog))


@pytest.fixture
def payment_sessions(db, gateway, lock_service, settings, clock):
    return PaymentSessionService(db, gateway, lock_service, settings, clock=clock)


@pytest.fixture
def checkout_service(db, cart_service, payment_sessions, processor, publisher, settings):
    return CheckoutService(db, cart_service, payment_sessions, processor, publisher, settings)


@pytest.fixture
def admin_service(db, catalog, identity, cart_service, publisher, settings, clock):
    return AdminOrderService(
        db,
        book_enricher(catalog),
        customer_enricher(identity),
        cart_service,
        publisher,
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def stats_service(db, catalog, clock):
    return OrderStatsService(db, book_enricher(catalog), clock=clock)


@pytest.fixture
def order_service(db, catalog, publisher, clock):
    return OrderService(db, book_enricher(catalog), publisher, clock=clock)


@pytest.fixture
def sweeper(session_factory, lock_service, publisher, clock):
    return ExpirySweeper(session_factory, lock_service, publisher, interval_seconds=0.01, clock=clock)


@pytest.fixture
def resources(settings, engine, session_factory, redis_client, catalog, identity, gateway, processor, publisher, lock_service):
    return Resources(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        redis=redis_client,
        catalog=catalog,
        identity=identity,
        gateway=gateway,
        processor=processor,
        publisher=publisher,
        lock_service=lock_service,
    )


@pytest.fixture
def client(resources):
    return TestClient(create_app(resources=resources))


@pytest.fixture
def user_headers():
    return {"x-user-id": str(USER_ID), "x-user-email": "a@example.com", "x-user-role": "user"}


@pytest.fixture
def other_user_headers():
    return {"x-user-id": str(OTHER_USER_ID), "x-user-email": "b@example.com"}


@pytest.fixture
def admin_headers():
    return {"x-user-id": str(ADMIN_ID), "x-user-email": "admin@example.com", "x-user-role": "admin"}
