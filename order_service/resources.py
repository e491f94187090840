# order_service/resources.py
from dataclasses import dataclass

import redis
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from order_service.celery_worker import celery_app
from order_service.data.database import make_engine, make_session_factory
from order_service.services.catalog_client import CatalogClient
from order_service.services.event_publisher import EventPublisher
from order_service.services.expiry_sweeper import ExpirySweeper
from order_service.services.identity_client import IdentityClient
from order_service.services.lock_service import LockService
from order_service.services.mock_payment_processor import MockPaymentProcessor
from order_service.services.payment_gateway import PaymentGateway, VietQRProvider
from order_service.utils.logging import get_logger
from order_service.utils.settings import Settings

logger = get_logger(__name__)


@dataclass
class Resources:
    """Process-wide handles, created at start-up and closed at shutdown."""

    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    redis: redis.Redis
    catalog: CatalogClient
    identity: IdentityClient
    gateway: PaymentGateway
    processor: MockPaymentProcessor
    publisher: EventPublisher
    lock_service: LockService

    def new_session(self) -> Session:
        return self.session_factory()

    def expiry_sweeper(self) -> ExpirySweeper:
        return ExpirySweeper(
            session_factory=self.session_factory,
            lock_service=self.lock_service,
            publisher=self.publisher,
            interval_seconds=self.settings.expiry_sweep_interval_seconds,
        )

    def close(self) -> None:
        self.catalog.close()
        self.identity.close()
        self.gateway.provider.close()
        self.redis.close()
        self.engine.dispose()
        logger.info("Resources closed")


def build_resources(settings: Settings) -> Resources:
    engine = make_engine(settings.database_url)
    client = redis.Redis.from_url(settings.redis_url, decode_responses=True)

    provider = VietQRProvider(
        api_url=settings.vietqr_api_url,
        client_id=settings.vietqr_client_id,
        api_key=settings.vietqr_api_key,
        timeout=settings.gateway_timeout_seconds,
    )
    return Resources(
        settings=settings,
        engine=engine,
        session_factory=make_session_factory(engine),
        redis=client,
        catalog=CatalogClient(settings.book_service_url, timeout=settings.collaborator_timeout_seconds),
        identity=IdentityClient(settings.user_service_url, timeout=settings.collaborator_timeout_seconds),
        gateway=PaymentGateway(provider, settings),
        processor=MockPaymentProcessor(success_rate=settings.mock_payment_success_rate),
        publisher=EventPublisher(celery_app, settings.event_exchange, settings.service_name),
        lock_service=LockService(client, ttl_seconds=settings.effective_order_lock_ttl()),
    )
