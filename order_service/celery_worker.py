# order_service/celery_worker.py
from celery import Celery

from order_service.utils.settings import get_settings

settings = get_settings()

celery_app = Celery(
    "order_service",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

#tasks have to be imported explicitly so the worker registers them
celery_app.conf.imports = ("order_service.tasks.expire",)

celery_app.conf.beat_schedule = {
    "expire-payment-sessions": {
        "task": "order_service.tasks.expire.expire_payment_sessions_task",
        "schedule": settings.expiry_sweep_interval_seconds,
    },
}

celery_app.conf.timezone = "UTC"
