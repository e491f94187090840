# order_service/tasks/expire.py
from celery.signals import worker_process_init, worker_process_shutdown

from order_service.celery_worker import celery_app
from order_service.resources import Resources, build_resources
from order_service.utils.logging import configure_logging, get_logger
from order_service.utils.settings import get_settings

logger = get_logger(__name__)

_worker_resources: Resources | None = None


@worker_process_init.connect
def open_worker_resources(**kwargs):
    global _worker_resources
    settings = get_settings()
    configure_logging(settings.log_level)
    _worker_resources = build_resources(settings)


@worker_process_shutdown.connect
def close_worker_resources(**kwargs):
    global _worker_resources
    if _worker_resources is not None:
        _worker_resources.close()
        _worker_resources = None


def worker_resources() -> Resources:
    global _worker_resources
    #solo/threads pools never fire worker_process_init
    if _worker_resources is None:
        _worker_resources = build_resources(get_settings())
    return _worker_resources


@celery_app.task(name="order_service.tasks.expire.expire_payment_sessions_task")
def expire_payment_sessions_task():
    logger.info("Expire payment sessions task started")
    cancelled = worker_resources().expiry_sweeper().run_once()
    return {"cancelled": cancelled}
