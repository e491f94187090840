# order_service/utils/retry.py
import logging
import time
from typing import Callable

import redis
import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from order_service.utils.logging import get_logger

logger = get_logger(__name__)


def http_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(requests.RequestException),
    )


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )


def gateway_retrying(
    max_attempts: int,
    backoff_seconds: float,
    retry_on: tuple[type[BaseException], ...],
    sleep: Callable[[float], None] = time.sleep,
) -> Retrying:
    """
    Policy for the QR provider: base, 2*base, 4*base... between attempts,
    nothing after the last one. reraise so callers see the last error.
    """
    return Retrying(
        reraise=True,
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=backoff_seconds, exp_base=2),
        retry=retry_if_exception_type(retry_on),
        sleep=sleep,
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
