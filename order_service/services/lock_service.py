# order_service/services/lock_service.py
import uuid
from contextlib import contextmanager
from typing import Iterator

import redis

from order_service.utils.logging import get_logger
from order_service.utils.retry import redis_retry

logger = get_logger(__name__)

#compare-and-delete in one atomic step, only the holder can release
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    Per-order lock shared by QR (re)generation and the expiry sweeper.
    SET NX EX, so a crashed holder frees the lock after ttl.
    """

    def __init__(self, client: redis.Redis, ttl_seconds: int = 60):
        self.redis = client
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def key(order_id: int) -> str:
        return f"order-lock:{order_id}"

    @redis_retry()
    def acquire_order_lock(self, order_id: int, token: str, ttl: int | None = None) -> bool:
        key = self.key(order_id)
        logger.debug(f"Acquire lock {key}")
        return bool(self.redis.set(name=key, value=token, nx=True, ex=ttl or self.ttl_seconds))

    @redis_retry()
    def release_order_lock(self, order_id: int, token: str) -> bool:
        key = self.key(order_id)
        logger.debug(f"Release lock {key}")
        return bool(self.redis.eval(_RELEASE_LUA, 1, key, token))

    @contextmanager
    def order_lock(self, order_id: int) -> Iterator[bool]:
        """Yields whether the lock was taken; releases it on exit if so."""
        token = uuid.uuid4().hex
        acquired = self.acquire_order_lock(order_id, token)
        try:
            yield acquired
        finally:
            if acquired:
                self.release_order_lock(order_id, token)
