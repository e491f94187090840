# order_service/repos/cart_repo.py
import json

import redis

from order_service.utils.retry import redis_retry


class CartRepo:
    """Carts live in Redis as one JSON document per user, with a TTL."""

    def __init__(self, client: redis.Redis, ttl_seconds: int):
        self.redis = client
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def key(user_id: int) -> str:
        return f"cart:{user_id}"

    @redis_retry()
    def get(self, user_id: int) -> dict | None:
        raw = self.redis.get(self.key(user_id))
        if raw is None:
            return None
        return json.loads(raw)

    @redis_retry()
    def save(self, user_id: int, cart: dict) -> None:
        #setex refreshes the TTL on every write
        self.redis.setex(self.key(user_id), self.ttl_seconds, json.dumps(cart, default=str))

    @redis_retry()
    def delete(self, user_id: int) -> None:
        self.redis.delete(self.key(user_id))
