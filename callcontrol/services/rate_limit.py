import logging

import redis
from redis.exceptions import RedisError

from callcontrol.core.config import settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """Fixed-window attempt counter in Redis; lets requests through when Redis is down."""

    def __init__(self, prefix: str = "login", limit: int = 5, window_seconds: int = 300, client=None):
        self.prefix = prefix
        self.limit = limit
        self.window_seconds = window_seconds
        self.client = client or redis.Redis.from_url(settings.redis_url, socket_connect_timeout=1)

    def _key(self, key: str) -> str:
        return f"callcontrol:{self.prefix}:{key}"

    def hit(self, key: str) -> bool:
        redis_key = self._key(key)
        try:
            count = self.client.incr(redis_key)
            if count == 1:
                self.client.expire(redis_key, self.window_seconds)
        except RedisError:
            logger.warning("Rate limiter unavailable, allowing %s", redis_key)
            return True
        if count > self.limit:
            logger.warning("Rate limit exceeded for %s (%s attempts)", redis_key, count)
            return False
        return True

    def reset(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except RedisError:
            logger.warning("Rate limiter unavailable, could not reset %s", key)
