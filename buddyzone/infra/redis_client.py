import logging
from functools import lru_cache

import redis

from buddyzone.core.config import settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_redis() -> redis.Redis:
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)


def redis_available() -> bool:
    try:
        return bool(get_redis().ping())
    except redis.RedisError:
        logger.warning("redis ping failed", extra={"redis_url": settings.redis_url})
        return False
