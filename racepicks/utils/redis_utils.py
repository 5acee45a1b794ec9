"""
Redis connection helpers for the per-race distributed score lock.

Redis is optional: without a configured URL the engine relies on its
in-process locks only, which is correct for a single instance.
"""

import logging
from typing import Optional

import redis.asyncio as redis

from racepicks.config import Config

logger = logging.getLogger(__name__)


class RedisUtils:
    """Centralized Redis configuration and connection utilities."""

    @staticmethod
    def get_secure_redis_url() -> Optional[str]:
        """Configured Redis URL if it passes the security checks, else None"""
        redis_url = Config.REDIS_URL
        if not redis_url:
            logger.debug("REDIS_URL not set, distributed score locking disabled")
            return None

        if not RedisUtils.validate_redis_security(redis_url):
            logger.error("REDIS_URL contains an insecure configuration, distributed locking disabled")
            return None
        return redis_url

    @staticmethod
    def validate_redis_security(redis_url: str) -> bool:
        """Production requires TLS and credentials; DEBUG allows anything"""
        if not redis_url:
            return False

        if Config.DEBUG:
            if not (redis_url.startswith('redis://localhost') or redis_url.startswith('redis://127.0.0.1')
                    or redis_url.startswith('rediss://')):
                logger.warning(f"Potentially insecure Redis URL in development: {redis_url}")
            return True

        if not redis_url.startswith('rediss://'):
            logger.error("Production Redis must use rediss:// (TLS) protocol")
            return False
        if '@' not in redis_url:
            logger.error("Production Redis must include authentication credentials")
            return False
        return True

    @staticmethod
    def race_lock_key(race_id: str) -> str:
        return f"racepicks:score_lock:{race_id}"

    @staticmethod
    async def create_redis_client() -> Optional[redis.Redis]:
        """Create and ping a Redis client, None when unavailable"""
        redis_url = RedisUtils.get_secure_redis_url()
        if not redis_url:
            return None

        client = redis.from_url(redis_url)
        try:
            await client.ping()
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            await client.aclose()
            return None

        logger.info("Successfully connected to Redis")
        return client
