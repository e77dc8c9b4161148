"""Redis cache manager with connection pooling and retry logic."""

import json
import logging
from typing import Any, Optional

import redis
from redis.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from stajkontrol.config import Settings

logger = logging.getLogger(__name__)

_redis_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((ConnectionError, TimeoutError)),
    reraise=True,
)


class CacheManager:
    """
    Redis cache manager.

    Used for the statistics cache and the OTP request counters. Every
    operation degrades to a no-op when Redis is disabled or unreachable,
    so callers never need their own fallback.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.enabled = settings.CACHE_ENABLED
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[redis.Redis] = None
        self._is_connected = False

        logger.info(f"CacheManager initialized. Enabled: {self.enabled}")

    def connect(self) -> None:
        """Establish Redis connection with connection pooling."""
        if not self.enabled:
            logger.info("Cache is disabled. Skipping Redis connection.")
            return

        try:
            self._pool = ConnectionPool(
                host=self.settings.REDIS_HOST,
                port=self.settings.REDIS_PORT,
                db=self.settings.REDIS_DB,
                password=self.settings.REDIS_PASSWORD or None,
                max_connections=self.settings.REDIS_MAX_CONNECTIONS,
                socket_keepalive=self.settings.REDIS_SOCKET_KEEPALIVE,
                socket_timeout=self.settings.REDIS_SOCKET_TIMEOUT,
                retry_on_timeout=self.settings.REDIS_RETRY_ON_TIMEOUT,
                health_check_interval=self.settings.REDIS_HEALTH_CHECK_INTERVAL,
                decode_responses=True,
            )
            self._client = redis.Redis(connection_pool=self._pool)
            self._client.ping()
            self._is_connected = True

            logger.info(
                f"Redis cache connected to {self.settings.REDIS_HOST}:{self.settings.REDIS_PORT}"
            )

        except RedisError as e:
            logger.error(f"Failed to connect to Redis cache: {e}")
            logger.warning("Cache will operate in degraded mode (no caching)")
            self._is_connected = False
            self.enabled = False

    def disconnect(self) -> None:
        """Close Redis connection and cleanup resources."""
        if self._client:
            try:
                self._client.close()
            except RedisError as e:
                logger.error(f"Error closing Redis connection: {e}")

        if self._pool:
            try:
                self._pool.disconnect()
            except RedisError as e:
                logger.error(f"Error disconnecting Redis pool: {e}")

        self._is_connected = False
        logger.info("Redis cache connection closed")

    def is_healthy(self) -> bool:
        """Check if Redis connection is healthy."""
        if not self.enabled or not self._client:
            return False

        try:
            self._client.ping()
            return True
        except RedisError:
            return False

    @_redis_retry
    def get(self, key: str) -> Optional[Any]:
        """Get a JSON value from cache, or None on miss/error."""
        if not self.enabled or not self._client:
            return None

        try:
            value = self._client.get(key)
            if value:
                logger.debug(f"Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"Cache MISS: {key}")
            return None

        except json.JSONDecodeError as e:
            logger.error(f"Failed to deserialize cached value for key '{key}': {e}")
            self.delete(key)
            return None

        except (ConnectionError, TimeoutError):
            raise

        except RedisError as e:
            logger.warning(f"Redis error getting key '{key}': {e}. Continuing without cache.")
            return None

    @_redis_retry
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set a JSON value with TTL (seconds, defaults to CACHE_DEFAULT_TTL)."""
        if not self.enabled or not self._client:
            return False

        try:
            ttl = ttl or self.settings.CACHE_DEFAULT_TTL
            serialized_value = json.dumps(value, default=str)
            result = self._client.setex(key, ttl, serialized_value)
            logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")
            return bool(result)

        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize value for key '{key}': {e}")
            return False

        except (ConnectionError, TimeoutError):
            raise

        except RedisError as e:
            logger.warning(f"Redis error setting key '{key}': {e}. Continuing without cache.")
            return False

    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        if not self.enabled or not self._client:
            return False

        try:
            result = self._client.delete(key)
            logger.debug(f"Cache DELETE: {key}")
            return bool(result)
        except RedisError as e:
            logger.error(f"Redis error deleting key '{key}': {e}")
            return False

    def incr_window(self, key: str, window_seconds: int) -> Optional[int]:
        """
        Increment a fixed-window counter.

        Returns:
            The counter value after incrementing, or None when Redis is
            unavailable (callers treat that as "not limited").
        """
        if not self.enabled or not self._client:
            return None

        try:
            count = int(self._client.incr(key))
            if count == 1:
                self._client.expire(key, window_seconds)
            return count
        except RedisError as e:
            logger.warning(f"Redis error incrementing '{key}': {e}. Rate limit not enforced.")
            return None
