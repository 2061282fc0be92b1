"""Redis-based key-value cache backend.

Provides async Redis caching with TTL support. Values are stored as JSON.
Connection errors trigger one reconnect attempt; if Redis is still not
usable the call raises CacheUnavailableError so the cache-aside layer can
fall through to the entity store.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as redis

from entity_cache.core.config import Settings, get_settings
from entity_cache.domain.exceptions import CacheSerializationError, CacheUnavailableError

logger = logging.getLogger(__name__)


class CacheService:
    """Async Redis cache service with TTL support.

    Uses entity_cache.core.config for connection settings. Call connect()
    at startup and disconnect() at shutdown.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize cache service.

        Args:
            redis_client: Optional Redis client for testing or DI.
            settings: Optional settings; defaults to get_settings().
        """
        self.redis = redis_client
        self.settings = settings or get_settings()
        self._connected = False

    async def connect(self) -> None:
        """Establish Redis connection. Call on app startup."""
        if not self.settings.redis_enabled:
            logger.info("Redis cache disabled by configuration")
            return
        try:
            if self.redis is None:
                self.redis = redis.Redis(
                    host=self.settings.redis_host,
                    port=self.settings.redis_port,
                    db=self.settings.redis_db,
                    password=self.settings.redis_password.get_secret_value() if self.settings.redis_password else None,
                    decode_responses=True,
                    socket_connect_timeout=self.settings.redis_socket_timeout,
                    socket_timeout=self.settings.redis_socket_timeout,
                    socket_keepalive=True,
                )
            await self.redis.ping()
            self._connected = True
            logger.info(
                "Redis cache connected: %s:%s",
                self.settings.redis_host,
                self.settings.redis_port,
            )
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning(
                "Redis connection failed: %s. Cache disabled.",
                e,
            )
            self._connected = False
            self.redis = None

    async def disconnect(self) -> None:
        """Close Redis connection. Call on app shutdown."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self._connected = False
            logger.info("Redis cache disconnected")

    async def _reconnect(self) -> bool:
        """Attempt to reconnect after disconnect. Returns True if reconnected."""
        if self.redis is None:
            return False
        try:
            await self.redis.aclose()
        except redis.RedisError:
            logger.debug("Ignoring error while closing stale Redis client")
        self.redis = None
        self._connected = False
        await self.connect()
        return self._connected

    def is_available(self) -> bool:
        """Return True if Redis is connected and usable."""
        return self._connected and self.redis is not None

    def _require_client(self, operation: str, key: str) -> redis.Redis:
        if not self.is_available() or self.redis is None:
            raise CacheUnavailableError(operation, key, "Redis not connected")
        return self.redis

    async def exists(self, key: str) -> bool:
        """Return True if key exists in Redis.

        Raises:
            CacheUnavailableError: If Redis is not connected or fails.
        """
        client = self._require_client("exists", key)
        try:
            return bool(await client.exists(key))
        except (redis.ConnectionError, redis.TimeoutError) as e:
            if await self._reconnect() and self.redis is not None:
                try:
                    return bool(await self.redis.exists(key))
                except redis.RedisError as retry_error:
                    raise CacheUnavailableError("exists", key, str(retry_error)) from retry_error
            raise CacheUnavailableError("exists", key, str(e)) from e
        except redis.RedisError as e:
            raise CacheUnavailableError("exists", key, str(e)) from e

    async def get(self, key: str) -> Any | None:
        """Return cached value (JSON-deserialized) or None if missing.

        A value that is not valid JSON is treated as a miss.

        Args:
            key: Cache key (use entity_cache.infrastructure.cache.keys builders).

        Returns:
            Cached value or None.

        Raises:
            CacheUnavailableError: If Redis is not connected or fails.
        """
        client = self._require_client("get", key)
        try:
            value = await client.get(key)
        except (redis.ConnectionError, redis.TimeoutError) as e:
            if await self._reconnect() and self.redis is not None:
                try:
                    value = await self.redis.get(key)
                except redis.RedisError as retry_error:
                    raise CacheUnavailableError("get", key, str(retry_error)) from retry_error
            else:
                raise CacheUnavailableError("get", key, str(e)) from e
        except redis.RedisError as e:
            raise CacheUnavailableError("get", key, str(e)) from e
        if value is None:
            logger.debug("Cache MISS: %s", key)
            return None
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Cache value for key %s is not valid JSON; treating as miss", key)
            return None
        logger.debug("Cache HIT: %s", key)
        return decoded

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """Store value with TTL. Returns True on success.

        Args:
            key: Cache key.
            value: Value to cache (JSON-serializable).
            ttl: Time-to-live in seconds.

        Returns:
            True if stored.

        Raises:
            CacheSerializationError: If value is not JSON-serializable.
            CacheUnavailableError: If Redis is not connected or fails.
        """
        client = self._require_client("set", key)
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise CacheSerializationError(key, str(e)) from e
        try:
            await client.setex(key, ttl, serialized)
        except (redis.ConnectionError, redis.TimeoutError) as e:
            if await self._reconnect() and self.redis is not None:
                try:
                    await self.redis.setex(key, ttl, serialized)
                except redis.RedisError as retry_error:
                    raise CacheUnavailableError("set", key, str(retry_error)) from retry_error
            else:
                raise CacheUnavailableError("set", key, str(e)) from e
        except redis.RedisError as e:
            raise CacheUnavailableError("set", key, str(e)) from e
        logger.debug("Cache SET: %s (TTL: %ss)", key, ttl)
        return True

    async def delete(self, key: str) -> bool:
        """Remove key from cache. Returns True if a key was deleted.

        Args:
            key: Cache key to delete.

        Returns:
            True if deleted, False if the key did not exist.

        Raises:
            CacheUnavailableError: If Redis is not connected or fails.
        """
        client = self._require_client("delete", key)
        try:
            deleted = await client.delete(key)
        except (redis.ConnectionError, redis.TimeoutError) as e:
            if await self._reconnect() and self.redis is not None:
                try:
                    deleted = await self.redis.delete(key)
                except redis.RedisError as retry_error:
                    raise CacheUnavailableError("delete", key, str(retry_error)) from retry_error
            else:
                raise CacheUnavailableError("delete", key, str(e)) from e
        except redis.RedisError as e:
            raise CacheUnavailableError("delete", key, str(e)) from e
        logger.debug("Cache DELETE: %s", key)
        return bool(deleted)
