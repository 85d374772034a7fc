"""Redis-backed lookup cache.

Caches tenant lookups by identity-provider organization id so session
resolution does not hit Postgres on every request. Redis is optional:
when it is down every call degrades to a miss and the database answers.
This is not the reconciled upstream-data cache (that lives in Postgres).
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import redis.asyncio as redis

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheService:
    """Async Redis cache with TTL support and one reconnect attempt per call.

    Call connect() at startup and disconnect() at shutdown.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize cache service.

        Args:
            redis_client: Optional Redis client for testing or DI.
            settings: Connection settings (defaults to get_settings()).
        """
        self.redis = redis_client
        self.settings = settings or get_settings()
        self._connected = redis_client is not None

    async def connect(self) -> None:
        """Establish Redis connection. Failure leaves the cache disabled."""
        if self.redis is not None:
            return
        try:
            self.redis = redis.Redis(
                host=self.settings.redis_host,
                port=self.settings.redis_port,
                db=self.settings.redis_db,
                password=self.settings.redis_password.get_secret_value() if self.settings.redis_password else None,
                max_connections=self.settings.redis_max_connections,
                decode_responses=True,
                socket_connect_timeout=5,
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
            logger.warning("Redis connection failed: %s. Cache disabled.", e)
            self._connected = False
            self.redis = None

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self._connected = False
            logger.info("Redis cache disconnected")

    async def _reconnect(self) -> bool:
        if self.redis is not None:
            try:
                await self.redis.aclose()
            except redis.RedisError:
                logger.debug("Ignoring error while closing stale Redis connection")
        self.redis = None
        self._connected = False
        await self.connect()
        return self._connected

    def is_available(self) -> bool:
        """Return True if Redis is connected and usable."""
        return self._connected and self.redis is not None

    async def _call(self, op: str, key: str, fn: Callable[[redis.Redis], Awaitable[T]], default: T) -> T:
        """Run fn against Redis; reconnect once on connection loss; default on failure."""
        if not self.is_available() or self.redis is None:
            return default
        try:
            return await fn(self.redis)
        except (redis.ConnectionError, redis.TimeoutError):
            if await self._reconnect() and self.redis is not None:
                try:
                    return await fn(self.redis)
                except redis.RedisError:
                    logger.exception("Cache %s error for key %s after reconnect", op, key)
                    return default
            logger.warning("Cache %s unavailable for key %s (Redis disconnected)", op, key)
            return default
        except redis.RedisError:
            logger.exception("Cache %s error for key %s", op, key)
            return default

    async def get(self, key: str) -> Any | None:
        """Return cached value (JSON-deserialized) or None if missing/unavailable."""
        raw = await self._call("get", key, lambda r: r.get(key), None)
        if raw is None:
            logger.debug("Cache MISS: %s", key)
            return None
        logger.debug("Cache HIT: %s", key)
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store value with TTL in seconds (default cache_ttl_tenants). Returns True on success."""
        serialized = json.dumps(value)
        seconds = ttl if ttl is not None else self.settings.cache_ttl_tenants

        async def _set(r: redis.Redis) -> bool:
            await r.setex(key, seconds, serialized)
            return True

        return await self._call("set", key, _set, False)

    async def delete(self, key: str) -> bool:
        """Remove key from cache. Returns True if the command ran."""

        async def _delete(r: redis.Redis) -> bool:
            await r.delete(key)
            return True

        return await self._call("delete", key, _delete, False)
